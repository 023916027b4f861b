# Overview: Flask API routes for companies, clients and files; parses input and returns JSON responses.

"""
Directory Routes

SECURITY: All routes require authentication.
- Listing and reading need module access (view_own or view_all)
- Create / update / delete need the matching module permission
- view_own callers only reach rows they created
"""

from flask import Blueprint, request, jsonify, g

from . import error_response
from ..decorators import require_auth, require_permission, require_module_access
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import directory_service
from ..services.errors import ServiceError


directory_bp = Blueprint("directory", __name__, url_prefix="/api")


# =============================================================================
# COMPANIES
# =============================================================================

@directory_bp.get("/companies")
@require_auth
@require_module_access(M.COMPANIES)
def list_companies_route(access):
    companies = directory_service.list_companies(access.user, access.owner_scoped)
    return jsonify({
        "items": [c.to_dict() for c in companies],
        "count": len(companies),
        "permission_level": access.level.to_dict(),
    })


@directory_bp.get("/companies/<int:company_id>")
@require_auth
@require_module_access(M.COMPANIES)
def get_company_route(company_id: int, access):
    try:
        company = directory_service.get_company(company_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify(company.to_dict())


@directory_bp.post("/companies")
@require_auth
@require_permission(M.COMPANIES, A.CREATE)
def create_company_route():
    """Request body: {"name": "...", "commission_rate": 5}"""
    data = request.get_json(silent=True) or {}
    try:
        company = directory_service.create_company(
            name=data.get("name"),
            commission_rate=data.get("commission_rate", 0),
            created_by_user_id=g.current_user.id,
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(company.to_dict()), 201


@directory_bp.put("/companies/<int:company_id>")
@require_auth
@require_permission(M.COMPANIES, A.UPDATE)
@require_module_access(M.COMPANIES)
def update_company_route(company_id: int, access):
    data = request.get_json(silent=True) or {}
    try:
        company = directory_service.update_company(
            company_id,
            access.user,
            access.owner_scoped,
            name=data.get("name"),
            commission_rate=data.get("commission_rate"),
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(company.to_dict())


@directory_bp.delete("/companies/<int:company_id>")
@require_auth
@require_permission(M.COMPANIES, A.DELETE)
@require_module_access(M.COMPANIES)
def delete_company_route(company_id: int, access):
    try:
        directory_service.delete_company(company_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Company deleted"})


# =============================================================================
# CLIENTS
# =============================================================================

@directory_bp.get("/clients")
@require_auth
@require_module_access(M.CLIENTS)
def list_clients_route(access):
    clients = directory_service.list_clients(access.user, access.owner_scoped, search=request.args.get("search"))
    return jsonify({
        "items": [c.to_dict() for c in clients],
        "count": len(clients),
        "permission_level": access.level.to_dict(),
    })


@directory_bp.get("/clients/<int:client_id>")
@require_auth
@require_module_access(M.CLIENTS)
def get_client_route(client_id: int, access):
    try:
        client = directory_service.get_client(client_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify(client.to_dict())


@directory_bp.post("/clients")
@require_auth
@require_permission(M.CLIENTS, A.CREATE)
def create_client_route():
    """Request body: {"full_name": "...", "phone": "...", "commission_rate": 2}"""
    data = request.get_json(silent=True) or {}
    try:
        client = directory_service.create_client(
            full_name=data.get("full_name"),
            phone=data.get("phone"),
            commission_rate=data.get("commission_rate", 0),
            created_by_user_id=g.current_user.id,
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(client.to_dict()), 201


@directory_bp.put("/clients/<int:client_id>")
@require_auth
@require_permission(M.CLIENTS, A.UPDATE)
@require_module_access(M.CLIENTS)
def update_client_route(client_id: int, access):
    data = request.get_json(silent=True) or {}
    try:
        client = directory_service.update_client(
            client_id,
            access.user,
            access.owner_scoped,
            full_name=data.get("full_name"),
            phone=data.get("phone"),
            commission_rate=data.get("commission_rate"),
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(client.to_dict())


@directory_bp.delete("/clients/<int:client_id>")
@require_auth
@require_permission(M.CLIENTS, A.DELETE)
@require_module_access(M.CLIENTS)
def delete_client_route(client_id: int, access):
    try:
        directory_service.delete_client(client_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Client deleted"})


# =============================================================================
# FILES
# =============================================================================

@directory_bp.get("/files")
@require_auth
@require_module_access(M.FILES)
def list_files_route(access):
    files = directory_service.list_files(
        access.user,
        access.owner_scoped,
        company_id=request.args.get("company_id", type=int),
    )
    return jsonify({
        "items": [f.to_dict() for f in files],
        "count": len(files),
        "permission_level": access.level.to_dict(),
    })


@directory_bp.get("/files/<int:file_id>")
@require_auth
@require_module_access(M.FILES)
def get_file_route(file_id: int, access):
    try:
        file = directory_service.get_file(file_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify(file.to_dict())


@directory_bp.post("/files")
@require_auth
@require_permission(M.FILES, A.CREATE)
def create_file_route():
    """Request body: {"file_name": "...", "company_id": 1, "stored_path": "optional"}"""
    data = request.get_json(silent=True) or {}
    try:
        file = directory_service.create_file(
            file_name=data.get("file_name"),
            company_id=data.get("company_id"),
            stored_path=data.get("stored_path"),
            created_by_user_id=g.current_user.id,
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(file.to_dict()), 201


@directory_bp.put("/files/<int:file_id>")
@require_auth
@require_permission(M.FILES, A.UPDATE)
@require_module_access(M.FILES)
def update_file_route(file_id: int, access):
    data = request.get_json(silent=True) or {}
    try:
        file = directory_service.update_file(
            file_id,
            access.user,
            access.owner_scoped,
            file_name=data.get("file_name"),
            company_id=data.get("company_id"),
            stored_path=data.get("stored_path"),
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(file.to_dict())


@directory_bp.delete("/files/<int:file_id>")
@require_auth
@require_permission(M.FILES, A.DELETE)
@require_module_access(M.FILES)
def delete_file_route(file_id: int, access):
    try:
        directory_service.delete_file(file_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "File deleted"})
