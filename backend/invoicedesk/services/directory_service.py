# Overview: Service-layer operations for companies, clients and files.

"""
Directory Service

Companies, clients and files are plain reference data. Each row records
who created it; owner-scoped callers (view_own without view_all) only see
and change their own rows. A row outside scope is reported as not found.

Rows still referenced (a client with invoices, a company with files, a
file with invoices) cannot be deleted.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Client, Company, File, Invoice, User
from .commission_service import to_rate
from .errors import NotFoundError, ValidationError


class DirectoryValidationError(ValidationError):
    pass


def _scoped(model, user: User, owner_scoped: bool):
    query = db.session.query(model)
    if owner_scoped:
        query = query.filter(model.created_by_user_id == user.id)
    return query


def _get_scoped(model, label: str, entity_id: int, user: User, owner_scoped: bool):
    entity = _scoped(model, user, owner_scoped).filter(model.id == entity_id).first()
    if not entity:
        raise NotFoundError(f"{label} not found or not accessible")
    return entity


def _required_text(value, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise DirectoryValidationError(f"{field} is required")
    return text


# =============================================================================
# COMPANIES
# =============================================================================

def list_companies(user: User, owner_scoped: bool) -> list[Company]:
    return _scoped(Company, user, owner_scoped).order_by(Company.name).all()


def get_company(company_id: int, user: User, owner_scoped: bool) -> Company:
    return _get_scoped(Company, "Company", company_id, user, owner_scoped)


def create_company(*, name: str, commission_rate=0, created_by_user_id: int | None = None) -> Company:
    company = Company(
        name=_required_text(name, "name"),
        commission_rate=to_rate(commission_rate or 0),
        created_by_user_id=created_by_user_id,
    )
    db.session.add(company)
    db.session.commit()
    return company


def update_company(company_id: int, user: User, owner_scoped: bool, *, name=None, commission_rate=None) -> Company:
    company = get_company(company_id, user, owner_scoped)
    if name is not None:
        company.name = _required_text(name, "name")
    if commission_rate is not None:
        company.commission_rate = to_rate(commission_rate)
    db.session.commit()
    return company


def delete_company(company_id: int, user: User, owner_scoped: bool) -> None:
    company = get_company(company_id, user, owner_scoped)
    if db.session.query(File).filter(File.company_id == company.id).first():
        raise DirectoryValidationError("Company still has files")
    db.session.delete(company)
    db.session.commit()


# =============================================================================
# CLIENTS
# =============================================================================

def list_clients(user: User, owner_scoped: bool, search: str | None = None) -> list[Client]:
    query = _scoped(Client, user, owner_scoped)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Client.full_name.ilike(pattern), Client.phone.ilike(pattern)))
    return query.order_by(Client.created_at.desc(), Client.id.desc()).all()


def get_client(client_id: int, user: User, owner_scoped: bool) -> Client:
    return _get_scoped(Client, "Client", client_id, user, owner_scoped)


def create_client(*, full_name: str, phone: str | None = None, commission_rate=0, created_by_user_id: int | None = None) -> Client:
    client = Client(
        full_name=_required_text(full_name, "full_name"),
        phone=(phone or "").strip() or None,
        commission_rate=to_rate(commission_rate or 0),
        created_by_user_id=created_by_user_id,
    )
    db.session.add(client)
    db.session.commit()
    return client


def update_client(client_id: int, user: User, owner_scoped: bool, *, full_name=None, phone=None, commission_rate=None) -> Client:
    client = get_client(client_id, user, owner_scoped)
    if full_name is not None:
        client.full_name = _required_text(full_name, "full_name")
    if phone is not None:
        client.phone = phone.strip() or None
    if commission_rate is not None:
        client.commission_rate = to_rate(commission_rate)
    db.session.commit()
    return client


def delete_client(client_id: int, user: User, owner_scoped: bool) -> None:
    client = get_client(client_id, user, owner_scoped)
    if db.session.query(Invoice).filter(Invoice.client_id == client.id).first():
        raise DirectoryValidationError("Client still has invoices")
    db.session.delete(client)
    db.session.commit()


# =============================================================================
# FILES
# =============================================================================

def list_files(user: User, owner_scoped: bool, company_id: int | None = None) -> list[File]:
    query = _scoped(File, user, owner_scoped)
    if company_id is not None:
        query = query.filter(File.company_id == company_id)
    return query.order_by(File.created_at.desc(), File.id.desc()).all()


def get_file(file_id: int, user: User, owner_scoped: bool) -> File:
    return _get_scoped(File, "File", file_id, user, owner_scoped)


def create_file(*, file_name: str, company_id: int, stored_path: str | None = None, created_by_user_id: int | None = None) -> File:
    if company_id is None or db.session.get(Company, company_id) is None:
        raise DirectoryValidationError(f"Company {company_id} not found")

    file = File(
        file_name=_required_text(file_name, "file_name"),
        company_id=company_id,
        stored_path=stored_path,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(file)
    db.session.commit()
    return file


def update_file(file_id: int, user: User, owner_scoped: bool, *, file_name=None, company_id=None, stored_path=None) -> File:
    """
    Update a file. Moving a file to another company does not touch the
    company rate snapshot of existing invoices.
    """
    file = get_file(file_id, user, owner_scoped)
    if file_name is not None:
        file.file_name = _required_text(file_name, "file_name")
    if company_id is not None:
        if db.session.get(Company, company_id) is None:
            raise DirectoryValidationError(f"Company {company_id} not found")
        file.company_id = company_id
    if stored_path is not None:
        file.stored_path = stored_path or None
    db.session.commit()
    return file


def delete_file(file_id: int, user: User, owner_scoped: bool) -> None:
    file = get_file(file_id, user, owner_scoped)
    if db.session.query(Invoice).filter(Invoice.file_id == file.id).first():
        raise DirectoryValidationError("File still has invoices")
    db.session.delete(file)
    db.session.commit()
