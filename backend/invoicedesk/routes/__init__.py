# Overview: Flask API blueprints and the shared service-error response.

from flask import jsonify

from ..services.errors import ServiceError


def error_response(e: ServiceError):
    """JSON body {"error", "code"} with the error's HTTP status."""
    return jsonify(e.to_dict()), e.http_status
