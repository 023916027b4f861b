# Overview: Base exception types shared by the service layer.

"""
Service errors carry a stable `code` so the HTTP layer (and whatever
translates messages for the user) never has to parse message text.

Codes:
- NOT_AUTHORIZED: actor lacks the permission or ownership
- NOT_FOUND: target missing or outside the actor's scope
- ACTOR_NOT_FOUND: session actor no longer exists (re-authenticate)
- VALIDATION: bad input
- INVALID_STAGE / ALREADY_PAID / STAGE_ORDER: payment machine guards
"""


class ServiceError(Exception):
    """Base class for expected, recoverable service failures."""
    code = "ERROR"
    http_status = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class NotAuthorizedError(ServiceError):
    code = "NOT_AUTHORIZED"
    http_status = 403


class NotFoundError(ServiceError):
    """Missing, or outside the actor's visibility scope. Deliberately the same."""
    code = "NOT_FOUND"
    http_status = 404


class ActorNotFoundError(ServiceError):
    code = "ACTOR_NOT_FOUND"
    http_status = 401


class ValidationError(ServiceError):
    code = "VALIDATION"
    http_status = 400
