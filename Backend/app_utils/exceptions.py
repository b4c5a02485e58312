"""
Service-level error taxonomy.

Services raise these; main.py maps them onto HTTP responses.
None of them are retried.
"""


class ServiceError(Exception):
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """Entity id has no row."""
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(ServiceError):
    """Actor does not own, or may not act on, the entity."""
    status_code = 403
    code = "FORBIDDEN"


class InvalidStateError(ServiceError):
    """Operation not permitted in the entity's current status."""
    status_code = 409
    code = "INVALID_STATE"


class InvalidInputError(ServiceError):
    status_code = 400
    code = "INVALID_INPUT"


class AuthenticationError(ServiceError):
    status_code = 401
    code = "UNAUTHORIZED"
