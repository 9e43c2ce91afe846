# Overview: Service error taxonomy shared by every service and route.

"""
Service Errors

Every failure a service reports to a caller is one of four kinds, each with a
stable HTTP status. Routes catch ServiceError and answer with
{"error": message} and the status code; nothing else about the failure leaves
the process.
"""


class ServiceError(Exception):
    """Base class for expected, user-visible service failures."""
    status_code = 400


class NotFoundError(ServiceError):
    """Raised when a referenced entity does not exist."""
    status_code = 404


class ForbiddenError(ServiceError):
    """Raised when an entity belongs to another organization."""
    status_code = 403


class ConflictError(ServiceError):
    """Raised when a write would violate a uniqueness rule."""
    status_code = 409


class BadRequestError(ServiceError):
    """Raised for invalid input or an invalid state transition."""
    status_code = 400
