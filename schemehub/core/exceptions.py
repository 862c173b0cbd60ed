"""
Domain errors.

Services raise these; the exception handlers in schemehub.main turn them
into {"success": false, "error": ...} responses with the status code
carried by the error class.
"""
from fastapi import status


class SchemeHubError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchemeHubError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(SchemeHubError):
    """Missing or invalid credentials."""
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(SchemeHubError):
    """Role or ownership check failed."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(SchemeHubError):
    """Scheme, product, distributor or user not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchemeHubError):
    """Duplicate unique key, or an operation already in progress."""
    status_code = status.HTTP_409_CONFLICT


class ExternalSourceError(SchemeHubError):
    """Connection or query failure against the external system of record."""
    status_code = status.HTTP_502_BAD_GATEWAY


class NotImplementedFeatureError(SchemeHubError):
    """Recognized request for a feature that has no implementation yet."""
    status_code = status.HTTP_501_NOT_IMPLEMENTED


def format_validation_errors(errors) -> str:
    """Join pydantic error dicts into one "loc: msg; ..." message."""
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(messages) or "Invalid request"
