"""Application errors.

Every error raised below the handler layer derives from ``CMSError`` and
carries the HTTP status and message the exception handlers in ``main`` put
into the response envelope.
"""
from typing import Dict, List, Optional

ErrorDetails = Dict[str, List[str]]


class CMSError(Exception):
    status_code = 400
    default_message = "Request failed."

    def __init__(self, message: Optional[str] = None, errors: Optional[ErrorDetails] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(CMSError):
    status_code = 422
    default_message = "The given data was invalid."

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(errors={field: [message]})


class Unauthorized(CMSError):
    status_code = 401
    default_message = "Unauthorized."


class InvalidCredentials(Unauthorized):
    default_message = "Invalid credentials. Check your email and password."


class TokenMissing(Unauthorized):
    default_message = "Token not provided."


class TokenExpired(Unauthorized):
    default_message = "Token expired."


class TokenInvalid(Unauthorized):
    default_message = "Token invalid."


class NotFound(CMSError):
    status_code = 404
    default_message = "Resource not found."


class Conflict(CMSError):
    status_code = 422
    default_message = "The given data was invalid."

    @classmethod
    def for_field(cls, field: str, message: str) -> "Conflict":
        return cls(errors={field: [message]})


class IntegrityViolation(CMSError):
    status_code = 400
    default_message = "The request references data that does not exist."


class InternalError(CMSError):
    status_code = 500
    default_message = "Internal server error."
