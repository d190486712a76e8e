from typing import Optional


class APIError(Exception):
    """An error that maps directly onto an HTTP response body `{error, message?}`."""

    status_code = 500
    default_error = "Internal server error"

    def __init__(self, error: Optional[str] = None, message: Optional[str] = None):
        self.error = error or self.default_error
        self.message = message
        super().__init__(self.error)


class ValidationError(APIError):
    status_code = 400
    default_error = "Invalid request"


class Unauthorized(APIError):
    status_code = 401
    default_error = "Authentication required"


class InvalidCredentials(Unauthorized):
    default_error = "Invalid credentials"


class NotFound(APIError):
    status_code = 404
    default_error = "Not found"


class StorageError(APIError):
    status_code = 500
    default_error = "Database error"
