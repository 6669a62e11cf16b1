"""
Request-scoped error types.

Every error carries an HTTP status and a machine-stable ``code`` so the
transport layer can render it without knowing where it came from.
"""
from typing import Any, Dict, Optional


class StudyMateError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code}


class ValidationError(StudyMateError):
    """Malformed or missing input."""
    status_code = 400
    code = "validation_error"


class NotFoundError(StudyMateError):
    """A referenced entity does not exist."""
    status_code = 404
    code = "not_found"


class ConflictError(StudyMateError):
    """The write would duplicate an existing record."""
    status_code = 409
    code = "conflict"


class StoreError(StudyMateError):
    """The document store failed the operation."""
    status_code = 500
    code = "store_error"


class StoreUnavailableError(StoreError):
    """The document store is not configured or cannot be reached."""
    status_code = 503
    code = "store_unavailable"
