"""Custom exceptions for catalog operations and API contract errors."""

from typing import Any, Dict, Optional


class ContractError(Exception):
    """Error that maps to a stable API error payload."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ParseError(ContractError):
    """Uploaded file could not be read as a table. Aborts the whole import."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("PARSE_ERROR", message, status_code=400, details=details)


class PersistenceError(ContractError):
    """Document store create/update/delete failed."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("PERSISTENCE_ERROR", message, status_code=502, details=details)


class UploadError(ContractError):
    """Blob store upload failed."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("UPLOAD_ERROR", message, status_code=502, details=details)


class RecordValidationError(ContractError):
    """Record cannot be persisted in its current shape."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("VALIDATION_ERROR", message, status_code=422, details=details)


class NotFoundError(ContractError):
    """Requested document does not exist."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("NOT_FOUND", message, status_code=404, details=details)
