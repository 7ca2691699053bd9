"""
Custom Exception Hierarchy

Specific exception types for the record-keeping layer, each carrying a
machine-readable code and the HTTP status the API should answer with.
"""
from typing import Optional, Dict, Any


class PosyanduError(Exception):
    """Base exception for all posyandu backend errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the API response envelope."""
        return {
            "success": False,
            "message": self.message,
            "error": self.code,
            "details": self.details
        }


class RecordNotFoundError(PosyanduError):
    """A patient or record id that does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str,
        record_type: str = "unknown",
        record_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="NOT_FOUND",
            details={"record_type": record_type, "record_id": record_id, **(details or {})}
        )
        self.record_type = record_type
        self.record_id = record_id


class RecordMismatchError(PosyanduError):
    """A referenced exam, test or assessment belongs to another patient."""

    status_code = 400

    def __init__(
        self,
        message: str,
        record_type: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="RECORD_MISMATCH",
            details={"record_type": record_type, **(details or {})}
        )
        self.record_type = record_type


class AssessmentError(PosyanduError):
    """An assessment that can be neither supplied nor derived."""

    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="ASSESSMENT_ERROR",
            details=details
        )


class RecordProtectedError(PosyanduError):
    """Deletion of a medical record that must be kept."""

    status_code = 403

    def __init__(
        self,
        message: str,
        record_type: str = "unknown",
        record_id: Optional[int] = None,
    ):
        super().__init__(
            message=message,
            code="DELETE_FORBIDDEN",
            details={"record_type": record_type, "record_id": record_id}
        )
        self.record_type = record_type
        self.record_id = record_id


class StoreUnavailableError(PosyanduError):
    """
    The persistence collaborator could not serve a query.

    `InMemoryRecordStore` cannot fail this way; database-backed
    `RecordStore` implementations raise it when their backend is down.
    The clinical fetch-then-compute operations turn it into an error
    report, and the API maps it to 503 everywhere else.
    """

    status_code = 503

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="STORE_UNAVAILABLE",
            details={"operation": operation, **(details or {})}
        )
        self.operation = operation
