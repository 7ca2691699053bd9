"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    PosyanduError,
    RecordNotFoundError,
    RecordMismatchError,
    AssessmentError,
    RecordProtectedError,
    StoreUnavailableError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "PosyanduError",
    "RecordNotFoundError",
    "RecordMismatchError",
    "AssessmentError",
    "RecordProtectedError",
    "StoreUnavailableError",
]
