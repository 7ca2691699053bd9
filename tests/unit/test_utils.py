"""
Unit Tests for logging and the exception hierarchy
"""
import logging

from posyandu.utils import (
    AssessmentError,
    PosyanduError,
    RecordMismatchError,
    RecordNotFoundError,
    RecordProtectedError,
    StoreUnavailableError,
)
from posyandu.utils.logging import StructuredFormatter


class TestStructuredFormatter:

    def _record(self, name, level=logging.INFO, msg="hello"):
        return logging.LogRecord(name, level, __file__, 1, msg, None, None)

    def test_package_prefix_is_shortened(self):
        line = StructuredFormatter(use_color=False).format(self._record("posyandu.core.clinical.trend"))
        assert "[core.clinical.trend] hello" in line
        assert "\033[" not in line

    def test_other_loggers_keep_full_name(self):
        line = StructuredFormatter(use_color=False).format(self._record("uvicorn.error"))
        assert "[uvicorn.error]" in line

    def test_color(self):
        line = StructuredFormatter(use_color=True).format(self._record("x", logging.ERROR))
        assert line.startswith(StructuredFormatter.COLORS["ERROR"])
        assert line.endswith(StructuredFormatter.RESET)


class TestExceptions:

    def test_envelope(self):
        exc = RecordNotFoundError("Patient 9 not found", record_type="patient", record_id=9)
        assert exc.to_dict() == {
            "success": False,
            "message": "Patient 9 not found",
            "error": "NOT_FOUND",
            "details": {"record_type": "patient", "record_id": 9},
        }

    def test_status_codes(self):
        assert RecordNotFoundError("x").status_code == 404
        assert RecordMismatchError("x").status_code == 400
        assert AssessmentError("x").status_code == 400
        assert RecordProtectedError("x").status_code == 403
        assert StoreUnavailableError("x").status_code == 503
        assert PosyanduError("x").status_code == 500

    def test_all_share_base(self):
        for cls in (RecordNotFoundError, RecordMismatchError, AssessmentError,
                    RecordProtectedError, StoreUnavailableError):
            assert issubclass(cls, PosyanduError)

    def test_protected_record_envelope(self):
        exc = RecordProtectedError("Treatment records cannot be deleted", record_type="treatment", record_id=4)
        body = exc.to_dict()
        assert body["error"] == "DELETE_FORBIDDEN"
        assert body["details"] == {"record_type": "treatment", "record_id": 4}
