"""
Pytest Configuration and Fixtures

Shared fixtures for the posyandu backend tests.

Exams built by `exam_factory` use a 200 cm height so that BMI equals
weight / 4 exactly and boundary values are not disturbed by float error.
"""
from datetime import date, datetime, timedelta
from typing import List, Optional

import pytest

from posyandu.core.storage import AdvancedTest, InMemoryRecordStore, PhysicalExam
from posyandu.services import RecordsService
from posyandu.utils import StoreUnavailableError

BASE_TIME = datetime(2026, 1, 5, 9, 0, 0)


@pytest.fixture
def exam_factory():
    """Build a PhysicalExam from a target BMI and/or blood pressure."""
    def _make(
        bmi: Optional[float] = None,
        systolic: Optional[int] = None,
        diastolic: Optional[int] = None,
        waist_cm: Optional[float] = None,
        measured_at: Optional[datetime] = None,
    ) -> PhysicalExam:
        return PhysicalExam(
            measured_at=measured_at or BASE_TIME,
            height_cm=200.0 if bmi is not None else None,
            weight_kg=bmi * 4 if bmi is not None else None,
            waist_cm=waist_cm,
            systolic=systolic,
            diastolic=diastolic,
        )
    return _make


@pytest.fixture
def lab_test_factory():
    """Build an AdvancedTest with a glucose reading."""
    def _make(glucose: Optional[float], measured_at: Optional[datetime] = None) -> AdvancedTest:
        return AdvancedTest(measured_at=measured_at or BASE_TIME, blood_glucose_mgdl=glucose)
    return _make


@pytest.fixture
def glucose_series():
    """Oldest-first AdvancedTests one week apart."""
    def _make(values: List[float]) -> List[AdvancedTest]:
        return [
            AdvancedTest(measured_at=BASE_TIME + timedelta(days=7 * i), blood_glucose_mgdl=v)
            for i, v in enumerate(values)
        ]
    return _make


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def patient(store):
    return store.add_patient("Siti Aminah", date(1952, 4, 17), sex="F", registered_by="kader-1")


@pytest.fixture
def service(store) -> RecordsService:
    return RecordsService(store)


class FailingStore:
    """Record store whose every query fails."""

    def fetch_latest_physical_exam(self, patient_id):
        raise StoreUnavailableError("database unreachable", operation="fetch_latest_physical_exam")

    def fetch_latest_advanced_test(self, patient_id):
        raise StoreUnavailableError("database unreachable", operation="fetch_latest_advanced_test")

    def fetch_advanced_tests_ordered(self, patient_id):
        raise StoreUnavailableError("database unreachable", operation="fetch_advanced_tests_ordered")


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()
