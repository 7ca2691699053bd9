"""
Persistence Layer

Usage:
    from posyandu.core.storage import InMemoryRecordStore, PhysicalExam

    store = InMemoryRecordStore()
    patient = store.add_patient("Siti", date(1950, 1, 1))
    store.add_physical_exam(patient.id, PhysicalExam(measured_at=datetime.now(), systolic=150, diastolic=95))
"""
from .models import (
    Patient,
    PhysicalExam,
    AdvancedTest,
    HealthAssessment,
    Treatment,
    Referral,
    AccessLogEntry,
)
from .repository import RecordStore, InMemoryRecordStore

__all__ = [
    "Patient",
    "PhysicalExam",
    "AdvancedTest",
    "HealthAssessment",
    "Treatment",
    "Referral",
    "AccessLogEntry",
    "RecordStore",
    "InMemoryRecordStore",
]
