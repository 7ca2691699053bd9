"""
Record Store

`RecordStore` is the narrow read interface the clinical core depends on.
`InMemoryRecordStore` implements it together with the write and listing
operations the HTTP layer needs. It is the process-local store used by
the API and the tests; a SQL-backed store only has to satisfy the same
methods.
"""
from __future__ import annotations

import threading
from collections import Counter
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol, TypeVar

from posyandu.utils import get_logger, RecordNotFoundError
from .models import (
    AccessLogEntry,
    AdvancedTest,
    HealthAssessment,
    Patient,
    PhysicalExam,
    Referral,
    Treatment,
)

logger = get_logger(__name__)

T = TypeVar("T")


class RecordStore(Protocol):
    """Queries the risk classifier and trend analyzer rely on."""

    def fetch_latest_physical_exam(self, patient_id: int) -> Optional[PhysicalExam]: ...

    def fetch_latest_advanced_test(self, patient_id: int) -> Optional[AdvancedTest]: ...

    def fetch_advanced_tests_ordered(self, patient_id: int) -> List[AdvancedTest]: ...


class InMemoryRecordStore:
    """
    Dict-backed record store.

    Ids are per-table incrementing integers. A single lock serialises
    writes; reads return copies of the internal lists so callers may
    iterate freely.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._patients: Dict[int, Patient] = {}
        self._exams: Dict[int, PhysicalExam] = {}
        self._tests: Dict[int, AdvancedTest] = {}
        self._assessments: Dict[int, HealthAssessment] = {}
        self._treatments: Dict[int, Treatment] = {}
        self._referrals: Dict[int, Referral] = {}
        self._access_log: List[AccessLogEntry] = []
        self._sequences: Counter = Counter()

    def _next_id(self, table: str) -> int:
        self._sequences[table] += 1
        return self._sequences[table]

    @staticmethod
    def _require(table: Dict[int, T], record_id: int, record_type: str) -> T:
        record = table.get(record_id)
        if record is None:
            raise RecordNotFoundError(
                f"{record_type.replace('_', ' ').capitalize()} {record_id} not found",
                record_type=record_type,
                record_id=record_id,
            )
        return record

    def _update(self, table: Dict[int, T], record_id: int, record_type: str, fields: Dict[str, Any]) -> T:
        with self._lock:
            record = self._require(table, record_id, record_type)
            for name, value in fields.items():
                setattr(record, name, value)
        logger.info(f"Updated {record_type} {record_id}: {', '.join(sorted(fields)) or 'no fields'}")
        return record

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def add_patient(
        self,
        name: str,
        birth_date: date,
        sex: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        registered_by: str = "",
    ) -> Patient:
        with self._lock:
            patient_id = self._next_id("patients")
            now = datetime.now()
            patient = Patient(
                id=patient_id,
                patient_code=f"P{now:%Y%m%d}{patient_id:03d}",
                name=name,
                birth_date=birth_date,
                sex=sex,
                address=address,
                phone=phone,
                registered_by=registered_by,
                registered_at=now,
            )
            self._patients[patient_id] = patient
        logger.info(f"Registered patient {patient.patient_code} (id={patient_id})")
        return patient

    def get_patient(self, patient_id: int) -> Patient:
        return self._require(self._patients, patient_id, "patient")

    def list_patients(self, search: Optional[str] = None) -> List[Patient]:
        """All patients by id; `search` matches name, patient code or phone, case-insensitively."""
        patients = sorted(self._patients.values(), key=lambda p: p.id)
        term = (search or "").strip().lower()
        if not term:
            return patients
        return [
            p for p in patients
            if term in p.name.lower()
            or term in p.patient_code.lower()
            or term in (p.phone or "").lower()
        ]

    def update_patient(self, patient_id: int, **fields) -> Patient:
        return self._update(self._patients, patient_id, "patient", fields)

    # ------------------------------------------------------------------
    # Physical exams
    # ------------------------------------------------------------------

    def add_physical_exam(self, patient_id: int, exam: PhysicalExam) -> PhysicalExam:
        self.get_patient(patient_id)
        with self._lock:
            exam.id = self._next_id("exams")
            exam.patient_id = patient_id
            self._exams[exam.id] = exam
        return exam

    def get_physical_exam(self, exam_id: int) -> PhysicalExam:
        return self._require(self._exams, exam_id, "physical_exam")

    def list_physical_exams(self, patient_id: Optional[int] = None) -> List[PhysicalExam]:
        """Newest first; all patients when patient_id is None."""
        exams = [e for e in self._exams.values() if patient_id is None or e.patient_id == patient_id]
        return sorted(exams, key=lambda e: (e.measured_at, e.id), reverse=True)

    def fetch_latest_physical_exam(self, patient_id: int) -> Optional[PhysicalExam]:
        exams = self.list_physical_exams(patient_id)
        return exams[0] if exams else None

    def update_physical_exam(self, exam_id: int, **fields) -> PhysicalExam:
        return self._update(self._exams, exam_id, "physical_exam", fields)

    def delete_physical_exam(self, exam_id: int) -> PhysicalExam:
        """Remove an exam and unlink it from any assessment that cited it."""
        with self._lock:
            exam = self._require(self._exams, exam_id, "physical_exam")
            del self._exams[exam_id]
            for assessment in self._assessments.values():
                if assessment.physical_exam_id == exam_id:
                    assessment.physical_exam_id = None
        logger.info(f"Deleted physical exam {exam_id} (patient {exam.patient_id})")
        return exam

    # ------------------------------------------------------------------
    # Advanced tests
    # ------------------------------------------------------------------

    def add_advanced_test(self, patient_id: int, test: AdvancedTest) -> AdvancedTest:
        self.get_patient(patient_id)
        with self._lock:
            test.id = self._next_id("tests")
            test.patient_id = patient_id
            self._tests[test.id] = test
        return test

    def get_advanced_test(self, test_id: int) -> AdvancedTest:
        return self._require(self._tests, test_id, "advanced_test")

    def list_advanced_tests(self, patient_id: Optional[int] = None) -> List[AdvancedTest]:
        """Newest first, including tests without a glucose value; all patients when patient_id is None."""
        tests = [t for t in self._tests.values() if patient_id is None or t.patient_id == patient_id]
        return sorted(tests, key=lambda t: (t.measured_at, t.id), reverse=True)

    def fetch_latest_advanced_test(self, patient_id: int) -> Optional[AdvancedTest]:
        tests = self.list_advanced_tests(patient_id)
        return tests[0] if tests else None

    def update_advanced_test(self, test_id: int, **fields) -> AdvancedTest:
        return self._update(self._tests, test_id, "advanced_test", fields)

    def fetch_advanced_tests_ordered(self, patient_id: int) -> List[AdvancedTest]:
        """Oldest first, only tests that carry a glucose value."""
        tests = [
            t for t in self._tests.values()
            if t.patient_id == patient_id and t.blood_glucose_mgdl is not None
        ]
        return sorted(tests, key=lambda t: (t.measured_at, t.id))

    # ------------------------------------------------------------------
    # Assessments, treatments, referrals
    # ------------------------------------------------------------------

    def add_assessment(self, **fields) -> HealthAssessment:
        self.get_patient(fields["patient_id"])
        with self._lock:
            assessment = HealthAssessment(id=self._next_id("assessments"), **fields)
            self._assessments[assessment.id] = assessment
        return assessment

    def get_assessment(self, assessment_id: int) -> HealthAssessment:
        return self._require(self._assessments, assessment_id, "assessment")

    def list_assessments(self, patient_id: Optional[int] = None) -> List[HealthAssessment]:
        """Newest first; all patients when patient_id is None."""
        rows = [
            a for a in self._assessments.values()
            if patient_id is None or a.patient_id == patient_id
        ]
        return sorted(rows, key=lambda a: (a.assessed_at, a.id), reverse=True)

    def update_assessment(self, assessment_id: int, **fields) -> HealthAssessment:
        return self._update(self._assessments, assessment_id, "assessment", fields)

    def add_treatment(self, **fields) -> Treatment:
        self.get_patient(fields["patient_id"])
        with self._lock:
            treatment = Treatment(id=self._next_id("treatments"), **fields)
            self._treatments[treatment.id] = treatment
        return treatment

    def get_treatment(self, treatment_id: int) -> Treatment:
        return self._require(self._treatments, treatment_id, "treatment")

    def list_treatments(self, patient_id: Optional[int] = None) -> List[Treatment]:
        rows = [
            t for t in self._treatments.values()
            if patient_id is None or t.patient_id == patient_id
        ]
        return sorted(rows, key=lambda t: (t.prescribed_at, t.id), reverse=True)

    def update_treatment(self, treatment_id: int, **fields) -> Treatment:
        return self._update(self._treatments, treatment_id, "treatment", fields)

    def add_referral(self, **fields) -> Referral:
        self.get_patient(fields["patient_id"])
        with self._lock:
            referral = Referral(id=self._next_id("referrals"), **fields)
            self._referrals[referral.id] = referral
        return referral

    def get_referral(self, referral_id: int) -> Referral:
        return self._require(self._referrals, referral_id, "referral")

    def update_referral_status(self, referral_id: int, status: str) -> Referral:
        with self._lock:
            referral = self._require(self._referrals, referral_id, "referral")
            referral.status = status
        return referral

    def list_referrals(self, patient_id: Optional[int] = None, status: Optional[str] = None) -> List[Referral]:
        """Newest first, optionally filtered by patient and status."""
        rows = [
            r for r in self._referrals.values()
            if (patient_id is None or r.patient_id == patient_id)
            and (status is None or r.status == status)
        ]
        return sorted(rows, key=lambda r: (r.referred_at, r.id), reverse=True)

    # ------------------------------------------------------------------
    # Access log & counts
    # ------------------------------------------------------------------

    def log_access(self, operator_id: str, action: str, patient_id: Optional[int] = None) -> None:
        with self._lock:
            self._access_log.append(
                AccessLogEntry(operator_id=operator_id, action=action, patient_id=patient_id)
            )

    def access_log(self) -> List[AccessLogEntry]:
        return list(self._access_log)

    def counts(self) -> Dict[str, int]:
        return {
            "patients": len(self._patients),
            "physical_exams": len(self._exams),
            "advanced_tests": len(self._tests),
            "assessments": len(self._assessments),
            "treatments": len(self._treatments),
            "referrals": len(self._referrals),
        }
