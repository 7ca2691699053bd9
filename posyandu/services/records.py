"""
Records Service

Orchestrates the HTTP use cases: validates record ownership, calls the
health risk engine, writes to the store and writes the access log.
Returns plain dicts ready for the API envelope.
"""
from __future__ import annotations

import calendar
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from posyandu.core.clinical import (
    HealthRiskEngine,
    RiskCategory,
    categorize_bmi,
    categorize_glucose,
)
from posyandu.core.storage import (
    AdvancedTest,
    HealthAssessment,
    InMemoryRecordStore,
    PhysicalExam,
)
from posyandu.models import (
    AdvancedTestCreate,
    AdvancedTestUpdate,
    AssessmentCreate,
    AssessmentUpdate,
    PatientCreate,
    PatientUpdate,
    PhysicalExamCreate,
    PhysicalExamUpdate,
    ReferralCreate,
    TreatmentCreate,
    TreatmentUpdate,
)
from posyandu.utils import (
    AssessmentError,
    RecordMismatchError,
    RecordNotFoundError,
    RecordProtectedError,
    get_logger,
)

logger = get_logger(__name__)

# Days after which an open assessment is due for follow-up
FOLLOW_UP_AFTER_DAYS = {
    RiskCategory.REFER: 3,
    RiskCategory.NEEDS_ATTENTION: 7,
}
ROUTINE_EXAM_INTERVAL_DAYS = 30
ATTENTION_WINDOW_DAYS = 30
MONTHLY_STATS_MONTHS = 6


def normalize_timestamp(value: Optional[datetime]) -> datetime:
    """
    Naive local time for storage. Client timestamps with an offset are
    converted to local time; a missing timestamp means now.
    """
    if value is None:
        return datetime.now()
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def months_before(moment: datetime, months: int) -> datetime:
    index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _changes(payload: BaseModel, required: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Fields the client sent; explicit nulls are dropped for required fields."""
    changes = payload.model_dump(exclude_unset=True)
    return {k: v for k, v in changes.items() if not (k in required and v is None)}


def exam_row(exam: PhysicalExam) -> Dict[str, Any]:
    row = exam.to_dict()
    bmi = exam.bmi
    row["bmi"] = round(bmi, 1) if bmi is not None else None
    row["bmi_category"] = categorize_bmi(bmi)
    return row


def advanced_test_row(test: AdvancedTest) -> Dict[str, Any]:
    row = test.to_dict()
    row["glucose_category"] = categorize_glucose(test.blood_glucose_mgdl).value
    return row


class RecordsService:
    """Use-case layer between the FastAPI routes and the store."""

    def __init__(self, store: InMemoryRecordStore, engine: Optional[HealthRiskEngine] = None):
        self.store = store
        self.engine = engine or HealthRiskEngine(store)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _audit(self, operator_id: str, action: str, patient_id: Optional[int] = None) -> None:
        """Best-effort access log; a failure here never fails the request."""
        try:
            self.store.log_access(operator_id, action, patient_id)
        except Exception as exc:
            logger.warning(f"Failed to log access ({action}): {exc}")

    def _owned_exam(self, patient_id: int, exam_id: int) -> PhysicalExam:
        try:
            exam = self.store.get_physical_exam(exam_id)
        except RecordNotFoundError:
            exam = None
        if exam is None or exam.patient_id != patient_id:
            raise RecordMismatchError(
                "Physical exam not found or does not belong to the patient",
                record_type="physical_exam",
                details={"physical_exam_id": exam_id, "patient_id": patient_id},
            )
        return exam

    def _owned_test(self, patient_id: int, test_id: int) -> AdvancedTest:
        try:
            test = self.store.get_advanced_test(test_id)
        except RecordNotFoundError:
            test = None
        if test is None or test.patient_id != patient_id:
            raise RecordMismatchError(
                "Advanced test not found or does not belong to the patient",
                record_type="advanced_test",
                details={"advanced_test_id": test_id, "patient_id": patient_id},
            )
        return test

    def _owned_assessment(self, patient_id: int, assessment_id: int) -> HealthAssessment:
        try:
            assessment = self.store.get_assessment(assessment_id)
        except RecordNotFoundError:
            assessment = None
        if assessment is None or assessment.patient_id != patient_id:
            raise RecordMismatchError(
                "Health assessment not found for this patient",
                record_type="assessment",
                details={"assessment_id": assessment_id, "patient_id": patient_id},
            )
        return assessment

    def _assessment_row(self, assessment: HealthAssessment) -> Dict[str, Any]:
        row = assessment.to_dict()
        exam = self.store.get_physical_exam(assessment.physical_exam_id) \
            if assessment.physical_exam_id else None
        test = self.store.get_advanced_test(assessment.advanced_test_id) \
            if assessment.advanced_test_id else None
        row["bmi"] = exam_row(exam)["bmi"] if exam else None
        row["blood_glucose_mgdl"] = test.blood_glucose_mgdl if test else None
        row["glucose_category"] = categorize_glucose(row["blood_glucose_mgdl"]).value
        return row

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def register_patient(self, payload: PatientCreate, operator_id: str) -> Dict[str, Any]:
        patient = self.store.add_patient(
            name=payload.name,
            birth_date=payload.birth_date,
            sex=payload.sex,
            address=payload.address,
            phone=payload.phone,
            registered_by=operator_id,
        )
        self._audit(operator_id, "CREATE_PATIENT", patient.id)
        return patient.to_dict()

    def patient_detail(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        exam = self.store.fetch_latest_physical_exam(patient_id)
        test = self.store.fetch_latest_advanced_test(patient_id)
        assessments = self.store.list_assessments(patient_id)
        self._audit(operator_id, "VIEW_PATIENT", patient_id)
        return {
            "patient": patient.to_dict(),
            "latest_physical_exam": exam_row(exam) if exam else None,
            "latest_advanced_test": advanced_test_row(test) if test else None,
            "latest_assessment": self._assessment_row(assessments[0]) if assessments else None,
        }

    def list_patients(self, operator_id: str, search: Optional[str] = None) -> Dict[str, Any]:
        rows = []
        for patient in self.store.list_patients(search):
            exam = self.store.fetch_latest_physical_exam(patient.id)
            row = patient.to_dict()
            row["last_exam_at"] = exam.measured_at.isoformat() if exam else None
            rows.append(row)
        self._audit(operator_id, "VIEW_PATIENTS")
        return {"patients": rows, "total": len(rows)}

    def update_patient(self, patient_id: int, payload: PatientUpdate, operator_id: str) -> Dict[str, Any]:
        patient = self.store.update_patient(patient_id, **_changes(payload, required=("name", "birth_date")))
        self._audit(operator_id, "UPDATE_PATIENT", patient_id)
        return patient.to_dict()

    def delete_patient(self, patient_id: int, operator_id: str) -> None:
        """Patients are never removed; the request is refused once the id is known."""
        self.store.get_patient(patient_id)
        raise RecordProtectedError(
            "Patient records cannot be deleted", record_type="patient", record_id=patient_id
        )

    # ------------------------------------------------------------------
    # Physical exams & advanced tests
    # ------------------------------------------------------------------

    def record_exam(self, payload: PhysicalExamCreate, operator_id: str) -> Dict[str, Any]:
        exam = PhysicalExam(
            measured_at=normalize_timestamp(payload.measured_at),
            height_cm=payload.height_cm,
            weight_kg=payload.weight_kg,
            waist_cm=payload.waist_cm,
            systolic=payload.systolic,
            diastolic=payload.diastolic,
            notes=payload.notes,
            recorded_by=operator_id,
        )
        exam = self.store.add_physical_exam(payload.patient_id, exam)
        self._audit(operator_id, "CREATE_PHYSICAL_EXAM", payload.patient_id)
        return exam_row(exam)

    def list_exams(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        exams = self.store.list_physical_exams(patient_id)
        self._audit(operator_id, "VIEW_PATIENT_EXAMS", patient_id)
        return {
            "patient": patient.to_dict(),
            "physical_exams": [exam_row(e) for e in exams],
        }

    def get_exam(self, exam_id: int, operator_id: str) -> Dict[str, Any]:
        exam = self.store.get_physical_exam(exam_id)
        patient = self.store.get_patient(exam.patient_id)
        self._audit(operator_id, "VIEW_PHYSICAL_EXAM", exam.patient_id)
        return {**exam_row(exam), "patient": patient.to_dict()}

    def update_exam(self, exam_id: int, payload: PhysicalExamUpdate, operator_id: str) -> Dict[str, Any]:
        exam = self.store.update_physical_exam(exam_id, **_changes(payload))
        self._audit(operator_id, "UPDATE_PHYSICAL_EXAM", exam.patient_id)
        return exam_row(exam)

    def delete_exam(self, exam_id: int, operator_id: str) -> Dict[str, Any]:
        exam = self.store.delete_physical_exam(exam_id)
        self._audit(operator_id, "DELETE_PHYSICAL_EXAM", exam.patient_id)
        return exam_row(exam)

    def record_test(self, payload: AdvancedTestCreate, operator_id: str) -> Dict[str, Any]:
        test = AdvancedTest(
            measured_at=normalize_timestamp(payload.measured_at),
            blood_glucose_mgdl=payload.blood_glucose_mgdl,
            notes=payload.notes,
            recorded_by=operator_id,
        )
        test = self.store.add_advanced_test(payload.patient_id, test)
        self._audit(operator_id, "CREATE_ADVANCED_TEST", payload.patient_id)
        return advanced_test_row(test)

    def list_tests(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        tests = self.store.list_advanced_tests(patient_id)
        trend = self.engine.analyze_trend(patient_id)
        self._audit(operator_id, "VIEW_PATIENT_ADVANCED_TESTS", patient_id)
        return {
            "patient": patient.to_dict(),
            "advanced_tests": [advanced_test_row(t) for t in tests],
            "trend_analysis": trend.to_dict(),
        }

    def get_test(self, test_id: int, operator_id: str) -> Dict[str, Any]:
        test = self.store.get_advanced_test(test_id)
        patient = self.store.get_patient(test.patient_id)
        self._audit(operator_id, "VIEW_ADVANCED_TEST", test.patient_id)
        return {**advanced_test_row(test), "patient": patient.to_dict()}

    def update_test(self, test_id: int, payload: AdvancedTestUpdate, operator_id: str) -> Dict[str, Any]:
        test = self.store.update_advanced_test(test_id, **_changes(payload))
        self._audit(operator_id, "UPDATE_ADVANCED_TEST", test.patient_id)
        return advanced_test_row(test)

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def create_assessment(self, payload: AssessmentCreate, operator_id: str) -> Dict[str, Any]:
        patient_id = payload.patient_id
        self.store.get_patient(patient_id)

        exam = self._owned_exam(patient_id, payload.physical_exam_id) \
            if payload.physical_exam_id else None
        test = self._owned_test(patient_id, payload.advanced_test_id) \
            if payload.advanced_test_id else None

        category = payload.category
        recommendation = payload.recommendation
        has_readings = exam is not None or test is not None

        if category is None and has_readings:
            category = self.engine.classify(exam, test)
        if not recommendation and has_readings:
            recommendation = self.engine.generate_recommendation(exam, test, category)

        if category is None:
            raise AssessmentError(
                "Assessment category is required, or include an exam or test to classify automatically"
            )

        assessment = self.store.add_assessment(
            patient_id=patient_id,
            category=RiskCategory(category).value,
            physical_exam_id=payload.physical_exam_id,
            advanced_test_id=payload.advanced_test_id,
            findings=payload.findings,
            recommendation=recommendation or None,
            assessed_by=operator_id,
        )
        logger.info(f"Assessment {assessment.id} for patient {patient_id}: {assessment.category}")
        self._audit(operator_id, "CREATE_HEALTH_ASSESSMENT", patient_id)
        return self._assessment_row(assessment)

    def list_assessments(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        rows = [self._assessment_row(a) for a in self.store.list_assessments(patient_id)]
        self._audit(operator_id, "VIEW_PATIENT_ASSESSMENTS", patient_id)
        return {"patient": patient.to_dict(), "assessments": rows}

    def get_assessment(self, assessment_id: int, operator_id: str) -> Dict[str, Any]:
        assessment = self.store.get_assessment(assessment_id)
        patient = self.store.get_patient(assessment.patient_id)
        self._audit(operator_id, "VIEW_HEALTH_ASSESSMENT", assessment.patient_id)
        return {**self._assessment_row(assessment), "patient": patient.to_dict()}

    def update_assessment(self, assessment_id: int, payload: AssessmentUpdate, operator_id: str) -> Dict[str, Any]:
        """Category, findings and recommendation only; linked records stay as recorded."""
        changes = _changes(payload, required=("category",))
        if "category" in changes:
            changes["category"] = RiskCategory(changes["category"]).value
        assessment = self.store.update_assessment(assessment_id, **changes)
        self._audit(operator_id, "UPDATE_HEALTH_ASSESSMENT", assessment.patient_id)
        return self._assessment_row(assessment)

    # ------------------------------------------------------------------
    # Treatments
    # ------------------------------------------------------------------

    def prescribe_treatment(self, payload: TreatmentCreate, operator_id: str) -> Dict[str, Any]:
        self.store.get_patient(payload.patient_id)
        if payload.assessment_id:
            self._owned_assessment(payload.patient_id, payload.assessment_id)
        treatment = self.store.add_treatment(
            patient_id=payload.patient_id,
            assessment_id=payload.assessment_id,
            medication=payload.medication,
            dosage=payload.dosage,
            frequency=payload.frequency,
            duration=payload.duration,
            notes=payload.notes,
            prescribed_by=operator_id,
        )
        self._audit(operator_id, "CREATE_TREATMENT", payload.patient_id)
        return treatment.to_dict()

    def list_treatments(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        treatments = self.store.list_treatments(patient_id)
        self._audit(operator_id, "VIEW_PATIENT_TREATMENTS", patient_id)
        return {
            "patient": patient.to_dict(),
            "treatments": [t.to_dict() for t in treatments],
        }

    def get_treatment(self, treatment_id: int, operator_id: str) -> Dict[str, Any]:
        treatment = self.store.get_treatment(treatment_id)
        patient = self.store.get_patient(treatment.patient_id)
        self._audit(operator_id, "VIEW_TREATMENT", treatment.patient_id)
        return {**treatment.to_dict(), "patient": patient.to_dict()}

    def update_treatment(self, treatment_id: int, payload: TreatmentUpdate, operator_id: str) -> Dict[str, Any]:
        treatment = self.store.get_treatment(treatment_id)
        changes = _changes(payload, required=("medication", "dosage", "frequency"))
        if changes.get("assessment_id"):
            self._owned_assessment(treatment.patient_id, changes["assessment_id"])
        treatment = self.store.update_treatment(treatment_id, **changes)
        self._audit(operator_id, "UPDATE_TREATMENT", treatment.patient_id)
        return treatment.to_dict()

    def delete_treatment(self, treatment_id: int, operator_id: str) -> None:
        """Prescriptions are part of the medical record and are never removed."""
        self.store.get_treatment(treatment_id)
        raise RecordProtectedError(
            "Treatment records cannot be deleted", record_type="treatment", record_id=treatment_id
        )

    # ------------------------------------------------------------------
    # Referrals
    # ------------------------------------------------------------------

    def create_referral(self, payload: ReferralCreate, operator_id: str) -> Dict[str, Any]:
        self.store.get_patient(payload.patient_id)
        if payload.assessment_id:
            self._owned_assessment(payload.patient_id, payload.assessment_id)

        indicators = self.engine.detect_critical_indicators(payload.patient_id)
        referral = self.store.add_referral(
            patient_id=payload.patient_id,
            assessment_id=payload.assessment_id,
            facility_name=payload.facility_name,
            reason=payload.reason,
            status=payload.status,
            referred_by=operator_id,
        )
        self._audit(operator_id, "CREATE_REFERRAL", payload.patient_id)
        return {**referral.to_dict(), "critical_indicators": indicators.to_dict()}

    def update_referral_status(self, referral_id: int, status: str, operator_id: str) -> Dict[str, Any]:
        referral = self.store.update_referral_status(referral_id, status)
        self._audit(operator_id, f"UPDATE_REFERRAL_{status.upper()}", referral.patient_id)
        return referral.to_dict()

    def list_referrals(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        referrals = self.store.list_referrals(patient_id)
        indicators = self.engine.detect_critical_indicators(patient_id)
        self._audit(operator_id, "VIEW_PATIENT_REFERRALS", patient_id)
        return {
            "patient": patient.to_dict(),
            "referrals": [r.to_dict() for r in referrals],
            "latest_critical_indicators": indicators.to_dict(),
        }

    def get_referral(self, referral_id: int, operator_id: str) -> Dict[str, Any]:
        referral = self.store.get_referral(referral_id)
        patient = self.store.get_patient(referral.patient_id)
        self._audit(operator_id, "VIEW_REFERRAL", referral.patient_id)
        return {**referral.to_dict(), "patient": patient.to_dict()}

    def list_all_referrals(
        self,
        operator_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Every referral, newest first; `search` filters patients as the patient listing does."""
        patients = {p.id: p for p in self.store.list_patients(search)}
        rows = []
        for referral in self.store.list_referrals(status=status):
            patient = patients.get(referral.patient_id)
            if patient is None:
                continue
            rows.append({
                **referral.to_dict(),
                "patient_code": patient.patient_code,
                "patient_name": patient.name,
                "patient_age": patient.age_years(),
            })
        self._audit(operator_id, "VIEW_REFERRALS")
        return {"referrals": rows, "total": len(rows)}

    def check_critical(self, patient_id: int, operator_id: str) -> Dict[str, Any]:
        patient = self.store.get_patient(patient_id)
        indicators = self.engine.detect_critical_indicators(patient_id)
        self._audit(operator_id, "CHECK_CRITICAL_INDICATORS", patient_id)
        return {"patient": patient.to_dict(), **indicators.to_dict()}

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        today = now.date()
        patient_ids = [p.id for p in self.store.list_patients()]
        critical = self.engine.patients_with_critical_indicators(patient_ids)

        exams = self.store.list_physical_exams()
        assessments = self.store.list_assessments()
        categories = Counter(a.category for a in assessments)
        statuses = Counter(r.status for r in self.store.list_referrals())

        attention_since = now - timedelta(days=ATTENTION_WINDOW_DAYS)
        needing_attention = {
            a.patient_id for a in assessments
            if a.category != RiskCategory.NORMAL.value and a.assessed_at >= attention_since
        }

        return {
            "totals": self.store.counts(),
            "assessment_categories": {c.value: categories.get(c.value, 0) for c in RiskCategory},
            "referral_statuses": dict(statuses),
            "patients_with_critical_indicators": len(critical),
            "critical_patients": sorted(critical),
            "exams_today": sum(1 for e in exams if e.measured_at.date() == today),
            "tests_today": sum(1 for t in self.store.list_advanced_tests() if t.measured_at.date() == today),
            "assessments_today": sum(1 for a in assessments if a.assessed_at.date() == today),
            "pending_referrals": statuses.get("pending", 0),
            "patients_needing_attention": len(needing_attention),
            "monthly_exams": self.monthly_exam_counts(exams, now),
        }

    @staticmethod
    def monthly_exam_counts(exams: List[PhysicalExam], now: datetime) -> List[Dict[str, int]]:
        """Exams per calendar month over the last six months, newest month first."""
        since = months_before(now, MONTHLY_STATS_MONTHS)
        counts = Counter(
            (e.measured_at.year, e.measured_at.month) for e in exams if e.measured_at >= since
        )
        months = sorted(counts, reverse=True)[:MONTHLY_STATS_MONTHS]
        return [{"year": y, "month": m, "exam_count": counts[(y, m)]} for y, m in months]

    def recent_activity(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Latest records of every kind, merged newest first."""
        patients = {p.id: p for p in self.store.list_patients()}
        events = []

        def add(kind, record_id, patient_id, operator_id, occurred_at, description):
            patient = patients.get(patient_id)
            events.append({
                "type": kind,
                "id": record_id,
                "patient_id": patient_id,
                "patient_code": patient.patient_code if patient else None,
                "patient_name": patient.name if patient else None,
                "operator_id": operator_id,
                "occurred_at": occurred_at,
                "description": description,
            })

        for e in self.store.list_physical_exams():
            add("physical_exam", e.id, e.patient_id, e.recorded_by, e.measured_at, "Physical exam")
        for t in self.store.list_advanced_tests():
            add("advanced_test", t.id, t.patient_id, t.recorded_by, t.measured_at, "Advanced test")
        for a in self.store.list_assessments():
            add("assessment", a.id, a.patient_id, a.assessed_by, a.assessed_at,
                f"Health assessment - {a.category}")
        for t in self.store.list_treatments():
            add("treatment", t.id, t.patient_id, t.prescribed_by, t.prescribed_at,
                f"Treatment - {t.medication}")
        for r in self.store.list_referrals():
            add("referral", r.id, r.patient_id, r.referred_by, r.referred_at,
                f"Referral to {r.facility_name}")

        events.sort(key=lambda ev: ev["occurred_at"], reverse=True)
        recent = events[:limit]
        for event in recent:
            event["occurred_at"] = event["occurred_at"].isoformat()
        return recent

    def pending_follow_ups(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Patients whose latest assessment is overdue for follow-up (refer
        after 3 days, needs_attention after 7), most severe first, plus
        patients with no physical exam in the last 30 days.
        """
        now = now or datetime.now()
        overdue_assessments: List[Dict[str, Any]] = []
        overdue_exams: List[Dict[str, Any]] = []

        for patient in self.store.list_patients():
            assessments = self.store.list_assessments(patient.id)
            if assessments:
                latest = assessments[0]
                category = RiskCategory(latest.category)
                days = (now - latest.assessed_at).days
                threshold = FOLLOW_UP_AFTER_DAYS.get(category)
                if threshold is not None and days >= threshold:
                    overdue_assessments.append({
                        "patient": patient.to_dict(),
                        "category": category.value,
                        "priority": category.severity,
                        "days_since_assessment": days,
                        "assessed_at": latest.assessed_at.isoformat(),
                        "recommendation": latest.recommendation,
                    })

            exam = self.store.fetch_latest_physical_exam(patient.id)
            days_since_exam = (now - exam.measured_at).days if exam else None
            if days_since_exam is None or days_since_exam >= ROUTINE_EXAM_INTERVAL_DAYS:
                overdue_exams.append({
                    "patient": patient.to_dict(),
                    "last_exam_at": exam.measured_at.isoformat() if exam else None,
                    "days_since_exam": days_since_exam,
                })

        overdue_assessments.sort(key=lambda r: (-r["priority"], r["assessed_at"]))
        overdue_exams.sort(
            key=lambda r: (r["days_since_exam"] is not None, -(r["days_since_exam"] or 0))
        )
        return {"overdue_assessments": overdue_assessments, "overdue_exams": overdue_exams}
