"""Data models for the patient-records persistence layer."""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, Optional


def _iso(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass
class Patient:
    """A registered posyandu patient."""
    id: int
    patient_code: str            # e.g. "P20261018001"
    name: str
    birth_date: date
    sex: Optional[str] = None    # "M" / "F"; not consulted by any clinical rule
    address: Optional[str] = None
    phone: Optional[str] = None
    registered_by: str = ""
    registered_at: datetime = field(default_factory=datetime.now)

    def age_years(self, today: Optional[date] = None) -> int:
        today = today or date.today()
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    def to_dict(self) -> Dict[str, Any]:
        data = {k: _iso(v) for k, v in asdict(self).items()}
        data["age"] = self.age_years()
        return data


@dataclass
class PhysicalExam:
    """
    One physical examination. Every measurement is optional; clinical
    rules use a field only when it is present.
    """
    measured_at: datetime
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    waist_cm: Optional[float] = None
    systolic: Optional[int] = None
    diastolic: Optional[int] = None
    id: Optional[int] = None
    patient_id: Optional[int] = None
    notes: Optional[str] = None
    recorded_by: str = ""

    @property
    def bmi(self) -> Optional[float]:
        """weight / height_m², or None when either side is missing."""
        if not self.height_cm or self.weight_kg is None:
            return None
        height_m = self.height_cm / 100
        return self.weight_kg / (height_m * height_m)

    @property
    def has_blood_pressure(self) -> bool:
        return self.systolic is not None and self.diastolic is not None

    def to_dict(self) -> Dict[str, Any]:
        return {k: _iso(v) for k, v in asdict(self).items()}


@dataclass
class AdvancedTest:
    """One advanced lab test (blood glucose, mg/dL)."""
    measured_at: datetime
    blood_glucose_mgdl: Optional[float] = None
    id: Optional[int] = None
    patient_id: Optional[int] = None
    notes: Optional[str] = None
    recorded_by: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {k: _iso(v) for k, v in asdict(self).items()}


@dataclass
class HealthAssessment:
    """A triage decision, optionally linked to the exam and test it was based on."""
    id: int
    patient_id: int
    category: str
    physical_exam_id: Optional[int] = None
    advanced_test_id: Optional[int] = None
    findings: Optional[str] = None
    recommendation: Optional[str] = None
    assessed_by: str = ""
    assessed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {k: _iso(v) for k, v in asdict(self).items()}


@dataclass
class Treatment:
    """A prescription issued to a patient."""
    id: int
    patient_id: int
    medication: str
    dosage: str
    frequency: str
    assessment_id: Optional[int] = None
    duration: Optional[str] = None
    notes: Optional[str] = None
    prescribed_by: str = ""
    prescribed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {k: _iso(v) for k, v in asdict(self).items()}


@dataclass
class Referral:
    """A referral to a higher-level facility."""
    id: int
    patient_id: int
    facility_name: str
    reason: str
    status: str = "pending"
    assessment_id: Optional[int] = None
    referred_by: str = ""
    referred_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {k: _iso(v) for k, v in asdict(self).items()}


@dataclass
class AccessLogEntry:
    """Audit trail row: who did what to which patient."""
    operator_id: str
    action: str
    patient_id: Optional[int] = None
    logged_at: datetime = field(default_factory=datetime.now)
