"""
API request/response models.

Range constraints here are the input-validation layer: the clinical
rules accept whatever numeric value reaches them.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from posyandu import config
from posyandu.core.clinical import RiskCategory

ReferralStatus = Literal["pending", "accepted", "completed", "cancelled"]


class ApiResponse(BaseModel):
    """Envelope returned by every endpoint."""
    success: bool = True
    message: str = ""
    data: Any = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    uptime_seconds: float


# ---- Patients ----

class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    birth_date: date
    sex: Optional[Literal["M", "F"]] = None
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)

    class Config:
        json_schema_extra = {"example": {
            "name": "Siti Aminah", "birth_date": "1952-04-17", "sex": "F",
            "address": "RT 02 / RW 05", "phone": "081234567890"
        }}


class PatientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    birth_date: Optional[date] = None
    sex: Optional[Literal["M", "F"]] = None
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)


# ---- Physical exams ----

class PhysicalExamCreate(BaseModel):
    patient_id: int = Field(..., ge=1)
    height_cm: Optional[float] = Field(None, ge=50, le=250)
    weight_kg: Optional[float] = Field(None, ge=10, le=300)
    waist_cm: Optional[float] = Field(None, ge=30, le=200)
    systolic: Optional[int] = Field(None, ge=50, le=300)
    diastolic: Optional[int] = Field(None, ge=30, le=200)
    measured_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {"example": {
            "patient_id": 1, "height_cm": 155, "weight_kg": 62, "waist_cm": 90,
            "systolic": 150, "diastolic": 95
        }}


class PhysicalExamUpdate(BaseModel):
    """Fields sent replace the stored values; patient and timestamp are fixed."""
    height_cm: Optional[float] = Field(None, ge=50, le=250)
    weight_kg: Optional[float] = Field(None, ge=10, le=300)
    waist_cm: Optional[float] = Field(None, ge=30, le=200)
    systolic: Optional[int] = Field(None, ge=50, le=300)
    diastolic: Optional[int] = Field(None, ge=30, le=200)
    notes: Optional[str] = None


# ---- Advanced tests ----

class AdvancedTestCreate(BaseModel):
    patient_id: int = Field(..., ge=1)
    blood_glucose_mgdl: Optional[float] = Field(
        None, ge=config.GLUCOSE_MIN_MGDL, le=config.GLUCOSE_MAX_MGDL
    )
    measured_at: Optional[datetime] = None
    notes: Optional[str] = None


class AdvancedTestUpdate(BaseModel):
    blood_glucose_mgdl: Optional[float] = Field(
        None, ge=config.GLUCOSE_MIN_MGDL, le=config.GLUCOSE_MAX_MGDL
    )
    notes: Optional[str] = None


# ---- Assessments ----

class AssessmentCreate(BaseModel):
    patient_id: int = Field(..., ge=1)
    physical_exam_id: Optional[int] = Field(None, ge=1)
    advanced_test_id: Optional[int] = Field(None, ge=1)
    category: Optional[RiskCategory] = None
    findings: Optional[str] = None
    recommendation: Optional[str] = None


class AssessmentUpdate(BaseModel):
    category: Optional[RiskCategory] = None
    findings: Optional[str] = None
    recommendation: Optional[str] = None


# ---- Treatments ----

class TreatmentCreate(BaseModel):
    patient_id: int = Field(..., ge=1)
    assessment_id: Optional[int] = Field(None, ge=1)
    medication: str = Field(..., min_length=1, max_length=100)
    dosage: str = Field(..., min_length=1, max_length=50)
    frequency: str = Field(..., min_length=1, max_length=50)
    duration: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class TreatmentUpdate(BaseModel):
    assessment_id: Optional[int] = Field(None, ge=1)
    medication: Optional[str] = Field(None, min_length=1, max_length=100)
    dosage: Optional[str] = Field(None, min_length=1, max_length=50)
    frequency: Optional[str] = Field(None, min_length=1, max_length=50)
    duration: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


# ---- Referrals ----

class ReferralCreate(BaseModel):
    patient_id: int = Field(..., ge=1)
    assessment_id: Optional[int] = Field(None, ge=1)
    facility_name: str = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., min_length=1)
    status: ReferralStatus = "pending"


class ReferralUpdate(BaseModel):
    status: ReferralStatus


# ---- Dashboard ----

class MonthlyExamCount(BaseModel):
    year: int
    month: int
    exam_count: int


class DashboardSummary(BaseModel):
    totals: Dict[str, int]
    assessment_categories: Dict[str, int]
    referral_statuses: Dict[str, int]
    patients_with_critical_indicators: int
    critical_patients: List[int] = []
    exams_today: int = 0
    tests_today: int = 0
    assessments_today: int = 0
    pending_referrals: int = 0
    patients_needing_attention: int = 0
    monthly_exams: List[MonthlyExamCount] = []
