"""
API Models Package
"""
from .schemas import (
    ApiResponse,
    HealthResponse,
    PatientCreate,
    PatientUpdate,
    PhysicalExamCreate,
    PhysicalExamUpdate,
    AdvancedTestCreate,
    AdvancedTestUpdate,
    AssessmentCreate,
    AssessmentUpdate,
    TreatmentCreate,
    TreatmentUpdate,
    ReferralCreate,
    ReferralStatus,
    ReferralUpdate,
    MonthlyExamCount,
    DashboardSummary,
)

__all__ = [
    "ApiResponse",
    "HealthResponse",
    "PatientCreate",
    "PatientUpdate",
    "PhysicalExamCreate",
    "PhysicalExamUpdate",
    "AdvancedTestCreate",
    "AdvancedTestUpdate",
    "AssessmentCreate",
    "AssessmentUpdate",
    "TreatmentCreate",
    "TreatmentUpdate",
    "ReferralCreate",
    "ReferralStatus",
    "ReferralUpdate",
    "MonthlyExamCount",
    "DashboardSummary",
]
