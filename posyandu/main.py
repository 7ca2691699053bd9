"""
Posyandu Health Records - FastAPI Application

Main application entry point with API endpoints for:
- Patient registration
- Physical exams and advanced (blood glucose) tests
- Health assessments with automatic triage
- Treatments and referrals with critical-indicator detection
- Dashboard and pending follow-ups
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from posyandu import config
from posyandu.core.storage import InMemoryRecordStore
from posyandu.models import (
    AdvancedTestCreate,
    AdvancedTestUpdate,
    ApiResponse,
    AssessmentCreate,
    AssessmentUpdate,
    DashboardSummary,
    HealthResponse,
    PatientCreate,
    PatientUpdate,
    PhysicalExamCreate,
    PhysicalExamUpdate,
    ReferralCreate,
    ReferralStatus,
    ReferralUpdate,
    TreatmentCreate,
    TreatmentUpdate,
)
from posyandu.services import RecordsService
from posyandu.utils import PosyanduError, get_logger, setup_logging

setup_logging(config.LOG_LEVEL, config.LOG_FILE or None)
logger = get_logger(__name__)

START_TIME = datetime.now()


# ---- Application Lifespan ----

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{config.APP_NAME} v{config.APP_VERSION} ready to accept requests")
    yield
    logger.info(f"{config.APP_NAME} shut down.")


# ---- FastAPI Application ----

app = FastAPI(
    title=config.APP_NAME,
    description="Patient records, triage and referrals for a community health post",
    version=config.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- In-memory storage (swap for a SQL-backed RecordStore in production) ----
app.state.records_service = RecordsService(InMemoryRecordStore())


@app.exception_handler(PosyanduError)
async def posyandu_error_handler(request: Request, exc: PosyanduError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ---- Dependencies ----

def get_service(request: Request) -> RecordsService:
    return request.app.state.records_service


def get_operator(x_operator_id: Optional[str] = Header(None)) -> str:
    """Caller identity issued by the session layer; recorded, never verified here."""
    return x_operator_id or config.DEFAULT_OPERATOR_ID


def _health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=config.APP_VERSION,
        timestamp=datetime.now().isoformat(),
        uptime_seconds=(datetime.now() - START_TIME).total_seconds(),
    )


# ---- API Endpoints ----

@app.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    """API root - health check."""
    return _health()


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return _health()


# ---- Patients ----

@app.get("/api/v1/patients", response_model=ApiResponse, tags=["Patients"])
async def list_patients(
    search: Optional[str] = Query(None, description="Matches name, patient code or phone"),
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.list_patients(operator, search))


@app.post("/api/v1/patients", response_model=ApiResponse, status_code=201, tags=["Patients"])
async def register_patient(
    payload: PatientCreate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.register_patient(payload, operator)
    return ApiResponse(message="Patient registered", data=data)


@app.get("/api/v1/patients/{patient_id}", response_model=ApiResponse, tags=["Patients"])
async def get_patient(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.patient_detail(patient_id, operator))


@app.put("/api/v1/patients/{patient_id}", response_model=ApiResponse, tags=["Patients"])
async def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.update_patient(patient_id, payload, operator)
    return ApiResponse(message="Patient updated", data=data)


@app.delete("/api/v1/patients/{patient_id}", tags=["Patients"])
async def delete_patient(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    """Always refused (403): patient records are kept for the medical history."""
    service.delete_patient(patient_id, operator)


# ---- Physical exams ----

@app.post("/api/v1/examinations", response_model=ApiResponse, status_code=201, tags=["Examinations"])
async def record_examination(
    payload: PhysicalExamCreate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.record_exam(payload, operator)
    return ApiResponse(message="Physical exam recorded", data=data)


@app.get("/api/v1/patients/{patient_id}/examinations", response_model=ApiResponse, tags=["Examinations"])
async def list_examinations(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.list_exams(patient_id, operator))


@app.get("/api/v1/examinations/{exam_id}", response_model=ApiResponse, tags=["Examinations"])
async def get_examination(
    exam_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.get_exam(exam_id, operator))


@app.put("/api/v1/examinations/{exam_id}", response_model=ApiResponse, tags=["Examinations"])
async def update_examination(
    exam_id: int,
    payload: PhysicalExamUpdate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.update_exam(exam_id, payload, operator)
    return ApiResponse(message="Physical exam updated", data=data)


@app.delete("/api/v1/examinations/{exam_id}", response_model=ApiResponse, tags=["Examinations"])
async def delete_examination(
    exam_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.delete_exam(exam_id, operator)
    return ApiResponse(message="Physical exam deleted", data=data)


# ---- Advanced tests ----

@app.post("/api/v1/advanced-tests", response_model=ApiResponse, status_code=201, tags=["Advanced Tests"])
async def record_advanced_test(
    payload: AdvancedTestCreate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.record_test(payload, operator)
    return ApiResponse(message="Advanced test recorded", data=data)


@app.get("/api/v1/patients/{patient_id}/advanced-tests", response_model=ApiResponse, tags=["Advanced Tests"])
async def list_advanced_tests(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    """Test history (newest first) with glucose bands and the trend analysis."""
    return ApiResponse(data=service.list_tests(patient_id, operator))


@app.get("/api/v1/advanced-tests/{test_id}", response_model=ApiResponse, tags=["Advanced Tests"])
async def get_advanced_test(
    test_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.get_test(test_id, operator))


@app.put("/api/v1/advanced-tests/{test_id}", response_model=ApiResponse, tags=["Advanced Tests"])
async def update_advanced_test(
    test_id: int,
    payload: AdvancedTestUpdate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.update_test(test_id, payload, operator)
    return ApiResponse(message="Advanced test updated", data=data)


# ---- Assessments ----

@app.post("/api/v1/assessments", response_model=ApiResponse, status_code=201, tags=["Assessments"])
async def create_assessment(
    payload: AssessmentCreate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    """
    Record a health assessment.

    Category and recommendation are derived from the referenced exam/test
    when not supplied.
    """
    data = service.create_assessment(payload, operator)
    return ApiResponse(message="Health assessment recorded", data=data)


@app.get("/api/v1/patients/{patient_id}/assessments", response_model=ApiResponse, tags=["Assessments"])
async def list_assessments(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.list_assessments(patient_id, operator))


@app.get("/api/v1/assessments/{assessment_id}", response_model=ApiResponse, tags=["Assessments"])
async def get_assessment(
    assessment_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.get_assessment(assessment_id, operator))


@app.put("/api/v1/assessments/{assessment_id}", response_model=ApiResponse, tags=["Assessments"])
async def update_assessment(
    assessment_id: int,
    payload: AssessmentUpdate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.update_assessment(assessment_id, payload, operator)
    return ApiResponse(message="Health assessment updated", data=data)


# ---- Treatments ----

@app.post("/api/v1/treatments", response_model=ApiResponse, status_code=201, tags=["Treatments"])
async def prescribe_treatment(
    payload: TreatmentCreate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.prescribe_treatment(payload, operator)
    return ApiResponse(message="Treatment recorded", data=data)


@app.get("/api/v1/patients/{patient_id}/treatments", response_model=ApiResponse, tags=["Treatments"])
async def list_treatments(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.list_treatments(patient_id, operator))


@app.get("/api/v1/treatments/{treatment_id}", response_model=ApiResponse, tags=["Treatments"])
async def get_treatment(
    treatment_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.get_treatment(treatment_id, operator))


@app.put("/api/v1/treatments/{treatment_id}", response_model=ApiResponse, tags=["Treatments"])
async def update_treatment(
    treatment_id: int,
    payload: TreatmentUpdate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.update_treatment(treatment_id, payload, operator)
    return ApiResponse(message="Treatment updated", data=data)


@app.delete("/api/v1/treatments/{treatment_id}", tags=["Treatments"])
async def delete_treatment(
    treatment_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    """Always refused (403): prescriptions stay in the medical record."""
    service.delete_treatment(treatment_id, operator)


# ---- Referrals ----

@app.get("/api/v1/referrals", response_model=ApiResponse, tags=["Referrals"])
async def list_all_referrals(
    status: Optional[ReferralStatus] = None,
    search: Optional[str] = None,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.list_all_referrals(operator, status=status, search=search))


@app.post("/api/v1/referrals", response_model=ApiResponse, status_code=201, tags=["Referrals"])
async def create_referral(
    payload: ReferralCreate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.create_referral(payload, operator)
    return ApiResponse(message="Referral created", data=data)


@app.get("/api/v1/referrals/check-critical/{patient_id}", response_model=ApiResponse, tags=["Referrals"])
async def check_critical_indicators(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.check_critical(patient_id, operator))


@app.get("/api/v1/referrals/{referral_id}", response_model=ApiResponse, tags=["Referrals"])
async def get_referral(
    referral_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.get_referral(referral_id, operator))


@app.patch("/api/v1/referrals/{referral_id}", response_model=ApiResponse, tags=["Referrals"])
async def update_referral(
    referral_id: int,
    payload: ReferralUpdate,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    data = service.update_referral_status(referral_id, payload.status, operator)
    return ApiResponse(message="Referral updated", data=data)


@app.delete("/api/v1/referrals/{referral_id}", response_model=ApiResponse, tags=["Referrals"])
async def cancel_referral(
    referral_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    """Referrals are medical records: deleting only marks them cancelled."""
    data = service.update_referral_status(referral_id, "cancelled", operator)
    return ApiResponse(message="Referral cancelled", data=data)


@app.get("/api/v1/patients/{patient_id}/referrals", response_model=ApiResponse, tags=["Referrals"])
async def list_referrals(
    patient_id: int,
    service: RecordsService = Depends(get_service),
    operator: str = Depends(get_operator),
):
    return ApiResponse(data=service.list_referrals(patient_id, operator))


# ---- Dashboard ----

@app.get("/api/v1/dashboard", response_model=ApiResponse, tags=["Dashboard"])
async def dashboard(service: RecordsService = Depends(get_service)):
    return ApiResponse(data=DashboardSummary(**service.dashboard()))


@app.get("/api/v1/dashboard/follow-ups", response_model=ApiResponse, tags=["Dashboard"])
async def pending_follow_ups(service: RecordsService = Depends(get_service)):
    return ApiResponse(data=service.pending_follow_ups())


@app.get("/api/v1/dashboard/recent-activity", response_model=ApiResponse, tags=["Dashboard"])
async def recent_activity(
    limit: int = Query(10, ge=1, le=100),
    service: RecordsService = Depends(get_service),
):
    return ApiResponse(data=service.recent_activity(limit))


# ---- Run with uvicorn ----
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
