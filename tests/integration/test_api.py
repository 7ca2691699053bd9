"""
Integration Tests for the Posyandu API

End-to-end flows through the HTTP layer using async httpx against the
ASGI app. Every test gets a fresh in-memory store.
"""
from datetime import datetime, timedelta, timezone

import pytest
import httpx

from posyandu.core.storage import InMemoryRecordStore
from posyandu.main import app
from posyandu.services import RecordsService
from posyandu.utils import StoreUnavailableError

HEADERS = {"X-Operator-Id": "kader-3"}


@pytest.fixture
async def async_client():
    """Create async test client over a fresh store."""
    app.state.records_service = RecordsService(InMemoryRecordStore())
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        headers=HEADERS,
    ) as client:
        yield client


async def _register(client, name="Siti Aminah"):
    response = await client.post("/api/v1/patients", json={
        "name": name, "birth_date": "1952-04-17", "sex": "F"
    })
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.mark.asyncio
class TestHealthEndpoints:

    async def test_root_endpoint(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    async def test_health_endpoint(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
class TestPatientEndpoints:

    async def test_register_and_fetch(self, async_client):
        patient_id = await _register(async_client)

        response = await async_client.get(f"/api/v1/patients/{patient_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["patient"]["name"] == "Siti Aminah"
        assert body["data"]["patient"]["registered_by"] == "kader-3"

    async def test_missing_patient_uses_error_envelope(self, async_client):
        response = await async_client.get("/api/v1/patients/999")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "NOT_FOUND"
        assert body["details"]["record_id"] == 999

    async def test_invalid_sex_rejected(self, async_client):
        response = await async_client.post("/api/v1/patients", json={
            "name": "X", "birth_date": "1960-01-01", "sex": "Q"
        })
        assert response.status_code == 422


@pytest.mark.asyncio
class TestExaminationEndpoints:

    async def test_exam_returns_bmi(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.post("/api/v1/examinations", json={
            "patient_id": patient_id, "height_cm": 155, "weight_kg": 62,
            "systolic": 150, "diastolic": 95,
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["bmi"] == 25.8
        assert data["bmi_category"] == "overweight"

    async def test_out_of_range_pressure_rejected(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.post("/api/v1/examinations", json={
            "patient_id": patient_id, "systolic": 400,
        })
        assert response.status_code == 422

    async def test_glucose_outside_accepted_range(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.post("/api/v1/advanced-tests", json={
            "patient_id": patient_id, "blood_glucose_mgdl": 900,
        })
        assert response.status_code == 422

    async def test_trend_in_test_listing(self, async_client):
        patient_id = await _register(async_client)
        for day, value in [(1, 95), (8, 130), (15, 160)]:
            response = await async_client.post("/api/v1/advanced-tests", json={
                "patient_id": patient_id,
                "blood_glucose_mgdl": value,
                "measured_at": f"2026-03-{day:02d}T08:00:00",
            })
            assert response.status_code == 201

        response = await async_client.get(f"/api/v1/patients/{patient_id}/advanced-tests")
        assert response.status_code == 200
        data = response.json()["data"]
        assert [t["glucose_category"] for t in data["advanced_tests"]] == [
            "mild_diabetes", "mild_diabetes", "normal_fasting",
        ]
        trend = data["trend_analysis"]
        assert trend["sample_count"] == 3
        assert trend["trend"] == "rising"
        assert trend["last_delta"] == 30.0
        assert trend["mean"] == 128.33

    async def test_trend_without_tests(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.get(f"/api/v1/patients/{patient_id}/advanced-tests")
        assert response.json()["data"]["trend_analysis"]["trend"] == "no_data"


@pytest.mark.asyncio
class TestAssessmentEndpoints:

    async def test_auto_assessment(self, async_client):
        patient_id = await _register(async_client)
        exam = await async_client.post("/api/v1/examinations", json={
            "patient_id": patient_id, "systolic": 145, "diastolic": 85,
        })
        response = await async_client.post("/api/v1/assessments", json={
            "patient_id": patient_id, "physical_exam_id": exam.json()["data"]["id"],
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["category"] == "needs_attention"
        assert data["assessed_by"] == "kader-3"
        assert data["recommendation"]

        listing = await async_client.get(f"/api/v1/patients/{patient_id}/assessments")
        assert len(listing.json()["data"]["assessments"]) == 1

    async def test_assessment_without_inputs(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.post("/api/v1/assessments", json={"patient_id": patient_id})
        assert response.status_code == 400
        assert response.json()["error"] == "ASSESSMENT_ERROR"

    async def test_assessment_with_foreign_exam(self, async_client):
        owner = await _register(async_client, "Budi")
        patient_id = await _register(async_client)
        exam = await async_client.post("/api/v1/examinations", json={"patient_id": owner, "systolic": 120})

        response = await async_client.post("/api/v1/assessments", json={
            "patient_id": patient_id, "physical_exam_id": exam.json()["data"]["id"],
        })
        assert response.status_code == 400
        assert response.json()["error"] == "RECORD_MISMATCH"

    async def test_invalid_category(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.post("/api/v1/assessments", json={
            "patient_id": patient_id, "category": "urgent",
        })
        assert response.status_code == 422


@pytest.mark.asyncio
class TestReferralEndpoints:

    async def test_referral_lifecycle(self, async_client):
        patient_id = await _register(async_client)
        await async_client.post("/api/v1/examinations", json={
            "patient_id": patient_id, "systolic": 190, "diastolic": 115,
        })

        created = await async_client.post("/api/v1/referrals", json={
            "patient_id": patient_id, "facility_name": "RSUD Kota", "reason": "BP 190/115",
        })
        assert created.status_code == 201
        referral = created.json()["data"]
        assert referral["critical_indicators"]["indicators"] == ["Hypertension Crisis"]

        accepted = await async_client.patch(
            f"/api/v1/referrals/{referral['id']}", json={"status": "accepted"}
        )
        assert accepted.json()["data"]["status"] == "accepted"

        cancelled = await async_client.delete(f"/api/v1/referrals/{referral['id']}")
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["status"] == "cancelled"

        listing = await async_client.get(f"/api/v1/patients/{patient_id}/referrals")
        data = listing.json()["data"]
        assert [r["status"] for r in data["referrals"]] == ["cancelled"]
        assert data["latest_critical_indicators"]["has_critical"] is True

    async def test_check_critical(self, async_client):
        patient_id = await _register(async_client)
        await async_client.post("/api/v1/advanced-tests", json={
            "patient_id": patient_id, "blood_glucose_mgdl": 45,
        })
        response = await async_client.get(f"/api/v1/referrals/check-critical/{patient_id}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["has_critical"] is True
        assert data["indicators"] == ["Hypoglycemia"]

    async def test_unknown_referral(self, async_client):
        response = await async_client.patch("/api/v1/referrals/55", json={"status": "completed"})
        assert response.status_code == 404

    async def test_invalid_status(self, async_client):
        patient_id = await _register(async_client)
        created = await async_client.post("/api/v1/referrals", json={
            "patient_id": patient_id, "facility_name": "Puskesmas", "reason": "Check",
        })
        response = await async_client.patch(
            f"/api/v1/referrals/{created.json()['data']['id']}", json={"status": "lost"}
        )
        assert response.status_code == 422


@pytest.mark.asyncio
class TestDashboardEndpoints:

    async def test_dashboard(self, async_client):
        patient_id = await _register(async_client)
        await async_client.post("/api/v1/advanced-tests", json={
            "patient_id": patient_id, "blood_glucose_mgdl": 410,
        })
        await async_client.post("/api/v1/assessments", json={
            "patient_id": patient_id, "category": "refer",
        })

        response = await async_client.get("/api/v1/dashboard")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totals"]["patients"] == 1
        assert data["assessment_categories"]["refer"] == 1
        assert data["critical_patients"] == [patient_id]

    async def test_follow_ups(self, async_client):
        patient_id = await _register(async_client)
        response = await async_client.get("/api/v1/dashboard/follow-ups")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["overdue_assessments"] == []
        assert [row["patient"]["id"] for row in data["overdue_exams"]] == [patient_id]


@pytest.mark.asyncio
class TestTimestampHandling:

    async def test_utc_and_default_timestamps_mix(self, async_client):
        patient_id = await _register(async_client)
        earlier = (datetime.now(timezone.utc) - timedelta(days=2)).strftime("%Y-%m-%dT%H:%M:%SZ")

        for body in (
            {"systolic": 185, "diastolic": 100, "measured_at": earlier},
            {"systolic": 120, "diastolic": 80},
        ):
            response = await async_client.post("/api/v1/examinations", json={"patient_id": patient_id, **body})
            assert response.status_code == 201
        for body in ({"blood_glucose_mgdl": 45, "measured_at": earlier}, {"blood_glucose_mgdl": 110}):
            response = await async_client.post("/api/v1/advanced-tests", json={"patient_id": patient_id, **body})
            assert response.status_code == 201

        critical = await async_client.get(f"/api/v1/referrals/check-critical/{patient_id}")
        assert critical.status_code == 200
        data = critical.json()["data"]
        assert "error" not in data
        assert data["has_critical"] is False

        follow_ups = await async_client.get("/api/v1/dashboard/follow-ups")
        assert follow_ups.status_code == 200
        assert follow_ups.json()["data"]["overdue_exams"] == []

        tests = await async_client.get(f"/api/v1/patients/{patient_id}/advanced-tests")
        assert tests.status_code == 200
        trend = tests.json()["data"]["trend_analysis"]
        assert trend["sample_count"] == 2
        assert trend["trend"] == "rising_sharp"


@pytest.mark.asyncio
class TestRecordMaintenanceEndpoints:

    async def test_patient_update_search_and_protected_delete(self, async_client):
        patient_id = await _register(async_client)
        await _register(async_client, name="Budi Santoso")

        updated = await async_client.put(f"/api/v1/patients/{patient_id}", json={"phone": "0812-777"})
        assert updated.status_code == 200
        assert updated.json()["data"]["phone"] == "0812-777"

        found = await async_client.get("/api/v1/patients", params={"search": "0812-777"})
        assert found.status_code == 200
        assert [p["id"] for p in found.json()["data"]["patients"]] == [patient_id]

        deleted = await async_client.delete(f"/api/v1/patients/{patient_id}")
        assert deleted.status_code == 403
        assert deleted.json()["error"] == "DELETE_FORBIDDEN"

        listing = await async_client.get("/api/v1/patients")
        assert listing.json()["data"]["total"] == 2

    async def test_exam_lifecycle(self, async_client):
        patient_id = await _register(async_client)
        created = await async_client.post("/api/v1/examinations", json={
            "patient_id": patient_id, "height_cm": 200, "weight_kg": 80,
        })
        exam_id = created.json()["data"]["id"]

        updated = await async_client.put(f"/api/v1/examinations/{exam_id}", json={"weight_kg": 100})
        assert updated.status_code == 200
        assert updated.json()["data"]["bmi"] == 25.0

        fetched = await async_client.get(f"/api/v1/examinations/{exam_id}")
        assert fetched.json()["data"]["patient"]["id"] == patient_id

        deleted = await async_client.delete(f"/api/v1/examinations/{exam_id}")
        assert deleted.status_code == 200
        missing = await async_client.get(f"/api/v1/examinations/{exam_id}")
        assert missing.status_code == 404

    async def test_update_rejects_out_of_range_values(self, async_client):
        patient_id = await _register(async_client)
        created = await async_client.post("/api/v1/advanced-tests", json={
            "patient_id": patient_id, "blood_glucose_mgdl": 120,
        })
        response = await async_client.put(
            f"/api/v1/advanced-tests/{created.json()['data']['id']}", json={"blood_glucose_mgdl": 900}
        )
        assert response.status_code == 422

    async def test_assessment_and_treatment_updates(self, async_client):
        patient_id = await _register(async_client)
        assessment = await async_client.post("/api/v1/assessments", json={
            "patient_id": patient_id, "category": "normal",
        })
        assessment_id = assessment.json()["data"]["id"]

        response = await async_client.put(f"/api/v1/assessments/{assessment_id}", json={"category": "refer"})
        assert response.json()["data"]["category"] == "refer"

        treatment = await async_client.post("/api/v1/treatments", json={
            "patient_id": patient_id, "assessment_id": assessment_id,
            "medication": "Metformin", "dosage": "500 mg", "frequency": "twice daily",
        })
        treatment_id = treatment.json()["data"]["id"]

        response = await async_client.put(f"/api/v1/treatments/{treatment_id}", json={"duration": "30 days"})
        assert response.json()["data"]["duration"] == "30 days"

        response = await async_client.delete(f"/api/v1/treatments/{treatment_id}")
        assert response.status_code == 403
        response = await async_client.get(f"/api/v1/treatments/{treatment_id}")
        assert response.json()["data"]["medication"] == "Metformin"

    async def test_referral_listing(self, async_client):
        patient_id = await _register(async_client)
        created = await async_client.post("/api/v1/referrals", json={
            "patient_id": patient_id, "facility_name": "RSUD Kota", "reason": "Check",
        })
        referral_id = created.json()["data"]["id"]

        pending = await async_client.get("/api/v1/referrals", params={"status": "pending"})
        assert [r["id"] for r in pending.json()["data"]["referrals"]] == [referral_id]
        completed = await async_client.get("/api/v1/referrals", params={"status": "completed"})
        assert completed.json()["data"]["total"] == 0

        detail = await async_client.get(f"/api/v1/referrals/{referral_id}")
        assert detail.json()["data"]["facility_name"] == "RSUD Kota"

    async def test_recent_activity(self, async_client):
        patient_id = await _register(async_client)
        await async_client.post("/api/v1/examinations", json={"patient_id": patient_id, "systolic": 120})

        response = await async_client.get("/api/v1/dashboard/recent-activity", params={"limit": 5})
        assert response.status_code == 200
        assert [e["type"] for e in response.json()["data"]] == ["physical_exam"]

        response = await async_client.get("/api/v1/dashboard/recent-activity", params={"limit": 0})
        assert response.status_code == 422

    async def test_store_outage_maps_to_503(self, async_client, monkeypatch):
        def unavailable(patient_id):
            raise StoreUnavailableError("database unreachable", operation="get_patient")

        monkeypatch.setattr(app.state.records_service.store, "get_patient", unavailable)
        response = await async_client.get("/api/v1/patients/1")
        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "STORE_UNAVAILABLE"
        assert body["details"]["operation"] == "get_patient"
