"""Tests for the fhir-digest HTTP API."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fhir_digest.api.main import app, configure_cors
from fhir_digest.engine.config import ATTACHMENT_REF_EXTENSION_URL, PROFILE_BASE_URL


@pytest.fixture
def client():
    return TestClient(app)


def _prescription_bundle() -> dict:
    return {
        "resourceType": "Bundle",
        "id": "rx-1",
        "type": "document",
        "entry": [
            {
                "resource": {
                    "resourceType": "Composition",
                    "meta": {"profile": [f"{PROFILE_BASE_URL}/PrescriptionRecord"]},
                    "title": "Prescription",
                }
            },
            {"resource": {"resourceType": "Patient", "name": [{"text": "Sita Devi"}]}},
            {
                "resource": {
                    "resourceType": "MedicationRequest",
                    "medicationCodeableConcept": {"text": "Metformin 500mg"},
                }
            },
            {"resource": {"resourceType": "Encounter", "class": {"code": "AMB"}}},
        ],
    }


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        """Test service status and supported types."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "Observation" in data["supported_resource_types"]


class TestCors:
    """Tests for CORS configuration."""

    def test_no_origins_by_default(self, client):
        """Test that the default app sends no CORS headers."""
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers

    def test_configured_origin(self):
        """Test that only configured origins are allowed."""
        cors_app = FastAPI()

        @cors_app.get("/ping")
        async def ping():
            return {"ok": True}

        configure_cors(cors_app, ["https://ehr.example.org"])
        cors_client = TestClient(cors_app)

        allowed = cors_client.get("/ping", headers={"Origin": "https://ehr.example.org"})
        assert allowed.headers["access-control-allow-origin"] == "https://ehr.example.org"
        other = cors_client.get("/ping", headers={"Origin": "http://localhost:5173"})
        assert "access-control-allow-origin" not in other.headers


class TestTransformEndpoint:
    """Tests for POST /api/bundles/transform."""

    def test_transform(self, client):
        """Test grouped output for a prescription bundle."""
        response = client.post("/api/bundles/transform", json=_prescription_bundle())
        assert response.status_code == 200
        data = response.json()
        assert data["bundle_type"] == "PrescriptionRecord"
        assert data["bundle_id"] == "rx-1"
        assert data["resource_count"] == 4
        assert data["resources"]["MedicationInfo"][0]["name"] == "Metformin 500mg"
        assert data["resources"]["PatientInfo"][0]["name"] == "Sita Devi"

    def test_transform_heuristic_policy(self, client):
        """Test selecting the heuristic policy by query parameter."""
        response = client.post(
            "/api/bundles/transform",
            params={"policy": "heuristic"},
            json=_prescription_bundle(),
        )
        assert response.status_code == 200
        assert response.json()["bundle_type"] == "PrescriptionRecord"

    def test_empty_bundle_rejected(self, client):
        """Test that an empty object maps to 422."""
        response = client.post("/api/bundles/transform", json={})
        assert response.status_code == 422
        assert response.json()["detail"]

    def test_unknown_policy_rejected(self, client):
        """Test validation of the policy parameter."""
        response = client.post(
            "/api/bundles/transform",
            params={"policy": "guess"},
            json=_prescription_bundle(),
        )
        assert response.status_code == 422


class TestClassifyEndpoint:
    """Tests for POST /api/bundles/classify."""

    def test_profile_first(self, client):
        """Test the default policy."""
        response = client.post("/api/bundles/classify", json=_prescription_bundle())
        assert response.status_code == 200
        assert response.json() == {"bundle_type": "PrescriptionRecord", "policy": "profile_first"}

    def test_bare_resource_matches_transform(self, client):
        """Test that a bare resource is classified the same way transform tags it."""
        patient = {"resourceType": "Patient", "id": "pat-9", "name": [{"text": "Meera"}]}
        classified = client.post("/api/bundles/classify", json=patient)
        transformed = client.post("/api/bundles/transform", json=patient)
        assert classified.status_code == 200
        assert classified.json()["bundle_type"] == "Patient"
        assert transformed.json()["bundle_type"] == classified.json()["bundle_type"]

    def test_heuristic_without_marker(self, client):
        """Test that an unclassifiable bundle maps to 422."""
        bundle = {"resourceType": "Bundle", "entry": [{"resource": {"resourceType": "Patient"}}]}
        response = client.post("/api/bundles/classify", params={"policy": "heuristic"}, json=bundle)
        assert response.status_code == 422


class TestAttachmentsEndpoint:
    """Tests for POST /api/bundles/attachments."""

    def test_extract(self, client):
        """Test that payloads are returned separately from the bundle."""
        bundle = {
            "resourceType": "Bundle",
            "entry": [{"resource": {"resourceType": "Binary", "contentType": "application/pdf", "data": "JVBER"}}],
        }
        response = client.post("/api/bundles/attachments", json=bundle)
        assert response.status_code == 200
        data = response.json()
        assert len(data["attachments"]) == 1
        attachment = data["attachments"][0]
        assert attachment["data"] == "JVBER"
        binary = data["bundle"]["entry"][0]["resource"]
        assert "data" not in binary
        assert binary["extension"] == [
            {"url": ATTACHMENT_REF_EXTENSION_URL, "valueString": attachment["ref_id"]}
        ]


class TestSummaryEndpoint:
    """Tests for POST /api/bundles/summary."""

    def test_summary(self, client):
        """Test the structural summary."""
        response = client.post("/api/bundles/summary", json=_prescription_bundle())
        assert response.status_code == 200
        assert response.json() == {
            "type": "document",
            "entry_count": 4,
            "resource_types": ["Composition", "Patient", "MedicationRequest", "Encounter"],
            "has_attachments": False,
        }


class TestDocumentEndpoint:
    """Tests for POST /api/bundles/document."""

    def test_prescription_view(self, client):
        """Test the prescription view of a profiled bundle."""
        response = client.post("/api/bundles/document", json=_prescription_bundle())
        assert response.status_code == 200
        data = response.json()
        assert data["bundle_type"] == "PrescriptionRecord"
        assert data["document_type"] == "PrescriptionRecord"
        assert data["document"]["patient"]["name"] == "Sita Devi"
        assert data["document"]["medications"][0]["name"] == "Metformin 500mg"

    def test_unsupported_type_rejected(self, client):
        """Test that a bundle type without a view maps to 422."""
        bundle = {"resourceType": "Bundle", "entry": [{"resource": {"resourceType": "Patient"}}]}
        response = client.post("/api/bundles/document", json=bundle)
        assert response.status_code == 422
        assert "Patient" in response.json()["detail"]
