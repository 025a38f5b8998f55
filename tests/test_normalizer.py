"""Unit tests for the resource normalizer."""

import pytest

from fhir_digest.engine.config import ATTACHMENT_PLACEHOLDER, NO_VALUE_FOUND
from fhir_digest.engine.normalizer import SUPPORTED_RESOURCE_TYPES, normalize
from fhir_digest.engine.resources import (
    Attachment,
    ConditionInfo,
    MedicationInfo,
    ObservationResult,
    PatientInfo,
    ProcessedKind,
    UnhandledResource,
)


def _minimal(resource_type: str) -> dict:
    return {"resourceType": resource_type, "id": f"{resource_type.lower()}-1"}


# Kind produced for a minimal resource of each supported type
EXPECTED_KINDS = {
    "Patient": ProcessedKind.PATIENT,
    "Practitioner": ProcessedKind.PRACTITIONER,
    "Organization": ProcessedKind.ORGANIZATION,
    "Observation": ProcessedKind.OBSERVATION,
    "MedicationRequest": ProcessedKind.MEDICATION_REQUEST,
    "Medication": ProcessedKind.MEDICATION,
    "Condition": ProcessedKind.CONDITION,
    "Procedure": ProcessedKind.PROCEDURE,
    "Encounter": ProcessedKind.ENCOUNTER,
    "Immunization": ProcessedKind.IMMUNIZATION,
    "ImmunizationRecommendation": ProcessedKind.IMMUNIZATION_RECOMMENDATION,
    "AllergyIntolerance": ProcessedKind.ALLERGY_INTOLERANCE,
    "Composition": ProcessedKind.COMPOSITION,
    "DiagnosticReport": ProcessedKind.DIAGNOSTIC_REPORT,
    "Appointment": ProcessedKind.APPOINTMENT,
    "CarePlan": ProcessedKind.CARE_PLAN,
    "MedicationStatement": ProcessedKind.MEDICATION_STATEMENT,
    "Specimen": ProcessedKind.SPECIMEN,
    "ServiceRequest": ProcessedKind.SERVICE_REQUEST,
    "ChargeItem": ProcessedKind.CHARGE_ITEM,
    "Invoice": ProcessedKind.INVOICE,
    "Goal": ProcessedKind.GOAL,
    # Without a payload these two come back unhandled
    "DocumentReference": ProcessedKind.UNHANDLED,
    "Binary": ProcessedKind.UNHANDLED,
}


class TestDispatch:
    """Tests for the resourceType dispatch table."""

    def test_every_supported_type_has_expectation(self):
        """Test that the dispatch table matches the documented kinds."""
        assert set(EXPECTED_KINDS) == set(SUPPORTED_RESOURCE_TYPES)

    @pytest.mark.parametrize("resource_type,kind", sorted(EXPECTED_KINDS.items()))
    def test_minimal_resource_kind(self, resource_type, kind):
        """Test that a bare resource of each type normalizes without error."""
        processed = normalize(_minimal(resource_type))
        assert processed.processed_type == kind
        assert processed.to_dict()["processedType"] == kind.value

    def test_unknown_type_is_unhandled(self):
        """Test that an unsupported type keeps its original tag."""
        processed = normalize({"resourceType": "Provenance", "id": "p1"})
        assert isinstance(processed, UnhandledResource)
        assert processed.original_resource_type == "Provenance"

    @pytest.mark.parametrize("resource", [None, {}, {"id": "x"}, "Patient", []])
    def test_absent_or_untagged_resource(self, resource):
        """Test the fixed label for missing or untagged input."""
        processed = normalize(resource)
        assert isinstance(processed, UnhandledResource)
        assert processed.original_resource_type == "Unknown (null or undefined resource)"


class TestPatient:
    """Tests for Patient normalization."""

    def test_full_patient(self):
        """Test that demographics are flattened."""
        patient = {
            "resourceType": "Patient",
            "id": "pat-1",
            "name": [{"use": "official", "given": ["Meera"], "family": "Iyer"}],
            "gender": "female",
            "birthDate": "1985-04-12",
            "telecom": [{"system": "phone", "value": "9999999999"}],
            "identifier": [{"value": "ABHA-1234"}],
        }
        processed = normalize(patient)
        assert isinstance(processed, PatientInfo)
        assert processed.name == "Meera Iyer"
        assert processed.id == "pat-1"
        assert processed.gender == "female"
        assert processed.birth_date == "1985-04-12"
        assert processed.telecom == ["phone: 9999999999"]
        assert processed.identifier == ["ABHA-1234"]

    def test_defaults(self):
        """Test Unknown defaults for a patient with no name or id."""
        processed = normalize({"resourceType": "Patient"})
        assert processed.name == "Unknown"
        assert processed.id == "Unknown ID"

    def test_to_dict_uses_camel_case(self):
        """Test JSON keys of the serialized record."""
        data = normalize({"resourceType": "Patient", "birthDate": "2000-01-01"}).to_dict()
        assert data["processedType"] == "PatientInfo"
        assert data["birthDate"] == "2000-01-01"
        assert "birth_date" not in data


class TestObservation:
    """Tests for Observation normalization."""

    def test_value_quantity(self):
        """Test that valueQuantity is resolved to value and unit."""
        observation = {
            "resourceType": "Observation",
            "code": {"text": "Body temperature"},
            "valueQuantity": {"value": 98.6, "unit": "F"},
            "effectiveDateTime": "2024-05-01T08:00:00Z",
        }
        processed = normalize(observation)
        assert isinstance(processed, ObservationResult)
        assert processed.value == "98.6"
        assert processed.unit == "F"
        assert processed.code == "Body temperature"
        assert processed.date == "2024-05-01T08:00:00Z"

    def test_no_value_sentinel(self):
        """Test that an observation without any value slot carries the sentinel."""
        processed = normalize({"resourceType": "Observation", "code": {"text": "Pending"}})
        assert processed.value == NO_VALUE_FOUND

    def test_code_falls_back_to_coding_display(self):
        """Test code label from the first coding display."""
        observation = {
            "resourceType": "Observation",
            "code": {"coding": [{"system": "http://loinc.org", "code": "8867-4", "display": "Heart rate"}]},
            "valueQuantity": {"value": 72, "unit": "beats/min"},
        }
        assert normalize(observation).code == "Heart rate"

    def test_components(self):
        """Test that components are normalized in order."""
        observation = {
            "resourceType": "Observation",
            "code": {"text": "Blood pressure"},
            "component": [
                {"code": {"text": "Systolic"}, "valueQuantity": {"value": 120, "unit": "mmHg"}},
                {"code": {"text": "Diastolic"}, "valueQuantity": {"value": 80, "unit": "mmHg"}},
            ],
        }
        processed = normalize(observation)
        assert [(c.code, c.value, c.unit) for c in processed.components] == [
            ("Systolic", "120", "mmHg"),
            ("Diastolic", "80", "mmHg"),
        ]
        assert processed.to_dict()["components"][0]["code"] == "Systolic"


class TestMedicationRequest:
    """Tests for MedicationRequest normalization."""

    def test_prescription_fields(self):
        """Test name, dosage, frequency and duration extraction."""
        request = {
            "resourceType": "MedicationRequest",
            "status": "active",
            "intent": "order",
            "authoredOn": "2024-06-10",
            "medicationCodeableConcept": {"text": "Amoxicillin 500mg"},
            "dosageInstruction": [
                {"text": "1 capsule", "timing": {"code": {"text": "Three times a day"}}}
            ],
            "dispenseRequest": {"validityPeriod": {"end": "2024-06-17"}},
            "reasonCode": [{"text": "Sinusitis"}],
        }
        processed = normalize(request)
        assert isinstance(processed, MedicationInfo)
        assert processed.name == "Amoxicillin 500mg"
        assert processed.dosage == "1 capsule"
        assert processed.frequency == "Three times a day"
        assert processed.duration == "2024-06-17"
        assert processed.reason == ["Sinusitis"]

    def test_medication_reference_display(self):
        """Test the medicationReference display fallback."""
        request = {
            "resourceType": "MedicationRequest",
            "medicationReference": {"reference": "Medication/m1", "display": "Paracetamol"},
        }
        assert normalize(request).name == "Paracetamol"

    def test_unknown_medication(self):
        """Test the default medication name."""
        assert normalize({"resourceType": "MedicationRequest"}).name == "Unknown Medication"


class TestCondition:
    """Tests for Condition normalization."""

    def test_condition_fields(self):
        """Test code, status and onset."""
        condition = {
            "resourceType": "Condition",
            "code": {"coding": [{"display": "Type 2 diabetes mellitus"}]},
            "clinicalStatus": {"coding": [{"code": "active"}]},
            "onsetDateTime": "2019-01-01",
            "note": [{"text": "Diet controlled"}],
        }
        processed = normalize(condition)
        assert isinstance(processed, ConditionInfo)
        assert processed.code == "Type 2 diabetes mellitus"
        assert processed.status == "active"
        assert processed.onset == "2019-01-01"
        assert processed.notes == ["Diet controlled"]

    def test_unknown_condition(self):
        """Test the default condition label."""
        assert normalize({"resourceType": "Condition"}).code == "Unknown Condition"


class TestDocuments:
    """Tests for DocumentReference and Binary normalization."""

    def test_document_reference_with_data(self):
        """Test that an attached document becomes an Attachment with placeholder data."""
        document = {
            "resourceType": "DocumentReference",
            "description": "Discharge letter",
            "content": [{"attachment": {"contentType": "application/pdf", "data": "JVBERi0x"}}],
        }
        processed = normalize(document)
        assert isinstance(processed, Attachment)
        assert processed.content_type == "application/pdf"
        assert processed.data == ATTACHMENT_PLACEHOLDER
        assert processed.title == "Discharge letter"

    def test_document_reference_with_url_only(self):
        """Test that a url-only attachment still counts."""
        document = {
            "resourceType": "DocumentReference",
            "content": [{"attachment": {"url": "https://example.org/doc.pdf", "title": "Scan"}}],
        }
        processed = normalize(document)
        assert isinstance(processed, Attachment)
        assert processed.title == "Scan"
        assert processed.content_type == "application/octet-stream"

    def test_document_reference_without_payload(self):
        """Test that a DocumentReference without data or url is unhandled."""
        processed = normalize({"resourceType": "DocumentReference", "content": [{"attachment": {}}]})
        assert isinstance(processed, UnhandledResource)
        assert processed.original_resource_type == "DocumentReference"
        assert processed.detail

    def test_binary(self):
        """Test Binary with and without data."""
        processed = normalize({"resourceType": "Binary", "contentType": "image/png", "data": "iVBOR"})
        assert isinstance(processed, Attachment)
        assert processed.title == "Binary Document"
        assert processed.content_type == "image/png"

        assert isinstance(normalize({"resourceType": "Binary"}), UnhandledResource)


class TestWorkflowResources:
    """Tests for encounter, immunization, invoice and goal normalization."""

    def test_encounter(self):
        """Test encounter class display and period."""
        encounter = {
            "resourceType": "Encounter",
            "status": "finished",
            "class": {"code": "AMB", "display": "ambulatory"},
            "period": {"start": "2024-01-10T09:00:00Z", "end": "2024-01-10T09:30:00Z"},
        }
        processed = normalize(encounter)
        assert processed.type == "ambulatory"
        assert processed.encounter_class == "AMB"
        assert processed.start_date == "2024-01-10T09:00:00Z"
        assert processed.end_date == "2024-01-10T09:30:00Z"

    def test_immunization(self):
        """Test vaccine name and occurrence date."""
        immunization = {
            "resourceType": "Immunization",
            "status": "completed",
            "vaccineCode": {"text": "BCG"},
            "occurrenceDateTime": "2023-12-01",
            "lotNumber": "L-42",
        }
        processed = normalize(immunization)
        assert processed.vaccine == "BCG"
        assert processed.date == "2023-12-01"
        assert processed.lot_number == "L-42"

    def test_invoice_totals(self):
        """Test invoice totals and line items."""
        invoice = {
            "resourceType": "Invoice",
            "status": "issued",
            "totalNet": {"value": 1500, "currency": "INR"},
            "totalGross": {"value": 1770.5, "currency": "INR"},
            "lineItem": [{"chargeItemCodeableConcept": {"text": "Consultation"}}],
        }
        processed = normalize(invoice)
        assert processed.total_net == "1500 INR"
        assert processed.total_gross == "1770.5 INR"
        assert processed.line_items == ["Consultation"]

    def test_goal(self):
        """Test goal description and target date."""
        goal = {
            "resourceType": "Goal",
            "lifecycleStatus": "active",
            "description": {"text": "HbA1c below 7%"},
            "target": [{"dueDate": "2024-12-31"}],
        }
        processed = normalize(goal)
        assert processed.description == "HbA1c below 7%"
        assert processed.status == "active"
        assert processed.target_date == "2024-12-31"

    def test_charge_item_quantity(self):
        """Test numeric charge item quantity."""
        item = {"resourceType": "ChargeItem", "quantity": {"value": 2}, "productCodeableConcept": {"text": "Syringe"}}
        processed = normalize(item)
        assert processed.quantity == 2
        assert processed.product == "Syringe"
