"""Processed resource records.

Every FHIR resource that passes through the normalizer comes out as exactly
one of the dataclasses below. Each class carries a single ``KIND`` tag and a
flat field set; no value[x] polymorphism survives normalization.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional


class ProcessedKind(str, Enum):
    """Discriminant tags of the processed resource family."""

    ATTACHMENT = "Attachment"
    PATIENT = "PatientInfo"
    PRACTITIONER = "PractitionerInfo"
    ORGANIZATION = "OrganizationInfo"
    OBSERVATION = "ObservationResult"
    MEDICATION_REQUEST = "MedicationInfo"
    MEDICATION = "Medication"
    CONDITION = "ConditionInfo"
    PROCEDURE = "ProcedureInfo"
    ENCOUNTER = "EncounterInfo"
    IMMUNIZATION = "ImmunizationInfo"
    IMMUNIZATION_RECOMMENDATION = "ImmunizationRecommendationInfo"
    ALLERGY_INTOLERANCE = "AllergyIntoleranceInfo"
    COMPOSITION = "CompositionInfo"
    DIAGNOSTIC_REPORT = "DiagnosticReportInfo"
    APPOINTMENT = "AppointmentInfo"
    CARE_PLAN = "CarePlanInfo"
    MEDICATION_STATEMENT = "MedicationStatementInfo"
    SPECIMEN = "SpecimenInfo"
    SERVICE_REQUEST = "ServiceRequestInfo"
    CHARGE_ITEM = "ChargeItemInfo"
    INVOICE = "InvoiceInfo"
    GOAL = "GoalInfo"
    UNHANDLED = "Unhandled"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _plain(value: Any) -> Any:
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


def _record_dict(record: Any) -> Dict[str, Any]:
    return {_camel(f.name): _plain(getattr(record, f.name)) for f in fields(record)}


@dataclass
class ProcessedResource:
    """Base class of the processed resource family."""

    KIND: ClassVar[ProcessedKind]

    @property
    def processed_type(self) -> ProcessedKind:
        return self.KIND

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary with camelCase keys."""
        return {"processedType": self.KIND.value, **_record_dict(self)}


# =============================================================================
# Documents
# =============================================================================


@dataclass
class Attachment(ProcessedResource):
    """Embedded document content (PDF, image, ...)."""

    KIND: ClassVar[ProcessedKind] = ProcessedKind.ATTACHMENT

    content_type: str = ""
    data: str = ""  # placeholder in the normalized view
    title: Optional[str] = None


@dataclass
class CompositionInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.COMPOSITION

    title: str = ""
    id: Optional[str] = None
    status: str = ""
    date: Optional[str] = None
    type: str = ""
    sections: List[str] = field(default_factory=list)


@dataclass
class DiagnosticReportInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.DIAGNOSTIC_REPORT

    test: str = ""
    conclusion: str = ""
    date: str = ""
    status: str = ""
    issued: str = ""
    category: List[str] = field(default_factory=list)
    performer: List[str] = field(default_factory=list)


@dataclass
class UnhandledResource(ProcessedResource):
    """A resource with no normalizer, or without the payload its kind requires."""

    KIND: ClassVar[ProcessedKind] = ProcessedKind.UNHANDLED

    original_resource_type: str = ""
    detail: Optional[str] = None


# =============================================================================
# People and Organizations
# =============================================================================


@dataclass
class PatientInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.PATIENT

    name: str = ""
    id: str = ""
    gender: str = ""
    birth_date: str = ""
    telecom: List[str] = field(default_factory=list)
    address: List[str] = field(default_factory=list)
    identifier: List[str] = field(default_factory=list)


@dataclass
class PractitionerInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.PRACTITIONER

    name: str = ""
    id: str = ""
    gender: str = ""
    telecom: List[str] = field(default_factory=list)
    identifier: List[str] = field(default_factory=list)
    qualification: List[str] = field(default_factory=list)


@dataclass
class OrganizationInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.ORGANIZATION

    name: str = ""
    id: Optional[str] = None
    type: List[str] = field(default_factory=list)
    telecom: List[str] = field(default_factory=list)
    address: List[str] = field(default_factory=list)


# =============================================================================
# Clinical Findings
# =============================================================================


@dataclass
class ObservationComponent:
    """A sub-measurement nested inside an ObservationResult."""

    code: str = ""
    value: str = ""
    unit: Optional[str] = None
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _record_dict(self)


@dataclass
class ObservationResult(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.OBSERVATION

    code: str = ""
    value: str = ""
    unit: Optional[str] = None
    date: str = ""
    text: str = ""
    status: str = ""
    category: List[str] = field(default_factory=list)
    interpretation: List[str] = field(default_factory=list)
    components: List[ObservationComponent] = field(default_factory=list)


@dataclass
class ConditionInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.CONDITION

    code: str = ""
    status: str = ""
    text: str = ""
    verification_status: str = ""
    severity: str = ""
    onset: str = ""
    recorded_date: str = ""
    notes: List[str] = field(default_factory=list)
    category: List[str] = field(default_factory=list)


@dataclass
class ProcedureInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.PROCEDURE

    code: str = ""
    status: str = ""
    date: str = ""
    text: str = ""
    outcome: str = ""
    body_site: List[str] = field(default_factory=list)


@dataclass
class AllergyIntoleranceInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.ALLERGY_INTOLERANCE

    substance: str = ""
    severity: str = ""
    status: str = ""
    type: str = ""
    criticality: str = ""
    category: List[str] = field(default_factory=list)
    manifestations: List[str] = field(default_factory=list)


@dataclass
class SpecimenInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.SPECIMEN

    type: str = ""
    status: str = ""
    received_time: Optional[str] = None
    collection_time: Optional[str] = None


@dataclass
class GoalInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.GOAL

    description: str = ""
    status: str = ""
    id: Optional[str] = None
    start_date: Optional[str] = None
    target_date: Optional[str] = None


# =============================================================================
# Medications and Immunizations
# =============================================================================


@dataclass
class MedicationInfo(ProcessedResource):
    """A MedicationRequest (prescription line)."""

    KIND: ClassVar[ProcessedKind] = ProcessedKind.MEDICATION_REQUEST

    name: str = ""
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    status: str = ""
    intent: str = ""
    authored_on: str = ""
    reason: List[str] = field(default_factory=list)


@dataclass
class MedicationRecord(ProcessedResource):
    """A Medication definition resource."""

    KIND: ClassVar[ProcessedKind] = ProcessedKind.MEDICATION

    name: str = ""
    form: str = ""
    status: str = ""
    identifier: Optional[str] = None
    lot_number: Optional[str] = None
    expiration_date: Optional[str] = None


@dataclass
class MedicationStatementInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.MEDICATION_STATEMENT

    status: str = ""
    medication: str = ""
    effective: str = ""
    dosage: str = ""
    date_asserted: Optional[str] = None


@dataclass
class ImmunizationInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.IMMUNIZATION

    vaccine: str = ""
    date: str = ""
    status: str = ""
    lot_number: Optional[str] = None
    manufacturer: str = ""


@dataclass
class ImmunizationRecommendationInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.IMMUNIZATION_RECOMMENDATION

    vaccine: str = ""
    status: str = ""
    date: str = ""
    target_disease: str = ""


# =============================================================================
# Workflow and Billing
# =============================================================================


@dataclass
class EncounterInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.ENCOUNTER

    type: str = ""
    start_date: str = ""
    end_date: str = ""
    date: str = ""
    status: str = ""
    encounter_class: str = ""
    reason: List[str] = field(default_factory=list)


@dataclass
class AppointmentInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.APPOINTMENT

    status: str = ""
    type: str = ""
    start: str = ""
    end: str = ""
    description: Optional[str] = None
    created: Optional[str] = None


@dataclass
class CarePlanInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.CARE_PLAN

    status: str = ""
    intent: str = ""
    title: str = ""
    category: str = ""
    description: Optional[str] = None
    activities: List[str] = field(default_factory=list)


@dataclass
class ServiceRequestInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.SERVICE_REQUEST

    status: str = ""
    intent: str = ""
    code: str = ""
    priority: str = ""
    occurrence: Optional[str] = None
    requester: Optional[str] = None


@dataclass
class ChargeItemInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.CHARGE_ITEM

    status: str = ""
    code: str = ""
    quantity: Optional[float] = None
    product: Optional[str] = None


@dataclass
class InvoiceInfo(ProcessedResource):
    KIND: ClassVar[ProcessedKind] = ProcessedKind.INVOICE

    status: str = ""
    type: str = ""
    date: Optional[str] = None
    identifier: Optional[str] = None
    total_net: Optional[str] = None
    total_gross: Optional[str] = None
    line_items: List[str] = field(default_factory=list)
