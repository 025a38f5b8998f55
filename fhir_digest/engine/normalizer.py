"""Resource normalizer.

Maps one raw FHIR resource onto one processed record. Dispatch goes through a
single closed table keyed by ``resourceType``; every branch is a pure function
built on the field extractors. Resource types without a branch come back as
``UnhandledResource`` with the original tag preserved.
"""

import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from .config import (
    ATTACHMENT_PLACEHOLDER,
    BINARY_TITLE,
    DEFAULT_CONTENT_TYPE,
    UNKNOWN_ID,
    UNKNOWN_RESOURCE_LABEL,
)
from .field_extractors import (
    address_lines,
    annotation_texts,
    as_dict,
    as_list,
    as_text,
    codeable_concept_text,
    coding_display,
    concept_texts,
    dosage_summary,
    first_concept_text,
    identifier_values,
    money_text,
    person_name,
    reference_display,
    resolve_choice,
    resolve_value,
    telecom_values,
)
from .resources import (
    AllergyIntoleranceInfo,
    AppointmentInfo,
    Attachment,
    CarePlanInfo,
    ChargeItemInfo,
    CompositionInfo,
    ConditionInfo,
    DiagnosticReportInfo,
    EncounterInfo,
    GoalInfo,
    ImmunizationInfo,
    ImmunizationRecommendationInfo,
    InvoiceInfo,
    MedicationInfo,
    MedicationRecord,
    MedicationStatementInfo,
    ObservationComponent,
    ObservationResult,
    OrganizationInfo,
    PatientInfo,
    PractitionerInfo,
    ProcedureInfo,
    ProcessedResource,
    ServiceRequestInfo,
    SpecimenInfo,
    UnhandledResource,
)

logger = logging.getLogger(__name__)

Resource = Dict[str, Any]


def _optional(value: Any) -> Optional[str]:
    text = as_text(value)
    return text or None


def _code_text(concept: Any) -> str:
    """CodeableConcept text with the ``code.text || coding display`` rule."""
    concept = as_dict(concept)
    return as_text(concept.get("text")) or coding_display(concept.get("coding"))


# =============================================================================
# People and Organizations
# =============================================================================


def _normalize_patient(resource: Resource) -> PatientInfo:
    return PatientInfo(
        name=person_name(resource.get("name")),
        id=as_text(resource.get("id")) or UNKNOWN_ID,
        gender=as_text(resource.get("gender")),
        birth_date=as_text(resource.get("birthDate")),
        telecom=telecom_values(resource.get("telecom")),
        address=address_lines(resource.get("address")),
        identifier=identifier_values(resource.get("identifier")),
    )


def _normalize_practitioner(resource: Resource) -> PractitionerInfo:
    qualifications = [
        codeable_concept_text(as_dict(q).get("code"))
        for q in as_list(resource.get("qualification"))
    ]
    return PractitionerInfo(
        name=person_name(resource.get("name")),
        id=as_text(resource.get("id")) or UNKNOWN_ID,
        gender=as_text(resource.get("gender")),
        telecom=telecom_values(resource.get("telecom")),
        identifier=identifier_values(resource.get("identifier")),
        qualification=[q for q in qualifications if q],
    )


def _normalize_organization(resource: Resource) -> OrganizationInfo:
    return OrganizationInfo(
        name=as_text(resource.get("name")) or "Unknown Organization",
        id=_optional(resource.get("id")),
        type=concept_texts(resource.get("type")),
        telecom=telecom_values(resource.get("telecom")),
        address=address_lines(resource.get("address")),
    )


# =============================================================================
# Clinical Findings
# =============================================================================


def _normalize_component(component: Any) -> ObservationComponent:
    component = as_dict(component)
    label = _code_text(component.get("code"))
    resolved = resolve_value(component)
    return ObservationComponent(
        code=label,
        value=resolved.value,
        unit=resolved.unit,
        text=label,
    )


def _normalize_observation(resource: Resource) -> ObservationResult:
    label = _code_text(resource.get("code"))
    resolved = resolve_value(resource)
    return ObservationResult(
        code=label,
        value=resolved.value,
        unit=resolved.unit,
        date=resolve_choice(resource, "effective") or "",
        text=label,
        status=as_text(resource.get("status")),
        category=concept_texts(resource.get("category")),
        interpretation=concept_texts(resource.get("interpretation")),
        components=[_normalize_component(c) for c in as_list(resource.get("component"))],
    )


def _normalize_condition(resource: Resource) -> ConditionInfo:
    code_text = codeable_concept_text(resource.get("code"))
    return ConditionInfo(
        code=code_text or "Unknown Condition",
        status=(
            codeable_concept_text(resource.get("clinicalStatus"))
            or codeable_concept_text(resource.get("verificationStatus"))
        ),
        text=code_text,
        verification_status=codeable_concept_text(resource.get("verificationStatus")),
        severity=codeable_concept_text(resource.get("severity")),
        onset=resolve_choice(resource, "onset") or "",
        recorded_date=as_text(resource.get("recordedDate")),
        notes=annotation_texts(resource.get("note")),
        category=concept_texts(resource.get("category")),
    )


def _normalize_procedure(resource: Resource) -> ProcedureInfo:
    code_text = codeable_concept_text(resource.get("code"))
    return ProcedureInfo(
        code=code_text or "Unknown Procedure",
        status=as_text(resource.get("status")),
        date=resolve_choice(resource, "performed") or "",
        text=code_text,
        outcome=codeable_concept_text(resource.get("outcome")),
        body_site=concept_texts(resource.get("bodySite")),
    )


def _normalize_allergy_intolerance(resource: Resource) -> AllergyIntoleranceInfo:
    reactions = [as_dict(r) for r in as_list(resource.get("reaction"))]
    manifestations = []
    for reaction in reactions:
        manifestations.extend(concept_texts(reaction.get("manifestation")))
    return AllergyIntoleranceInfo(
        substance=codeable_concept_text(resource.get("code")) or "Unknown Substance",
        severity=as_text(reactions[0].get("severity")) if reactions else "",
        status=(
            codeable_concept_text(resource.get("clinicalStatus"))
            or codeable_concept_text(resource.get("verificationStatus"))
        ),
        type=as_text(resource.get("type")),
        criticality=as_text(resource.get("criticality")),
        category=[as_text(c) for c in as_list(resource.get("category")) if c],
        manifestations=manifestations,
    )


def _normalize_specimen(resource: Resource) -> SpecimenInfo:
    return SpecimenInfo(
        type=codeable_concept_text(resource.get("type")),
        status=as_text(resource.get("status")),
        received_time=_optional(resource.get("receivedTime")),
        collection_time=resolve_choice(as_dict(resource.get("collection")), "collected"),
    )


def _normalize_goal(resource: Resource) -> GoalInfo:
    target_dates = [
        as_text(as_dict(t).get("dueDate"))
        for t in as_list(resource.get("target"))
        if as_dict(t).get("dueDate")
    ]
    return GoalInfo(
        description=codeable_concept_text(resource.get("description")),
        status=as_text(resource.get("lifecycleStatus")),
        id=_optional(resource.get("id")),
        start_date=_optional(resource.get("startDate")),
        target_date=target_dates[0] if target_dates else None,
    )


# =============================================================================
# Medications and Immunizations
# =============================================================================


def _normalize_medication_request(resource: Resource) -> MedicationInfo:
    name = (
        codeable_concept_text(resource.get("medicationCodeableConcept"))
        or as_text(as_dict(resource.get("medicationReference")).get("display"))
        or "Unknown Medication"
    )
    instructions = as_list(resource.get("dosageInstruction"))
    dosage, frequency = dosage_summary(instructions[0] if instructions else None)
    validity = as_dict(as_dict(resource.get("dispenseRequest")).get("validityPeriod"))
    return MedicationInfo(
        name=name,
        dosage=dosage,
        frequency=frequency,
        duration=as_text(validity.get("end")),
        status=as_text(resource.get("status")),
        intent=as_text(resource.get("intent")),
        authored_on=as_text(resource.get("authoredOn")),
        reason=concept_texts(resource.get("reasonCode")),
    )


def _normalize_medication(resource: Resource) -> MedicationRecord:
    batch = as_dict(resource.get("batch"))
    identifiers = identifier_values(resource.get("identifier"))
    return MedicationRecord(
        name=codeable_concept_text(resource.get("code")) or "Unknown Medication",
        form=codeable_concept_text(resource.get("form")),
        status=as_text(resource.get("status")),
        identifier=identifiers[0] if identifiers else None,
        lot_number=_optional(batch.get("lotNumber")),
        expiration_date=_optional(batch.get("expirationDate")),
    )


def _normalize_medication_statement(resource: Resource) -> MedicationStatementInfo:
    dosages = as_list(resource.get("dosage"))
    dosage, _ = dosage_summary(dosages[0] if dosages else None)
    return MedicationStatementInfo(
        status=as_text(resource.get("status")),
        medication=resolve_choice(resource, "medication") or "",
        effective=resolve_choice(resource, "effective") or "",
        dosage=dosage,
        date_asserted=_optional(resource.get("dateAsserted")),
    )


def _normalize_immunization(resource: Resource) -> ImmunizationInfo:
    return ImmunizationInfo(
        vaccine=codeable_concept_text(resource.get("vaccineCode")) or "Unknown Vaccine",
        date=resolve_choice(resource, "occurrence") or "",
        status=as_text(resource.get("status")),
        lot_number=_optional(resource.get("lotNumber")),
        manufacturer=reference_display(resource.get("manufacturer")),
    )


def _normalize_immunization_recommendation(
    resource: Resource,
) -> ImmunizationRecommendationInfo:
    recommendations = as_list(resource.get("recommendation"))
    first = as_dict(recommendations[0]) if recommendations else {}
    return ImmunizationRecommendationInfo(
        vaccine=first_concept_text(first.get("vaccineCode")) or "Unknown Vaccine",
        status=codeable_concept_text(first.get("forecastStatus")),
        date=as_text(resource.get("date")),
        target_disease=codeable_concept_text(first.get("targetDisease")),
    )


# =============================================================================
# Documents
# =============================================================================


def _normalize_document_reference(resource: Resource) -> ProcessedResource:
    contents = as_list(resource.get("content"))
    attachment = as_dict(as_dict(contents[0]).get("attachment")) if contents else {}
    if attachment.get("data") or attachment.get("url"):
        return Attachment(
            content_type=as_text(attachment.get("contentType")) or DEFAULT_CONTENT_TYPE,
            data=ATTACHMENT_PLACEHOLDER,
            title=(
                as_text(attachment.get("title"))
                or as_text(resource.get("description"))
                or "Document"
            ),
        )
    return UnhandledResource(
        original_resource_type="DocumentReference",
        detail="No attachment data/url in DocumentReference",
    )


def _normalize_binary(resource: Resource) -> ProcessedResource:
    if resource.get("data"):
        return Attachment(
            content_type=as_text(resource.get("contentType")) or DEFAULT_CONTENT_TYPE,
            data=ATTACHMENT_PLACEHOLDER,
            title=BINARY_TITLE,
        )
    return UnhandledResource(
        original_resource_type="Binary",
        detail="No data/url in Binary",
    )


def _normalize_composition(resource: Resource) -> CompositionInfo:
    sections = [
        as_text(as_dict(s).get("title")) or codeable_concept_text(as_dict(s).get("code"))
        for s in as_list(resource.get("section"))
    ]
    return CompositionInfo(
        title=as_text(resource.get("title")) or "Untitled Document",
        id=_optional(resource.get("id")),
        status=as_text(resource.get("status")) or "unknown",
        date=_optional(resource.get("date")),
        type=codeable_concept_text(resource.get("type")),
        sections=[s for s in sections if s],
    )


def _normalize_diagnostic_report(resource: Resource) -> DiagnosticReportInfo:
    performers = [reference_display(p) for p in as_list(resource.get("performer"))]
    return DiagnosticReportInfo(
        test=codeable_concept_text(resource.get("code")),
        conclusion=as_text(resource.get("conclusion")),
        date=resolve_choice(resource, "effective") or "",
        status=as_text(resource.get("status")),
        issued=as_text(resource.get("issued")),
        category=concept_texts(resource.get("category")),
        performer=[p for p in performers if p],
    )


# =============================================================================
# Workflow and Billing
# =============================================================================


def _normalize_encounter(resource: Resource) -> EncounterInfo:
    encounter_class = as_dict(resource.get("class"))
    period = as_dict(resource.get("period"))
    start = as_text(period.get("start"))
    return EncounterInfo(
        type=(
            as_text(encounter_class.get("display"))
            or as_text(encounter_class.get("code"))
            or first_concept_text(resource.get("type"))
            or "Unknown Encounter Type"
        ),
        start_date=start,
        end_date=as_text(period.get("end")),
        date=start,
        status=as_text(resource.get("status")),
        encounter_class=as_text(encounter_class.get("code")),
        reason=concept_texts(resource.get("reasonCode")),
    )


def _normalize_appointment(resource: Resource) -> AppointmentInfo:
    return AppointmentInfo(
        status=as_text(resource.get("status")),
        type=codeable_concept_text(resource.get("appointmentType")),
        start=as_text(resource.get("start")),
        end=as_text(resource.get("end")),
        description=_optional(resource.get("description")),
        created=_optional(resource.get("created")),
    )


def _normalize_care_plan(resource: Resource) -> CarePlanInfo:
    activities = []
    for activity in as_list(resource.get("activity")):
        detail = as_dict(as_dict(activity).get("detail"))
        text = (
            codeable_concept_text(detail.get("code"))
            or as_text(detail.get("description"))
            or resolve_choice(detail, "scheduled")
        )
        if text:
            activities.append(text)
    return CarePlanInfo(
        status=as_text(resource.get("status")),
        intent=as_text(resource.get("intent")),
        title=as_text(resource.get("title")),
        category=first_concept_text(resource.get("category")),
        description=_optional(resource.get("description")),
        activities=activities,
    )


def _normalize_service_request(resource: Resource) -> ServiceRequestInfo:
    return ServiceRequestInfo(
        status=as_text(resource.get("status")),
        intent=as_text(resource.get("intent")),
        code=codeable_concept_text(resource.get("code")),
        priority=as_text(resource.get("priority")),
        occurrence=resolve_choice(resource, "occurrence"),
        requester=_optional(as_dict(resource.get("requester")).get("display")),
    )


def _normalize_charge_item(resource: Resource) -> ChargeItemInfo:
    quantity = as_dict(resource.get("quantity")).get("value")
    return ChargeItemInfo(
        status=as_text(resource.get("status")),
        code=codeable_concept_text(resource.get("code")),
        quantity=quantity if isinstance(quantity, (int, float)) else None,
        product=resolve_choice(resource, "product") or None,
    )


def _normalize_invoice(resource: Resource) -> InvoiceInfo:
    identifiers = identifier_values(resource.get("identifier"))
    line_items = []
    for item in as_list(resource.get("lineItem")):
        item = as_dict(item)
        label = codeable_concept_text(item.get("chargeItemCodeableConcept")) or reference_display(
            item.get("chargeItemReference")
        )
        if label:
            line_items.append(label)
    return InvoiceInfo(
        status=as_text(resource.get("status")),
        type=codeable_concept_text(resource.get("type")),
        date=_optional(resource.get("date")),
        identifier=identifiers[0] if identifiers else None,
        total_net=money_text(resource.get("totalNet")),
        total_gross=money_text(resource.get("totalGross")),
        line_items=line_items,
    )


# =============================================================================
# Dispatch
# =============================================================================

_NORMALIZERS: Dict[str, Callable[[Resource], ProcessedResource]] = {
    "Patient": _normalize_patient,
    "Practitioner": _normalize_practitioner,
    "Organization": _normalize_organization,
    "Observation": _normalize_observation,
    "MedicationRequest": _normalize_medication_request,
    "Condition": _normalize_condition,
    "Procedure": _normalize_procedure,
    "Encounter": _normalize_encounter,
    "Immunization": _normalize_immunization,
    "ImmunizationRecommendation": _normalize_immunization_recommendation,
    "AllergyIntolerance": _normalize_allergy_intolerance,
    "DocumentReference": _normalize_document_reference,
    "Binary": _normalize_binary,
    "Composition": _normalize_composition,
    "Appointment": _normalize_appointment,
    "CarePlan": _normalize_care_plan,
    "MedicationStatement": _normalize_medication_statement,
    "Specimen": _normalize_specimen,
    "ServiceRequest": _normalize_service_request,
    "ChargeItem": _normalize_charge_item,
    "Invoice": _normalize_invoice,
    "Medication": _normalize_medication,
    "DiagnosticReport": _normalize_diagnostic_report,
    "Goal": _normalize_goal,
}

SUPPORTED_RESOURCE_TYPES: FrozenSet[str] = frozenset(_NORMALIZERS)


def normalize(resource: Optional[Resource]) -> ProcessedResource:
    """Normalize a single FHIR resource.

    Args:
        resource: Raw FHIR resource dict (may be None or untagged)

    Returns:
        The processed record for the resource's kind, or an
        UnhandledResource for absent, untagged or unsupported input
    """
    if not isinstance(resource, dict) or not resource.get("resourceType"):
        return UnhandledResource(original_resource_type=UNKNOWN_RESOURCE_LABEL)

    resource_type = as_text(resource["resourceType"])
    normalizer = _NORMALIZERS.get(resource_type)
    if normalizer is None:
        logger.debug(
            f"No normalizer for resourceType {resource_type}",
            extra={"event_type": "RESOURCE_UNHANDLED", "resource_type": resource_type},
        )
        return UnhandledResource(original_resource_type=resource_type)

    processed = normalizer(resource)
    if isinstance(processed, UnhandledResource):
        logger.debug(
            processed.detail or f"Unhandled {resource_type}",
            extra={
                "event_type": "RESOURCE_UNHANDLED",
                "resource_type": resource_type,
                "detail": processed.detail,
            },
        )
    return processed
