"""Document views.

A document view is the reader-facing digest of one clinical document: who the
patient and author are, plus the few lines that matter for that kind of
record (medications on a prescription, vaccines on an immunization record,
and so on). Views are built from a ``TransformedBundle``, so every value has
already been through the normalizer.

Single-valued fields (patient, doctor, organization, date) take the last
matching record in the bundle.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence

from .aggregator import TransformedBundle
from .classifier import BundleType
from .config import NO_VALUE_FOUND
from .errors import UnsupportedDocumentTypeError
from .resources import (
    AllergyIntoleranceInfo,
    Attachment,
    ConditionInfo,
    ImmunizationInfo,
    ImmunizationRecommendationInfo,
    MedicationInfo,
    ObservationResult,
    ProcedureInfo,
    ProcessedKind,
    ProcessedResource,
)

logger = logging.getLogger(__name__)


@dataclass
class PersonRef:
    name: str = ""
    id: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "id": self.id}


def _attachments(attachments: Sequence[Attachment]) -> List[Dict[str, Any]]:
    return [
        {"contentType": a.content_type, "data": a.data, "title": a.title}
        for a in attachments
    ]


def _observation_value(observation: ObservationResult) -> str:
    return "" if observation.value == NO_VALUE_FOUND else observation.value


# =============================================================================
# Views
# =============================================================================


@dataclass
class DocumentView:
    """Base class of the per-document-type views."""

    DOCUMENT_TYPE: ClassVar[str]

    attachments: List[Attachment] = field(default_factory=list)

    def content(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary with camelCase keys."""
        return {
            "documentType": self.DOCUMENT_TYPE,
            **self.content(),
            "attachments": _attachments(self.attachments),
        }


@dataclass
class DiagnosticReportView(DocumentView):
    DOCUMENT_TYPE: ClassVar[str] = BundleType.DIAGNOSTIC_REPORT.value

    test: str = ""
    conclusion: str = ""
    doctor: str = ""
    organization: str = ""
    date: str = ""
    observations: List[ObservationResult] = field(default_factory=list)

    def content(self) -> Dict[str, Any]:
        return {
            "test": self.test,
            "conclusion": self.conclusion,
            "doctor": self.doctor,
            "organization": self.organization,
            "date": self.date,
            "observations": [
                {"code": o.code, "value": _observation_value(o), "unit": o.unit}
                for o in self.observations
            ],
        }


@dataclass
class PrescriptionView(DocumentView):
    DOCUMENT_TYPE: ClassVar[str] = BundleType.PRESCRIPTION.value

    patient: PersonRef = field(default_factory=PersonRef)
    doctor: PersonRef = field(default_factory=PersonRef)
    medications: List[MedicationInfo] = field(default_factory=list)
    conditions: List[ConditionInfo] = field(default_factory=list)
    date: str = ""

    def content(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.to_dict(),
            "doctor": self.doctor.to_dict(),
            "medications": [
                {
                    "name": m.name,
                    "dosage": m.dosage,
                    "frequency": m.frequency,
                    "duration": m.duration,
                }
                for m in self.medications
            ],
            "conditions": [c.code for c in self.conditions],
            "date": self.date,
        }


@dataclass
class DischargeSummaryView(DocumentView):
    DOCUMENT_TYPE: ClassVar[str] = BundleType.DISCHARGE_SUMMARY.value

    patient: PersonRef = field(default_factory=PersonRef)
    doctor: PersonRef = field(default_factory=PersonRef)
    organization: str = ""
    encounter_type: str = ""
    admitted: str = ""
    discharged: str = ""
    conditions: List[ConditionInfo] = field(default_factory=list)
    procedures: List[ProcedureInfo] = field(default_factory=list)
    medications: List[MedicationInfo] = field(default_factory=list)

    def content(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.to_dict(),
            "doctor": self.doctor.to_dict(),
            "organization": self.organization,
            "encounter": {
                "type": self.encounter_type,
                "startDate": self.admitted,
                "endDate": self.discharged,
            },
            "conditions": [{"code": c.code, "status": c.status} for c in self.conditions],
            "procedures": [{"code": p.code, "date": p.date} for p in self.procedures],
            "medications": [{"name": m.name, "status": m.status} for m in self.medications],
            # A discharge summary is dated by the end of the stay
            "date": self.discharged,
        }


@dataclass
class ImmunizationView(DocumentView):
    DOCUMENT_TYPE: ClassVar[str] = BundleType.IMMUNIZATION.value

    patient: PersonRef = field(default_factory=PersonRef)
    doctor: PersonRef = field(default_factory=PersonRef)
    organization: str = ""
    immunizations: List[ImmunizationInfo] = field(default_factory=list)
    recommendations: List[ImmunizationRecommendationInfo] = field(default_factory=list)

    def content(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.to_dict(),
            "doctor": self.doctor.to_dict(),
            "organization": self.organization,
            "immunizations": [
                {
                    "vaccine": i.vaccine,
                    "date": i.date,
                    "lotNumber": i.lot_number,
                    "status": i.status,
                }
                for i in self.immunizations
            ],
            "recommendations": [
                {"vaccine": r.vaccine, "status": r.status, "date": r.date}
                for r in self.recommendations
            ],
        }


@dataclass
class OPConsultView(DocumentView):
    DOCUMENT_TYPE: ClassVar[str] = BundleType.OP_CONSULT.value

    patient: PersonRef = field(default_factory=PersonRef)
    doctor: PersonRef = field(default_factory=PersonRef)
    organization: str = ""
    encounter_type: str = ""
    visit_date: str = ""
    conditions: List[ConditionInfo] = field(default_factory=list)
    allergies: List[AllergyIntoleranceInfo] = field(default_factory=list)
    procedures: List[ProcedureInfo] = field(default_factory=list)
    medications: List[MedicationInfo] = field(default_factory=list)

    def content(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.to_dict(),
            "doctor": self.doctor.to_dict(),
            "organization": self.organization,
            "encounter": {"type": self.encounter_type, "date": self.visit_date},
            "conditions": [{"code": c.code, "status": c.status} for c in self.conditions],
            "allergies": [
                {"substance": a.substance, "severity": a.severity} for a in self.allergies
            ],
            "procedures": [{"code": p.code, "status": p.status} for p in self.procedures],
            "medications": [{"name": m.name, "status": m.status} for m in self.medications],
            "date": self.visit_date,
        }


@dataclass
class WellnessView(DocumentView):
    DOCUMENT_TYPE: ClassVar[str] = BundleType.WELLNESS.value

    patient: PersonRef = field(default_factory=PersonRef)
    doctor: PersonRef = field(default_factory=PersonRef)
    organization: str = ""
    observations: List[ObservationResult] = field(default_factory=list)

    @property
    def date(self) -> str:
        """Date of the last observation that has one."""
        dated = [o.date for o in self.observations if o.date]
        return dated[-1] if dated else ""

    def content(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.to_dict(),
            "doctor": self.doctor.to_dict(),
            "organization": self.organization,
            "observations": [
                {
                    "code": o.code,
                    "value": _observation_value(o),
                    "unit": o.unit,
                    "date": o.date,
                }
                for o in self.observations
            ],
            "date": self.date,
        }


# =============================================================================
# Builders
# =============================================================================


def _last(bundle: TransformedBundle, kind: ProcessedKind) -> Optional[ProcessedResource]:
    records = bundle.get(kind)
    return records[-1] if records else None


def _person(bundle: TransformedBundle, kind: ProcessedKind) -> PersonRef:
    record = _last(bundle, kind)
    if record is None:
        return PersonRef()
    return PersonRef(name=record.name, id=record.id)


def _organization(bundle: TransformedBundle) -> str:
    record = _last(bundle, ProcessedKind.ORGANIZATION)
    return record.name if record is not None else ""


def _build_diagnostic_report(bundle: TransformedBundle) -> DiagnosticReportView:
    report = _last(bundle, ProcessedKind.DIAGNOSTIC_REPORT)
    return DiagnosticReportView(
        test=report.test if report else "",
        conclusion=report.conclusion if report else "",
        doctor=_person(bundle, ProcessedKind.PRACTITIONER).name,
        organization=_organization(bundle),
        date=report.date if report else "",
        observations=bundle.get(ProcessedKind.OBSERVATION),
        attachments=bundle.get(ProcessedKind.ATTACHMENT),
    )


def _build_prescription(bundle: TransformedBundle) -> PrescriptionView:
    medications = bundle.get(ProcessedKind.MEDICATION_REQUEST)
    return PrescriptionView(
        patient=_person(bundle, ProcessedKind.PATIENT),
        doctor=_person(bundle, ProcessedKind.PRACTITIONER),
        medications=medications,
        conditions=bundle.get(ProcessedKind.CONDITION),
        date=medications[-1].authored_on if medications else "",
        attachments=bundle.get(ProcessedKind.ATTACHMENT),
    )


def _build_discharge_summary(bundle: TransformedBundle) -> DischargeSummaryView:
    encounter = _last(bundle, ProcessedKind.ENCOUNTER)
    return DischargeSummaryView(
        patient=_person(bundle, ProcessedKind.PATIENT),
        doctor=_person(bundle, ProcessedKind.PRACTITIONER),
        organization=_organization(bundle),
        encounter_type=encounter.type if encounter else "",
        admitted=encounter.start_date if encounter else "",
        discharged=encounter.end_date if encounter else "",
        conditions=bundle.get(ProcessedKind.CONDITION),
        procedures=bundle.get(ProcessedKind.PROCEDURE),
        medications=bundle.get(ProcessedKind.MEDICATION_REQUEST),
        attachments=bundle.get(ProcessedKind.ATTACHMENT),
    )


def _build_immunization(bundle: TransformedBundle) -> ImmunizationView:
    return ImmunizationView(
        patient=_person(bundle, ProcessedKind.PATIENT),
        doctor=_person(bundle, ProcessedKind.PRACTITIONER),
        organization=_organization(bundle),
        immunizations=bundle.get(ProcessedKind.IMMUNIZATION),
        recommendations=bundle.get(ProcessedKind.IMMUNIZATION_RECOMMENDATION),
        attachments=bundle.get(ProcessedKind.ATTACHMENT),
    )


def _build_op_consult(bundle: TransformedBundle) -> OPConsultView:
    encounter = _last(bundle, ProcessedKind.ENCOUNTER)
    return OPConsultView(
        patient=_person(bundle, ProcessedKind.PATIENT),
        doctor=_person(bundle, ProcessedKind.PRACTITIONER),
        organization=_organization(bundle),
        encounter_type=encounter.type if encounter else "",
        visit_date=encounter.start_date if encounter else "",
        conditions=bundle.get(ProcessedKind.CONDITION),
        allergies=bundle.get(ProcessedKind.ALLERGY_INTOLERANCE),
        procedures=bundle.get(ProcessedKind.PROCEDURE),
        medications=bundle.get(ProcessedKind.MEDICATION_REQUEST),
        attachments=bundle.get(ProcessedKind.ATTACHMENT),
    )


def _build_wellness(bundle: TransformedBundle) -> WellnessView:
    return WellnessView(
        patient=_person(bundle, ProcessedKind.PATIENT),
        doctor=_person(bundle, ProcessedKind.PRACTITIONER),
        organization=_organization(bundle),
        observations=bundle.get(ProcessedKind.OBSERVATION),
        attachments=bundle.get(ProcessedKind.ATTACHMENT),
    )


_VIEW_BUILDERS: Dict[str, Callable[[TransformedBundle], DocumentView]] = {
    BundleType.DIAGNOSTIC_REPORT.value: _build_diagnostic_report,
    # Profile-less bundles anchored on a bare DiagnosticReport
    "DiagnosticReport": _build_diagnostic_report,
    BundleType.PRESCRIPTION.value: _build_prescription,
    BundleType.DISCHARGE_SUMMARY.value: _build_discharge_summary,
    BundleType.IMMUNIZATION.value: _build_immunization,
    BundleType.OP_CONSULT.value: _build_op_consult,
    BundleType.WELLNESS.value: _build_wellness,
}

DOCUMENT_VIEW_TYPES = frozenset(_VIEW_BUILDERS)


def build_document_view(bundle: TransformedBundle) -> DocumentView:
    """Build the document view matching a transformed bundle's type.

    Args:
        bundle: Result of BundleTransformer.transform()

    Returns:
        The DocumentView subclass for the bundle type

    Raises:
        UnsupportedDocumentTypeError: If the bundle type has no view
    """
    builder = _VIEW_BUILDERS.get(bundle.bundle_type)
    if builder is None:
        logger.warning(
            f"No document view for bundle type {bundle.bundle_type}",
            extra={"event_type": "DOCUMENT_UNSUPPORTED", "bundle_type": bundle.bundle_type},
        )
        raise UnsupportedDocumentTypeError(
            f"No document view for bundle type {bundle.bundle_type!r}"
        )

    view = builder(bundle)
    logger.debug(
        f"Built {view.DOCUMENT_TYPE} view",
        extra={"event_type": "DOCUMENT_VIEW_BUILT", "bundle_type": bundle.bundle_type},
    )
    return view
