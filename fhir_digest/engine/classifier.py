"""Bundle classifier.

Decides which kind of clinical document a bundle represents. Two policies
exist:

- PROFILE_FIRST (default): the anchor resource's declared profile is looked up
  in the ProfileRegistry; if it is not registered, the anchor's own
  ``resourceType`` becomes the tag.
- HEURISTIC: the whole entry set is scanned for marker resources in a fixed
  precedence order. Kept for older inputs that carry no profile.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import (
    AMBULATORY_ENCOUNTER_CLASSES,
    INPATIENT_ENCOUNTER_CLASSES,
    VITAL_SIGNS_CATEGORY,
)
from .errors import BundleValidationError, UnknownBundleTypeError
from .field_extractors import as_dict, as_list, as_text, coding_codes
from .registry import ProfileRegistry

logger = logging.getLogger(__name__)

Resource = Dict[str, Any]


class ClassificationPolicy(str, Enum):
    """How bundle type is decided."""

    PROFILE_FIRST = "profile_first"
    HEURISTIC = "heuristic"


class BundleType(str, Enum):
    """Document-level record types."""

    DIAGNOSTIC_REPORT = "DiagnosticReportRecord"
    PRESCRIPTION = "PrescriptionRecord"
    DISCHARGE_SUMMARY = "DischargeSummaryRecord"
    IMMUNIZATION = "ImmunizationRecord"
    OP_CONSULT = "OPConsultRecord"
    WELLNESS = "WellnessRecord"
    INVOICE = "InvoiceRecord"
    HEALTH_DOCUMENT = "HealthDocumentRecord"


# =============================================================================
# Anchor Resolution
# =============================================================================


def bundle_resources(bundle: Any) -> List[Resource]:
    """Resources of every entry that holds one, in entry order."""
    resources = []
    for entry in as_list(as_dict(bundle).get("entry")):
        resource = as_dict(entry).get("resource")
        if isinstance(resource, dict):
            resources.append(resource)
    return resources


def find_anchor(bundle: Any) -> Resource:
    """Return the first entry resource of a bundle.

    Raises:
        BundleValidationError: If the bundle is absent, has no entries, or no
            entry holds a resource
    """
    if not isinstance(bundle, dict):
        raise BundleValidationError("Bundle is missing or not an object")
    if not as_list(bundle.get("entry")):
        raise BundleValidationError("Bundle has no entries")
    resources = bundle_resources(bundle)
    if not resources:
        raise BundleValidationError("Bundle has no entry with a resource")
    return resources[0]


def anchor_profile(anchor: Resource) -> Optional[str]:
    """First profile URL declared in the anchor's ``meta.profile``."""
    profiles = as_list(as_dict(anchor.get("meta")).get("profile"))
    if not profiles:
        return None
    return as_text(profiles[0]) or None


# =============================================================================
# Heuristic Markers
# =============================================================================


def _encounter_matches(resource: Resource, classes: set, keyword: str) -> bool:
    if resource.get("resourceType") != "Encounter":
        return False
    encounter_class = as_dict(resource.get("class"))
    code = as_text(encounter_class.get("code")).upper()
    display = as_text(encounter_class.get("display")).lower()
    return code in classes or keyword in display


def _is_inpatient_encounter(resource: Resource) -> bool:
    return _encounter_matches(resource, INPATIENT_ENCOUNTER_CLASSES, "inpatient")


def _is_ambulatory_encounter(resource: Resource) -> bool:
    return _encounter_matches(resource, AMBULATORY_ENCOUNTER_CLASSES, "ambulatory")


def _is_vital_signs(resource: Resource) -> bool:
    if resource.get("resourceType") != "Observation":
        return False
    for category in as_list(resource.get("category")):
        if VITAL_SIGNS_CATEGORY in coding_codes(category):
            return True
    return False


def _has_type(resource_type: str) -> Callable[[Resource], bool]:
    def matches(resource: Resource) -> bool:
        return resource.get("resourceType") == resource_type

    return matches


# Precedence is the tuple order; the first marker found anywhere in the bundle wins.
HEURISTIC_MARKERS: Tuple[Tuple[BundleType, Callable[[Resource], bool]], ...] = (
    (BundleType.DIAGNOSTIC_REPORT, _has_type("DiagnosticReport")),
    (BundleType.PRESCRIPTION, _has_type("MedicationRequest")),
    (BundleType.DISCHARGE_SUMMARY, _is_inpatient_encounter),
    (BundleType.IMMUNIZATION, _has_type("Immunization")),
    (BundleType.OP_CONSULT, _is_ambulatory_encounter),
    (BundleType.WELLNESS, _is_vital_signs),
    (BundleType.INVOICE, _has_type("Invoice")),
    (BundleType.HEALTH_DOCUMENT, _has_type("DocumentReference")),
)


# =============================================================================
# Classifier
# =============================================================================


class BundleClassifier:
    """Assigns a bundle type tag to a raw bundle."""

    def __init__(
        self,
        registry: Optional[ProfileRegistry] = None,
        policy: ClassificationPolicy = ClassificationPolicy.PROFILE_FIRST,
    ) -> None:
        self.registry = registry if registry is not None else ProfileRegistry.default()
        self.policy = ClassificationPolicy(policy)

    def classify(self, bundle: Any) -> str:
        """Classify a raw bundle.

        Args:
            bundle: Raw FHIR Bundle dict

        Returns:
            Bundle type tag

        Raises:
            BundleValidationError: If the bundle has no usable anchor resource
            UnknownBundleTypeError: If HEURISTIC finds no marker
        """
        anchor = find_anchor(bundle)

        if self.policy is ClassificationPolicy.HEURISTIC:
            bundle_type = self._classify_heuristic(bundle_resources(bundle))
            source = "heuristic"
        else:
            bundle_type, source = self._classify_profile_first(anchor)

        logger.debug(
            f"Classified bundle as {bundle_type} ({source})",
            extra={"event_type": "BUNDLE_CLASSIFIED", "bundle_type": bundle_type},
        )
        return bundle_type

    def _classify_profile_first(self, anchor: Resource) -> Tuple[str, str]:
        tag = self.registry.lookup(anchor_profile(anchor))
        if tag is not None:
            return tag, "profile"
        resource_type = as_text(anchor.get("resourceType"))
        if not resource_type:
            raise BundleValidationError("Anchor resource has neither a known profile nor a resourceType")
        return resource_type, "resourceType"

    def _classify_heuristic(self, resources: List[Resource]) -> str:
        for bundle_type, matches in HEURISTIC_MARKERS:
            if any(matches(resource) for resource in resources):
                return bundle_type.value
        raise UnknownBundleTypeError("Unknown bundle type: no classification rule matched")


def classify(
    bundle: Any,
    registry: Optional[ProfileRegistry] = None,
    policy: ClassificationPolicy = ClassificationPolicy.PROFILE_FIRST,
) -> str:
    """Classify a bundle with a one-off BundleClassifier."""
    return BundleClassifier(registry=registry, policy=policy).classify(bundle)
