"""Bundle aggregator.

Turns one raw FHIR Bundle into a ``TransformedBundle``: the bundle's type tag
plus its processed resources grouped by kind, each group in source order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .classifier import BundleClassifier, bundle_resources, find_anchor
from .config import (
    ATTACHMENT_PLACEHOLDER,
    DEFAULT_PRESENTED_FORM_CONTENT_TYPE,
    DIAGNOSTIC_REPORT_BUNDLE_TYPES,
)
from .errors import BundleValidationError, DigestError
from .field_extractors import as_dict, as_list, as_text, codeable_concept_text
from .logging import (
    bundle_trace_context,
    get_current_context,
    pop_context,
    push_context,
    resource_trace_context,
)
from .normalizer import normalize
from .resources import Attachment, ProcessedKind, ProcessedResource

logger = logging.getLogger(__name__)

Resource = Dict[str, Any]
KindKey = Union[str, ProcessedKind]


def _kind_key(kind: KindKey) -> str:
    return kind.value if isinstance(kind, ProcessedKind) else str(kind)


@dataclass(frozen=True)
class TransformedBundle:
    """Normalized view of one bundle.

    ``resources`` maps a kind tag (e.g. "PatientInfo") to the processed
    records of that kind, in the order their entries appeared in the bundle.
    Attachments synthesized from DiagnosticReport.presentedForm are included
    in the "Attachment" group and counted separately.
    """

    bundle_type: str
    bundle_id: Optional[str] = None
    resources: Mapping[str, Tuple[ProcessedResource, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    synthesized_attachments: int = 0

    def get(self, kind: KindKey) -> List[ProcessedResource]:
        """Records of one kind; empty when the kind is absent."""
        return list(self.resources.get(_kind_key(kind), ()))

    def count(self, kind: KindKey) -> int:
        return len(self.resources.get(_kind_key(kind), ()))

    @property
    def kinds(self) -> List[str]:
        return list(self.resources)

    @property
    def resource_count(self) -> int:
        """Number of records that came from bundle entries."""
        total = sum(len(records) for records in self.resources.values())
        return total - self.synthesized_attachments

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"bundleType": self.bundle_type, "id": self.bundle_id}
        for kind, records in self.resources.items():
            result[kind] = [record.to_dict() for record in records]
        return result


# =============================================================================
# Input Handling
# =============================================================================


def coerce_bundle(data: Any) -> Resource:
    """Return ``data`` as a Bundle dict, wrapping a bare resource if needed.

    Raises:
        BundleValidationError: If ``data`` is neither a bundle nor a resource
    """
    if not isinstance(data, dict) or not data:
        raise BundleValidationError("Input is empty or not a FHIR object")

    resource_type = data.get("resourceType")
    if resource_type == "Bundle" or "entry" in data:
        return data
    if resource_type:
        return {
            "resourceType": "Bundle",
            "type": "document",
            "entry": [{"resource": data}],
        }
    raise BundleValidationError("Input has neither a resourceType nor entries")


def synthesize_presented_form_attachments(resources: List[Resource]) -> List[Attachment]:
    """Build Attachment records from DiagnosticReport.presentedForm items.

    Only forms that carry ``data`` or ``url`` count. The payload is replaced by
    the placeholder; the title falls back to the report's code text.
    """
    attachments = []
    for resource in resources:
        if resource.get("resourceType") != "DiagnosticReport":
            continue
        report_title = codeable_concept_text(resource.get("code"))
        for form in as_list(resource.get("presentedForm")):
            form = as_dict(form)
            if not (form.get("data") or form.get("url")):
                continue
            attachments.append(
                Attachment(
                    content_type=as_text(form.get("contentType")) or DEFAULT_PRESENTED_FORM_CONTENT_TYPE,
                    data=ATTACHMENT_PLACEHOLDER,
                    title=as_text(form.get("title")) or report_title or None,
                )
            )
    return attachments


# =============================================================================
# Transformer
# =============================================================================


def entry_payloads(bundle: Resource) -> List[Any]:
    """Every non-null entry resource, in entry order, whatever its JSON type."""
    return [
        as_dict(entry).get("resource")
        for entry in as_list(bundle.get("entry"))
        if as_dict(entry).get("resource") is not None
    ]


def _normalize_entry(
    item: Tuple[int, Any],
    context: Optional[Dict[str, Any]] = None,
) -> ProcessedResource:
    index, resource = item
    # Pool threads start with an empty trace stack
    if context:
        push_context(**context)
    try:
        with resource_trace_context(as_text(as_dict(resource).get("resourceType")), index):
            return normalize(resource)
    finally:
        if context:
            pop_context()


class BundleTransformer:
    """Classifies a bundle and normalizes every entry in it.

    Args:
        classifier: BundleClassifier to use; defaults to PROFILE_FIRST with
            the default profile registry
        max_workers: When greater than 1, entries are normalized on a thread
            pool of that size
    """

    def __init__(
        self,
        classifier: Optional[BundleClassifier] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self.classifier = classifier if classifier is not None else BundleClassifier()
        self.max_workers = max_workers

    def transform(self, data: Any) -> TransformedBundle:
        """Transform a raw bundle (or bare resource).

        Args:
            data: Parsed JSON of a Bundle or a single resource

        Returns:
            TransformedBundle with resources grouped by kind

        Raises:
            BundleValidationError: If the input has no usable entries
            UnknownBundleTypeError: If the heuristic policy finds no marker
        """
        try:
            bundle = coerce_bundle(data)
            anchor = find_anchor(bundle)
        except BundleValidationError as e:
            logger.warning(
                f"Rejected bundle: {e}",
                extra={"event_type": "BUNDLE_REJECTED", "error": str(e)},
            )
            raise

        bundle_id = as_text(bundle.get("id")) or as_text(anchor.get("id")) or None

        with bundle_trace_context(bundle_id or "anonymous", logger) as ctx:
            entries = entry_payloads(bundle)
            processed = self._normalize_all(entries)

            try:
                bundle_type = self.classifier.classify(bundle)
            except DigestError as e:
                logger.warning(
                    f"Rejected bundle: {e}",
                    extra={"event_type": "BUNDLE_REJECTED", "error": str(e)},
                )
                raise
            ctx["bundle_type"] = bundle_type

            grouped: Dict[str, List[ProcessedResource]] = {}
            for record in processed:
                grouped.setdefault(record.processed_type.value, []).append(record)

            synthesized: List[Attachment] = []
            attachment_key = ProcessedKind.ATTACHMENT.value
            if bundle_type in DIAGNOSTIC_REPORT_BUNDLE_TYPES and not grouped.get(attachment_key):
                synthesized = synthesize_presented_form_attachments(bundle_resources(bundle))
                if synthesized:
                    grouped[attachment_key] = list(synthesized)
                    logger.debug(
                        f"Synthesized {len(synthesized)} attachment(s) from presentedForm",
                        extra={
                            "event_type": "ATTACHMENTS_SYNTHESIZED",
                            "attachment_count": len(synthesized),
                        },
                    )

            result = TransformedBundle(
                bundle_type=bundle_type,
                bundle_id=bundle_id,
                resources=MappingProxyType({kind: tuple(records) for kind, records in grouped.items()}),
                synthesized_attachments=len(synthesized),
            )

            logger.info(
                f"Transformed {bundle_type} bundle with {len(entries)} resource(s)",
                extra={
                    "event_type": "BUNDLE_TRANSFORMED",
                    "bundle_type": bundle_type,
                    "entry_count": len(entries),
                    "resource_count": result.resource_count,
                },
            )
            return result

    def _normalize_all(self, entries: List[Any]) -> List[ProcessedResource]:
        items = list(enumerate(entries))
        if self.max_workers and self.max_workers > 1 and len(items) > 1:
            worker = partial(_normalize_entry, context=get_current_context())
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                # map() yields in submission order
                return list(executor.map(worker, items))
        return [_normalize_entry(item) for item in items]


def transform(
    data: Any,
    classifier: Optional[BundleClassifier] = None,
    max_workers: Optional[int] = None,
) -> TransformedBundle:
    """Transform a bundle with a one-off BundleTransformer."""
    return BundleTransformer(classifier=classifier, max_workers=max_workers).transform(data)
