"""Attachment side channel.

Pulls base64 payloads out of a bundle so the remaining structure can be stored
or shipped without them. Each payload is replaced by an extension pointing at
a generated reference id, and narrative ``text`` blocks are dropped. The
caller's bundle is never modified; all work happens on a deep copy.
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import (
    ATTACHMENT_REF_EXTENSION_URL,
    BINARY_TITLE,
    DEFAULT_CONTENT_TYPE,
    SIGNATURE_TITLE,
)
from .errors import BundleValidationError
from .field_extractors import as_dict, as_list, as_text

logger = logging.getLogger(__name__)


@dataclass
class ExtractedAttachment:
    """One payload lifted out of a bundle."""

    ref_id: str
    content_type: str
    data: str
    title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refId": self.ref_id,
            "contentType": self.content_type,
            "data": self.data,
            "title": self.title,
        }


@dataclass
class ExtractedBundleData:
    """The lightened bundle plus the payloads removed from it."""

    bundle: Dict[str, Any]
    attachments: List[ExtractedAttachment] = field(default_factory=list)

    def find(self, ref_id: str) -> Optional[ExtractedAttachment]:
        for attachment in self.attachments:
            if attachment.ref_id == ref_id:
                return attachment
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bundle": self.bundle,
            "attachments": [a.to_dict() for a in self.attachments],
        }


def _reference_extension(ref_id: str) -> List[Dict[str, str]]:
    return [{"url": ATTACHMENT_REF_EXTENSION_URL, "valueString": ref_id}]


class _Extractor:
    def __init__(self) -> None:
        self.attachments: List[ExtractedAttachment] = []

    def lift(self, holder: Dict[str, Any], content_type: Any, title: Optional[str]) -> None:
        """Move ``holder["data"]`` into the attachment list."""
        ref_id = str(uuid.uuid4())
        self.attachments.append(
            ExtractedAttachment(
                ref_id=ref_id,
                content_type=as_text(content_type) or DEFAULT_CONTENT_TYPE,
                data=as_text(holder.pop("data")),
                title=title,
            )
        )
        holder["extension"] = _reference_extension(ref_id)
        logger.debug(
            f"Extracted attachment {ref_id}",
            extra={"event_type": "ATTACHMENT_EXTRACTED", "detail": title},
        )

    def diagnostic_report(self, report: Dict[str, Any]) -> None:
        for form in as_list(report.get("presentedForm")):
            if isinstance(form, dict) and form.get("data"):
                self.lift(form, form.get("contentType"), as_text(form.get("title")) or None)

    def document_reference(self, document: Dict[str, Any]) -> None:
        for content in as_list(document.get("content")):
            attachment = as_dict(content).get("attachment")
            if isinstance(attachment, dict) and attachment.get("data"):
                self.lift(
                    attachment,
                    attachment.get("contentType"),
                    as_text(attachment.get("title")) or None,
                )

    def binary(self, binary: Dict[str, Any]) -> None:
        if binary.get("data"):
            self.lift(binary, binary.get("contentType"), BINARY_TITLE)


def extract_attachments(bundle: Any) -> ExtractedBundleData:
    """Extract attachment payloads from a bundle.

    Looks in Bundle.signature.data, DiagnosticReport.presentedForm,
    DocumentReference.content[].attachment and Binary resources.

    Args:
        bundle: Raw FHIR Bundle dict; left untouched

    Returns:
        ExtractedBundleData with a modified copy of the bundle and the
        extracted attachments in discovery order

    Raises:
        BundleValidationError: If ``bundle`` is not a dict
    """
    if not isinstance(bundle, dict):
        raise BundleValidationError("Bundle is missing or not an object")

    lightened = copy.deepcopy(bundle)
    extractor = _Extractor()

    signature = lightened.get("signature")
    if isinstance(signature, dict) and signature.get("data"):
        extractor.lift(signature, signature.get("sigFormat"), SIGNATURE_TITLE)

    lightened.pop("text", None)

    handlers = {
        "DiagnosticReport": extractor.diagnostic_report,
        "DocumentReference": extractor.document_reference,
        "Binary": extractor.binary,
    }
    for entry in as_list(lightened.get("entry")):
        resource = as_dict(entry).get("resource")
        if not isinstance(resource, dict):
            continue
        resource.pop("text", None)
        handler = handlers.get(resource.get("resourceType"))
        if handler:
            handler(resource)

    if extractor.attachments:
        logger.info(
            f"Extracted {len(extractor.attachments)} attachment(s) from bundle",
            extra={
                "event_type": "ATTACHMENTS_EXTRACTED",
                "attachment_count": len(extractor.attachments),
            },
        )

    return ExtractedBundleData(bundle=lightened, attachments=extractor.attachments)
