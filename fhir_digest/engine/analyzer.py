"""Quick structural summary of a bundle, without normalizing it."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import BundleValidationError
from .field_extractors import as_dict, as_list, as_text


@dataclass
class BundleSummary:
    type: str
    entry_count: int
    resource_types: List[str] = field(default_factory=list)
    has_attachments: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "entryCount": self.entry_count,
            "resourceTypes": list(self.resource_types),
            "hasAttachments": self.has_attachments,
        }


def read_bundle_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a bundle from a JSON file.

    Raises:
        BundleValidationError: If the file does not hold a JSON object
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise BundleValidationError(f"{path} does not contain a JSON object")
    return data


def _carries_attachment(resource: Dict[str, Any]) -> bool:
    if resource.get("resourceType") == "Binary":
        return True
    if any(as_dict(content).get("attachment") for content in as_list(resource.get("content"))):
        return True
    return any(as_dict(form).get("data") for form in as_list(resource.get("presentedForm")))


def analyze_bundle(bundle: Any) -> BundleSummary:
    """Summarize a bundle's type, size and content.

    ``resource_types`` lists each resourceType once, in order of first
    appearance. ``type`` is the Bundle.type field, or "unknown".
    """
    if not isinstance(bundle, dict):
        raise BundleValidationError("Bundle is missing or not an object")

    entries = as_list(bundle.get("entry"))
    summary = BundleSummary(
        type=as_text(bundle.get("type")) or "unknown",
        entry_count=len(entries),
    )

    for entry in entries:
        resource = as_dict(entry).get("resource")
        if not isinstance(resource, dict):
            continue
        resource_type = as_text(resource.get("resourceType"))
        if resource_type and resource_type not in summary.resource_types:
            summary.resource_types.append(resource_type)
        if _carries_attachment(resource):
            summary.has_attachments = True

    return summary
