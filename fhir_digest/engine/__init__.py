"""
fhir-digest engine

Normalizes the resources of a FHIR R4 Bundle into flat, typed records and
classifies the bundle as a clinical document type (prescription, diagnostic
report, discharge summary, ...). Classification follows the NRCeS/ABDM
StructureDefinition profiles declared on the bundle's first resource, with a
content-based heuristic available for bundles that carry no profile.
"""

from .aggregator import BundleTransformer, TransformedBundle, transform
from .analyzer import BundleSummary, analyze_bundle, read_bundle_file
from .attachments import ExtractedAttachment, ExtractedBundleData, extract_attachments
from .classifier import BundleClassifier, BundleType, ClassificationPolicy, classify
from .errors import (
    BundleValidationError,
    DigestError,
    UnknownBundleTypeError,
    UnsupportedDocumentTypeError,
)
from .normalizer import SUPPORTED_RESOURCE_TYPES, normalize
from .registry import ProfileRegistry
from .resources import ProcessedKind, ProcessedResource
from .summaries import DOCUMENT_VIEW_TYPES, DocumentView, build_document_view

__all__ = [
    "BundleTransformer",
    "TransformedBundle",
    "transform",
    "BundleSummary",
    "analyze_bundle",
    "read_bundle_file",
    "ExtractedAttachment",
    "ExtractedBundleData",
    "extract_attachments",
    "BundleClassifier",
    "BundleType",
    "ClassificationPolicy",
    "classify",
    "BundleValidationError",
    "DigestError",
    "UnknownBundleTypeError",
    "UnsupportedDocumentTypeError",
    "SUPPORTED_RESOURCE_TYPES",
    "normalize",
    "ProfileRegistry",
    "ProcessedKind",
    "ProcessedResource",
    "DOCUMENT_VIEW_TYPES",
    "DocumentView",
    "build_document_view",
]
