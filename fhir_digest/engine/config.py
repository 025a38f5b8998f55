"""Configuration constants for the fhir-digest engine."""

import os
from pathlib import Path

# Base paths
BASE_DIR = Path(__file__).parent.parent
LOG_DIR = BASE_DIR / "logs"

# =============================================================================
# Normalization Defaults
# =============================================================================

# Emitted by choice-value resolution when none of the value[x] slots is set
NO_VALUE_FOUND = "no value found"

# Stands in for attachment payloads in the normalized view
ATTACHMENT_PLACEHOLDER = "base64PDFDATA"

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_PRESENTED_FORM_CONTENT_TYPE = "application/pdf"

UNKNOWN_NAME = "Unknown"
UNKNOWN_ID = "Unknown ID"
UNKNOWN_RESOURCE_LABEL = "Unknown (null or undefined resource)"

# =============================================================================
# Bundle Classification
# =============================================================================

PROFILE_BASE_URL = "https://nrces.in/ndhm/fhir/r4/StructureDefinition"

# Document-level record profiles (NRCeS / ABDM) -> bundle type tag
DEFAULT_PROFILE_MAP = {
    f"{PROFILE_BASE_URL}/DiagnosticReportRecord": "DiagnosticReportRecord",
    f"{PROFILE_BASE_URL}/PrescriptionRecord": "PrescriptionRecord",
    f"{PROFILE_BASE_URL}/DischargeSummaryRecord": "DischargeSummaryRecord",
    f"{PROFILE_BASE_URL}/ImmunizationRecord": "ImmunizationRecord",
    f"{PROFILE_BASE_URL}/OPConsultRecord": "OPConsultRecord",
    f"{PROFILE_BASE_URL}/WellnessRecord": "WellnessRecord",
    f"{PROFILE_BASE_URL}/InvoiceRecord": "InvoiceRecord",
    f"{PROFILE_BASE_URL}/HealthDocumentRecord": "HealthDocumentRecord",
}

# Bundle types that trigger presentedForm attachment synthesis
DIAGNOSTIC_REPORT_BUNDLE_TYPES = {"DiagnosticReportRecord", "DiagnosticReport"}

# Encounter class codes (v3 ActCode) used by the heuristic classifier
INPATIENT_ENCOUNTER_CLASSES = {"IMP", "ACUTE", "NONAC"}
AMBULATORY_ENCOUNTER_CLASSES = {"AMB"}

VITAL_SIGNS_CATEGORY = "vital-signs"

# =============================================================================
# Attachment Side Channel
# =============================================================================

ATTACHMENT_REF_EXTENSION_URL = "https://fhir-attachment-ref"
SIGNATURE_TITLE = "Bundle Signature"
BINARY_TITLE = "Binary Document"

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL = "INFO"
LOG_FILE = LOG_DIR / "digest.log"

# =============================================================================
# Service Settings
# =============================================================================

# Optional JSON file ({profile_url: bundle_type}) replacing DEFAULT_PROFILE_MAP
PROFILE_MAP_FILE = os.getenv("FHIR_DIGEST_PROFILE_MAP")

# Thread pool size for entry normalization; 0 or 1 normalizes inline
MAX_WORKERS = int(os.getenv("FHIR_DIGEST_MAX_WORKERS", "0"))

# Comma-separated browser origins allowed by the API; empty disables CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("FHIR_DIGEST_CORS_ORIGINS", "").split(",")
    if origin.strip()
]
