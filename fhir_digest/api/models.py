"""Pydantic models for API responses."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fhir_digest.engine import ClassificationPolicy


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "fhir-digest-api"
    supported_resource_types: List[str] = Field(default_factory=list)


class TransformResponse(BaseModel):
    """Normalized bundle, grouped by processed kind."""
    bundle_type: str
    bundle_id: Optional[str] = None
    resource_count: int
    synthesized_attachments: int = 0
    resources: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


class ClassifyResponse(BaseModel):
    """Bundle type decided by the classifier."""
    bundle_type: str
    policy: ClassificationPolicy


class AttachmentResponse(BaseModel):
    """One payload lifted out of a bundle."""
    ref_id: str
    content_type: str
    data: str
    title: Optional[str] = None


class ExtractAttachmentsResponse(BaseModel):
    """Lightened bundle plus its extracted payloads."""
    bundle: Dict[str, Any]
    attachments: List[AttachmentResponse] = Field(default_factory=list)


class SummaryResponse(BaseModel):
    """Structural summary of a bundle."""
    type: str
    entry_count: int
    resource_types: List[str] = Field(default_factory=list)
    has_attachments: bool = False


class DocumentResponse(BaseModel):
    """Reader-facing view of one clinical document."""
    bundle_type: str
    document_type: str
    document: Dict[str, Any] = Field(default_factory=dict)
