"""Bundle processing endpoints."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException, Query

from fhir_digest.engine import ClassificationPolicy, DigestError
from fhir_digest.api.models import (
    AttachmentResponse,
    ClassifyResponse,
    DocumentResponse,
    ExtractAttachmentsResponse,
    SummaryResponse,
    TransformResponse,
)
from fhir_digest.api.services.digest_service import digest_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bundles", tags=["bundles"])


def _reject(e: DigestError) -> HTTPException:
    logger.warning(f"Bundle rejected: {e}")
    return HTTPException(status_code=422, detail=str(e))


@router.post("/transform", response_model=TransformResponse)
async def transform_bundle(
    bundle: Dict[str, Any] = Body(...),
    policy: ClassificationPolicy = Query(ClassificationPolicy.PROFILE_FIRST),
):
    """Normalize every entry and classify the bundle."""
    try:
        result = digest_service.transform(bundle, policy)
    except DigestError as e:
        raise _reject(e)

    payload = result.to_dict()
    return TransformResponse(
        bundle_type=result.bundle_type,
        bundle_id=result.bundle_id,
        resource_count=result.resource_count,
        synthesized_attachments=result.synthesized_attachments,
        resources={kind: payload[kind] for kind in result.kinds},
    )


@router.post("/classify", response_model=ClassifyResponse)
async def classify_bundle(
    bundle: Dict[str, Any] = Body(...),
    policy: ClassificationPolicy = Query(ClassificationPolicy.PROFILE_FIRST),
):
    """Return only the bundle type."""
    try:
        bundle_type = digest_service.classify(bundle, policy)
    except DigestError as e:
        raise _reject(e)
    return ClassifyResponse(bundle_type=bundle_type, policy=policy)


@router.post("/attachments", response_model=ExtractAttachmentsResponse)
async def extract_bundle_attachments(bundle: Dict[str, Any] = Body(...)):
    """Split attachment payloads out of the bundle."""
    try:
        extracted = digest_service.extract(bundle)
    except DigestError as e:
        raise _reject(e)

    return ExtractAttachmentsResponse(
        bundle=extracted.bundle,
        attachments=[
            AttachmentResponse(
                ref_id=a.ref_id,
                content_type=a.content_type,
                data=a.data,
                title=a.title,
            )
            for a in extracted.attachments
        ],
    )


@router.post("/summary", response_model=SummaryResponse)
async def summarize_bundle(bundle: Dict[str, Any] = Body(...)):
    """Structural summary without normalization."""
    try:
        summary = digest_service.summarize(bundle)
    except DigestError as e:
        raise _reject(e)

    return SummaryResponse(
        type=summary.type,
        entry_count=summary.entry_count,
        resource_types=summary.resource_types,
        has_attachments=summary.has_attachments,
    )


@router.post("/document", response_model=DocumentResponse)
async def document_view(
    bundle: Dict[str, Any] = Body(...),
    policy: ClassificationPolicy = Query(ClassificationPolicy.PROFILE_FIRST),
):
    """Document view of the bundle; 422 for types without one."""
    try:
        transformed = digest_service.transform(bundle, policy)
        view = digest_service.document(transformed)
    except DigestError as e:
        raise _reject(e)

    payload = view.to_dict()
    return DocumentResponse(
        bundle_type=transformed.bundle_type,
        document_type=payload.pop("documentType"),
        document=payload,
    )
