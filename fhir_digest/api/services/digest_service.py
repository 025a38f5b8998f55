"""Digest service shared by the bundle endpoints."""

import logging
from typing import Any, Dict, Optional, Union

from fhir_digest.engine import (
    BundleClassifier,
    BundleSummary,
    BundleTransformer,
    ClassificationPolicy,
    DocumentView,
    ExtractedBundleData,
    ProfileRegistry,
    TransformedBundle,
    analyze_bundle,
    build_document_view,
    extract_attachments,
)
from fhir_digest.engine.aggregator import coerce_bundle
from fhir_digest.engine.config import MAX_WORKERS, PROFILE_MAP_FILE

logger = logging.getLogger(__name__)


class DigestService:
    """Holds the profile registry and builds classifiers per request policy."""

    def __init__(
        self,
        registry: Optional[ProfileRegistry] = None,
        max_workers: Optional[int] = None,
    ):
        self._registry = registry
        self._max_workers = max_workers if max_workers is not None else (MAX_WORKERS or None)

    @property
    def registry(self) -> ProfileRegistry:
        """Registry loaded lazily so a bad profile map file surfaces on first use."""
        if self._registry is None:
            if PROFILE_MAP_FILE:
                self._registry = ProfileRegistry.from_file(PROFILE_MAP_FILE)
            else:
                self._registry = ProfileRegistry.default()
        return self._registry

    def classifier(
        self,
        policy: Union[str, ClassificationPolicy] = ClassificationPolicy.PROFILE_FIRST,
    ) -> BundleClassifier:
        return BundleClassifier(registry=self.registry, policy=ClassificationPolicy(policy))

    def transform(
        self,
        bundle: Dict[str, Any],
        policy: Union[str, ClassificationPolicy] = ClassificationPolicy.PROFILE_FIRST,
    ) -> TransformedBundle:
        transformer = BundleTransformer(
            classifier=self.classifier(policy),
            max_workers=self._max_workers,
        )
        return transformer.transform(bundle)

    def classify(
        self,
        bundle: Dict[str, Any],
        policy: Union[str, ClassificationPolicy] = ClassificationPolicy.PROFILE_FIRST,
    ) -> str:
        return self.classifier(policy).classify(coerce_bundle(bundle))

    def document(self, transformed: TransformedBundle) -> DocumentView:
        return build_document_view(transformed)

    def extract(self, bundle: Dict[str, Any]) -> ExtractedBundleData:
        return extract_attachments(bundle)

    def summarize(self, bundle: Dict[str, Any]) -> BundleSummary:
        return analyze_bundle(bundle)


# Global digest service instance
digest_service = DigestService()
