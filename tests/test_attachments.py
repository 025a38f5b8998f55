"""Unit tests for the attachment side channel."""

import copy
import uuid

import pytest

from fhir_digest.engine.attachments import extract_attachments
from fhir_digest.engine.config import ATTACHMENT_REF_EXTENSION_URL
from fhir_digest.engine.errors import BundleValidationError


def _make_bundle_with_payloads() -> dict:
    return {
        "resourceType": "Bundle",
        "type": "document",
        "text": {"status": "generated", "div": "<div>bundle</div>"},
        "signature": {"sigFormat": "application/jose", "data": "c2lnbmF0dXJl"},
        "entry": [
            {
                "resource": {
                    "resourceType": "DiagnosticReport",
                    "text": {"status": "generated", "div": "<div>report</div>"},
                    "presentedForm": [
                        {"contentType": "application/pdf", "data": "JVBERi0x", "title": "CBC"},
                        {"url": "https://lab.example.org/cbc.pdf"},
                    ],
                }
            },
            {
                "resource": {
                    "resourceType": "DocumentReference",
                    "content": [{"attachment": {"data": "aW1hZ2U=", "title": "X-ray"}}],
                }
            },
            {"resource": {"resourceType": "Binary", "contentType": "image/jpeg", "data": "/9j/4AAQ"}},
            {"resource": {"resourceType": "Patient", "text": {"div": "<div>patient</div>"}}},
        ],
    }


def _ref_id(holder: dict) -> str:
    extension = holder["extension"][0]
    assert extension["url"] == ATTACHMENT_REF_EXTENSION_URL
    return extension["valueString"]


class TestExtractAttachments:
    """Tests for extract_attachments."""

    def test_all_payload_locations(self):
        """Test extraction from signature, presentedForm, DocumentReference and Binary."""
        extracted = extract_attachments(_make_bundle_with_payloads())
        assert [a.data for a in extracted.attachments] == [
            "c2lnbmF0dXJl",
            "JVBERi0x",
            "aW1hZ2U=",
            "/9j/4AAQ",
        ]
        assert [a.title for a in extracted.attachments] == [
            "Bundle Signature",
            "CBC",
            "X-ray",
            "Binary Document",
        ]
        assert [a.content_type for a in extracted.attachments] == [
            "application/jose",
            "application/pdf",
            "application/octet-stream",
            "image/jpeg",
        ]

    def test_payloads_replaced_with_references(self):
        """Test that every lifted payload is replaced by a ref-id extension."""
        extracted = extract_attachments(_make_bundle_with_payloads())
        bundle = extracted.bundle
        entries = bundle["entry"]

        holders = [
            bundle["signature"],
            entries[0]["resource"]["presentedForm"][0],
            entries[1]["resource"]["content"][0]["attachment"],
            entries[2]["resource"],
        ]
        for holder, attachment in zip(holders, extracted.attachments):
            assert "data" not in holder
            assert _ref_id(holder) == attachment.ref_id
            uuid.UUID(attachment.ref_id)

        # url-only form is left as it was
        assert entries[0]["resource"]["presentedForm"][1] == {"url": "https://lab.example.org/cbc.pdf"}

    def test_text_narratives_removed(self):
        """Test that bundle and resource narratives are dropped."""
        bundle = extract_attachments(_make_bundle_with_payloads()).bundle
        assert "text" not in bundle
        assert all("text" not in e["resource"] for e in bundle["entry"])

    def test_input_not_mutated(self):
        """Test that the caller's bundle is left untouched."""
        original = _make_bundle_with_payloads()
        snapshot = copy.deepcopy(original)
        extract_attachments(original)
        assert original == snapshot

    def test_unique_ref_ids(self):
        """Test that reference ids are unique within and across calls."""
        first = extract_attachments(_make_bundle_with_payloads())
        second = extract_attachments(_make_bundle_with_payloads())
        ids = [a.ref_id for a in first.attachments + second.attachments]
        assert len(set(ids)) == len(ids)

    def test_find_by_ref_id(self):
        """Test lookup of an extracted attachment."""
        extracted = extract_attachments(_make_bundle_with_payloads())
        ref_id = _ref_id(extracted.bundle["entry"][2]["resource"])
        assert extracted.find(ref_id).title == "Binary Document"
        assert extracted.find("missing") is None

    def test_bundle_without_payloads(self):
        """Test a bundle with nothing to extract."""
        bundle = {"resourceType": "Bundle", "entry": [{"resource": {"resourceType": "Patient"}}]}
        extracted = extract_attachments(bundle)
        assert extracted.attachments == []
        assert extracted.bundle == bundle

    def test_to_dict(self):
        """Test the serialized layout."""
        data = extract_attachments(_make_bundle_with_payloads()).to_dict()
        assert set(data) == {"bundle", "attachments"}
        assert set(data["attachments"][0]) == {"refId", "contentType", "data", "title"}

    @pytest.mark.parametrize("bundle", [None, "bundle", []])
    def test_invalid_input(self, bundle):
        """Test that non-object input is rejected."""
        with pytest.raises(BundleValidationError):
            extract_attachments(bundle)
