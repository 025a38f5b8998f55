"""Tests for the digest_bundles command-line tool."""

import json
import logging

import pytest

from fhir_digest.engine.config import PROFILE_BASE_URL
from fhir_digest.engine.logging.handlers import ROOT_LOGGER_NAME
from fhir_digest.scripts.digest_bundles import main


def _write_bundle(directory, name: str, bundle) -> None:
    (directory / name).write_text(json.dumps(bundle))


def _wellness_bundle() -> dict:
    return {
        "resourceType": "Bundle",
        "type": "document",
        "entry": [
            {
                "resource": {
                    "resourceType": "Composition",
                    "meta": {"profile": [f"{PROFILE_BASE_URL}/WellnessRecord"]},
                }
            },
            {
                "resource": {
                    "resourceType": "Observation",
                    "code": {"text": "Height"},
                    "valueQuantity": {"value": 172, "unit": "cm"},
                }
            },
        ],
    }


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestDigestCli:
    """Tests for main()."""

    def test_summary_mode(self, tmp_path, capsys):
        """Test printing a summary per file."""
        _write_bundle(tmp_path, "wellness.json", _wellness_bundle())
        assert main([str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert '"entryCount": 2' in out
        assert '"file": "wellness.json"' in out

    def test_transform_to_output_dir(self, tmp_path):
        """Test writing transform results to files."""
        bundles = tmp_path / "bundles"
        bundles.mkdir()
        _write_bundle(bundles, "wellness.json", _wellness_bundle())
        out_dir = tmp_path / "out"

        assert main([str(bundles), "--mode", "transform", "-o", str(out_dir)]) == 0

        result = json.loads((out_dir / "wellness.transform.json").read_text())
        assert result["bundleType"] == "WellnessRecord"
        assert result["ObservationResult"][0]["value"] == "172"

    def test_failures_are_skipped(self, tmp_path, capsys):
        """Test that bad files are reported and the rest still processed."""
        _write_bundle(tmp_path, "a_good.json", _wellness_bundle())
        _write_bundle(tmp_path, "b_empty.json", {})
        (tmp_path / "c_broken.json").write_text("{not json")

        assert main([str(tmp_path), "--mode", "transform"]) == 1

        captured = capsys.readouterr()
        assert '"file": "a_good.json"' in captured.out
        assert "b_empty.json" in captured.err
        assert "c_broken.json" in captured.err

    def test_undecodable_file_is_skipped(self, tmp_path, capsys):
        """Test that a file with invalid UTF-8 does not abort the batch."""
        (tmp_path / "a_latin1.json").write_bytes(b'{"resourceType": "Bundle", "id": "\xff\xfe"}')
        _write_bundle(tmp_path, "b_good.json", _wellness_bundle())

        assert main([str(tmp_path), "--mode", "summary"]) == 1

        captured = capsys.readouterr()
        assert '"file": "b_good.json"' in captured.out
        assert "a_latin1.json" in captured.err
        assert "Processed 1/2" in captured.err

    def test_document_mode(self, tmp_path, capsys):
        """Test printing the document view per file."""
        _write_bundle(tmp_path, "wellness.json", _wellness_bundle())
        assert main([str(tmp_path), "--mode", "document"]) == 0
        output = json.loads(capsys.readouterr().out)
        document = output["document"]
        assert document["documentType"] == "WellnessRecord"
        assert document["observations"][0]["value"] == "172"

    def test_document_mode_skips_unsupported_types(self, tmp_path, capsys):
        """Test that bundles without a document view are reported as failures."""
        bundle = _wellness_bundle()
        bundle["entry"][0]["resource"]["meta"]["profile"] = [f"{PROFILE_BASE_URL}/InvoiceRecord"]
        _write_bundle(tmp_path, "invoice.json", bundle)

        assert main([str(tmp_path), "--mode", "document"]) == 1
        assert "invoice.json" in capsys.readouterr().err

    def test_custom_registry(self, tmp_path, capsys):
        """Test classification with a registry loaded from file."""
        bundles = tmp_path / "bundles"
        bundles.mkdir()
        bundle = _wellness_bundle()
        bundle["entry"][0]["resource"]["meta"]["profile"] = ["https://example.org/Custom"]
        _write_bundle(bundles, "custom.json", bundle)
        registry = tmp_path / "profiles.json"
        registry.write_text(json.dumps({"https://example.org/Custom": "CustomRecord"}))

        assert main([str(bundles), "--mode", "transform", "--registry", str(registry)]) == 0
        assert '"bundleType": "CustomRecord"' in capsys.readouterr().out

    def test_missing_directory(self, tmp_path):
        """Test the exit status for a missing input directory."""
        assert main([str(tmp_path / "missing")]) == 1
