#!/usr/bin/env python3
"""Command-line tool to digest a directory of FHIR bundle files.

Usage:
    # Summary of every *.json bundle in a directory
    python -m fhir_digest.scripts.digest_bundles data/bundles

    # Full normalization, classified by content instead of profile
    python -m fhir_digest.scripts.digest_bundles data/bundles --mode transform --policy heuristic

    # Document view of each clinical record
    python -m fhir_digest.scripts.digest_bundles data/bundles --mode document

    # Write one result file per bundle instead of printing
    python -m fhir_digest.scripts.digest_bundles data/bundles --mode transform -o out/

    # Strip attachment payloads, using a custom profile map
    python -m fhir_digest.scripts.digest_bundles data/bundles --mode attachments --registry profiles.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from fhir_digest.engine import (
    BundleClassifier,
    BundleTransformer,
    ClassificationPolicy,
    DigestError,
    ProfileRegistry,
    analyze_bundle,
    build_document_view,
    extract_attachments,
    read_bundle_file,
)
from fhir_digest.engine.config import LOG_FILE
from fhir_digest.engine.logging import file_trace_context, setup_logging

logger = logging.getLogger(__name__)

MODES = ("summary", "transform", "document", "attachments")


def print_json(data: Any, indent: int = 2) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=indent, default=str))


def digest_file(
    path: Path,
    mode: str,
    transformer: BundleTransformer,
) -> Dict[str, Any]:
    """Run one bundle file through the selected mode.

    Raises:
        DigestError: If the bundle is rejected by the engine, or has no
            document view in document mode
        ValueError: If the file is not valid UTF-8 JSON
        OSError: If the file cannot be read
    """
    bundle = read_bundle_file(path)
    if mode == "transform":
        return transformer.transform(bundle).to_dict()
    if mode == "document":
        return build_document_view(transformer.transform(bundle)).to_dict()
    if mode == "attachments":
        return extract_attachments(bundle).to_dict()
    return analyze_bundle(bundle).to_dict()


def find_bundle_files(directory: Path) -> List[Path]:
    return sorted(p for p in directory.glob("*.json") if p.is_file())


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the bundle digest CLI."""
    parser = argparse.ArgumentParser(
        description="Normalize, classify and summarize FHIR bundle files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "bundle_dir",
        type=Path,
        help="Directory containing *.json bundle files",
    )

    parser.add_argument(
        "--mode",
        choices=MODES,
        default="summary",
        help="What to produce for each bundle (default: summary)",
    )

    parser.add_argument(
        "--policy",
        choices=[p.value for p in ClassificationPolicy],
        default=ClassificationPolicy.PROFILE_FIRST.value,
        help="Bundle classification policy (default: profile_first)",
    )

    parser.add_argument(
        "--registry",
        type=Path,
        help="JSON file mapping profile URLs to bundle types",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Normalize entries on a thread pool of this size",
    )

    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        help="Write <name>.<mode>.json files here instead of printing",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit log lines as JSON",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        nargs="?",
        const=LOG_FILE,
        help=f"Also write JSON log lines to this file (default path: {LOG_FILE})",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        json_format=args.json_logs,
        log_file=args.log_file,
    )

    if not args.bundle_dir.is_dir():
        print(f"Error: Bundle directory not found: {args.bundle_dir}")
        return 1

    if args.workers is not None and args.workers < 1:
        print("Error: --workers must be a positive integer")
        return 1

    try:
        registry = ProfileRegistry.from_file(args.registry) if args.registry else ProfileRegistry.default()
    except (OSError, ValueError) as e:
        print(f"Error: Could not load profile registry: {e}")
        return 1

    transformer = BundleTransformer(
        classifier=BundleClassifier(registry=registry, policy=ClassificationPolicy(args.policy)),
        max_workers=args.workers,
    )

    files = find_bundle_files(args.bundle_dir)
    if not files:
        print(f"No bundle files found in {args.bundle_dir}")
        return 0

    if args.output_dir:
        args.output_dir.mkdir(parents=True, exist_ok=True)

    failures: List[str] = []
    for path in tqdm(files, desc="Digesting", unit="bundle", disable=not args.output_dir):
        with file_trace_context(path.name):
            try:
                result = digest_file(path, args.mode, transformer)
            except (DigestError, ValueError, OSError) as e:
                logger.error(
                    f"Failed to digest {path.name}: {e}",
                    extra={"event_type": "FILE_FAILED", "error": str(e)},
                )
                failures.append(path.name)
                continue

        if args.output_dir:
            out_path = args.output_dir / f"{path.stem}.{args.mode}.json"
            with open(out_path, "w", encoding="utf-8") as f:
                json.dump(result, f, indent=2, default=str)
        else:
            print_json({"file": path.name, args.mode: result})

    processed = len(files) - len(failures)
    print(f"\nProcessed {processed}/{len(files)} bundle(s)", file=sys.stderr)
    if failures:
        print(f"Failed: {', '.join(failures)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
