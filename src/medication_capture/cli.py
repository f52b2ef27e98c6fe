# ============================================================================
# src/medication_capture/cli.py
# ============================================================================
"""
Command-line entry point

Usage:
    medication-capture normalize 0312345678901
    medication-capture barcode 0312345678901 --symbology UPC_A
    medication-capture label label.txt --words words.json

Prints a JSON document to stdout; logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from .config import logging_settings, threshold_settings
from .core.context.scan_models import ScannedCode
from .core.tracing import RecordingObserver
from .normalizers.ndc import normalize_code
from .pipeline import MedicationCapturePipeline, recognition_from_payload
from .utils.exceptions import MedicationCaptureError
from .utils.logging import setup_logging


def _emit(payload) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


async def _scan_barcode(code: str, symbology: Optional[str]) -> dict:
    observer = RecordingObserver()
    async with MedicationCapturePipeline.from_settings(observer=observer) as pipeline:
        result = await pipeline.process_barcode(ScannedCode.from_decoder(code, symbology))

    payload = result.to_dict(review_threshold=threshold_settings.REVIEW_THRESHOLD)
    payload["trace"] = observer.debug_log()
    return payload


def _scan_label(text_file: Path, words_file: Optional[Path]) -> dict:
    text = text_file.read_text(encoding="utf-8")
    words = []
    if words_file is not None:
        data = json.loads(words_file.read_text(encoding="utf-8"))
        words = data.get("words", []) if isinstance(data, dict) else data

    recognition = recognition_from_payload(text, words, image_ref=str(text_file))
    # Label scans never touch the registries
    pipeline = MedicationCapturePipeline()
    result = pipeline.process_label(recognition)
    return result.to_dict(review_threshold=threshold_settings.REVIEW_THRESHOLD)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="medication-capture",
        description="Identify medications from barcodes and label text",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    normalize = sub.add_parser("normalize", help="List NDC candidates for a scanned code")
    normalize.add_argument("code")

    barcode = sub.add_parser("barcode", help="Resolve a scanned code against the registries")
    barcode.add_argument("code")
    barcode.add_argument("--symbology", default=None, help="Decoder format, e.g. UPC_A, EAN_13")

    label = sub.add_parser("label", help="Extract medications from recognized label text")
    label.add_argument("text_file", type=Path)
    label.add_argument("--words", type=Path, default=None, help="JSON list of recognized words")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        level=args.log_level or logging_settings.LOG_LEVEL,
        log_file=logging_settings.LOG_FILE,
        format_json=logging_settings.LOG_JSON,
        stream=sys.stderr,
    )

    try:
        if args.command == "normalize":
            _emit({"code": args.code, "candidates": normalize_code(args.code)})
        elif args.command == "barcode":
            _emit(asyncio.run(_scan_barcode(args.code, args.symbology)))
        elif args.command == "label":
            _emit(_scan_label(args.text_file, args.words))
    except MedicationCaptureError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
