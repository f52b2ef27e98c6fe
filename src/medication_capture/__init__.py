# ============================================================================
# src/medication_capture/__init__.py
# ============================================================================
"""
Medication capture and identification.

Turns a scanned barcode or recognized label text into scored medication
drafts for human verification.
"""

__version__ = "0.1.0"

from .pipeline import MedicationCapturePipeline, ScanResult, recognition_from_payload
from .core.context import MedicationDraft, Provenance, ScannedCode, RecognitionResult, RecognizedWord

__all__ = [
    "MedicationCapturePipeline",
    "ScanResult",
    "recognition_from_payload",
    "MedicationDraft",
    "Provenance",
    "ScannedCode",
    "RecognitionResult",
    "RecognizedWord",
]
