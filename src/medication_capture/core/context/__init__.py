# src/medication_capture/core/context/__init__.py

from .enums import (
    Provenance,
    ConfidenceLevel,
    ScanOutcome,
    Symbology,
    RETAIL_SYMBOLOGIES,
)
from .scan_models import (
    ScannedCode,
    RecognizedWord,
    RecognitionResult,
    ActiveIngredient,
    DrugRecord,
    RetailProduct,
)
from .medication_draft import MedicationDraft, DRAFT_FIELDS
from .annotation import Annotation

__all__ = [
    "Provenance",
    "ConfidenceLevel",
    "ScanOutcome",
    "Symbology",
    "RETAIL_SYMBOLOGIES",
    "ScannedCode",
    "RecognizedWord",
    "RecognitionResult",
    "ActiveIngredient",
    "DrugRecord",
    "RetailProduct",
    "MedicationDraft",
    "DRAFT_FIELDS",
    "Annotation",
]
