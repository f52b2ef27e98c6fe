# ============================================================================
# src/medication_capture/core/context/enums.py
# ============================================================================
"""
Capture Enums
- Provenance of a medication draft
- Confidence levels
- Barcode symbologies
- Scan outcomes
"""

import re
from enum import Enum

class Provenance(str, Enum):
    BARCODE = "barcode"
    OCR = "ocr"

class ConfidenceLevel(str, Enum):
    HIGH = "high"       # >= 75
    MEDIUM = "medium"   # 50 - 75
    LOW = "low"         # < 50

class ScanOutcome(str, Enum):
    MATCHED = "matched"                    # drug registry hit
    RETAIL_MATCHED = "retail_matched"      # retail product registry hit
    NOT_FOUND = "not_found"                # every lookup exhausted
    NOTHING_DETECTED = "nothing_detected"  # no digits / no recognizable fields
    EXTRACTED = "extracted"                # label text produced records
    CANCELLED = "cancelled"                # batch scan aborted by the caller
    FAILED = "failed"                      # batch scan raised; see ScanResult.error


class Symbology(str, Enum):
    """Barcode formats reported by decode engines."""
    UPC_A = "UPC_A"
    UPC_E = "UPC_E"
    EAN_13 = "EAN_13"
    EAN_8 = "EAN_8"
    CODE_128 = "CODE_128"
    CODE_39 = "CODE_39"
    DATA_MATRIX = "DATA_MATRIX"
    QR_CODE = "QR_CODE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, name) -> "Symbology":
        """
        Map a decoder's format name onto a Symbology.

        zxing reports "UPC_A", pyzbar reports "UPCA"/"EAN13", some
        scanners send "upc-a". Unrecognised names become UNKNOWN.
        """
        if isinstance(name, cls):
            return name
        if not name:
            return cls.UNKNOWN

        key = re.sub(r"[^A-Z0-9]", "", str(name).upper())
        for member in cls:
            if member.value.replace("_", "") == key:
                return member
        return cls.UNKNOWN

    @property
    def is_retail(self) -> bool:
        return self in RETAIL_SYMBOLOGIES


RETAIL_SYMBOLOGIES = frozenset({
    Symbology.UPC_A,
    Symbology.UPC_E,
    Symbology.EAN_13,
    Symbology.EAN_8,
})
