# ============================================================================
# src/medication_capture/core/context/medication_draft.py
# ============================================================================
"""
MedicationDraft - the pipeline's output unit

One scored medication candidate handed to the charting layer for human
review. Text fields are None when nothing was found; "found but empty"
never happens because extractors omit fields instead of emitting "".
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .enums import Provenance

# Order matters: it is the display order of the verification overlay legend
DRAFT_FIELDS = (
    "name",
    "dosage",
    "frequency",
    "route",
    "quantity",
    "instructions",
    "prescriber",
    "refills",
)


@dataclass
class MedicationDraft:
    provenance: Provenance
    confidence: int = 0

    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    route: Optional[str] = None
    quantity: Optional[str] = None
    instructions: Optional[str] = None
    prescriber: Optional[str] = None
    refills: Optional[str] = None

    source_image: Optional[str] = None

    def __post_init__(self):
        self.provenance = Provenance(self.provenance)
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within 0-100, got {self.confidence}")

    @classmethod
    def from_fields(
        cls,
        fields: Mapping[str, str],
        provenance: Provenance,
        confidence: int = 0,
        source_image: Optional[str] = None,
    ) -> "MedicationDraft":
        known = {k: v for k, v in fields.items() if k in DRAFT_FIELDS}
        return cls(
            provenance=provenance,
            confidence=confidence,
            source_image=source_image,
            **known,
        )

    def populated_fields(self) -> Dict[str, str]:
        """Field name -> value for every field that was found."""
        return {
            name: getattr(self, name)
            for name in DRAFT_FIELDS
            if getattr(self, name) is not None
        }

    def needs_review(self, threshold: int) -> bool:
        return self.confidence < threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            **{name: getattr(self, name) for name in DRAFT_FIELDS},
            "provenance": self.provenance.value,
            "confidence": self.confidence,
            "source_image": self.source_image,
        }
