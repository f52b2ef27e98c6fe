# ============================================================================
# src/medication_capture/core/confidence.py
# ============================================================================
"""
Confidence Scoring

Provides:
- Deterministic 0-100 scores for medication drafts
- Registry-completeness scores for barcode matches
- Confidence levels and the manual-verification flag

Scores are weighted sums over fixed field tables; each table sums to 100.
A present field contributes its whole weight, an absent one nothing, so
adding a field can never lower a score.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .context.enums import ConfidenceLevel
from .context.medication_draft import MedicationDraft
from .context.scan_models import DrugRecord, RetailProduct
from ..config import threshold_settings

# Free-text (label) drafts
TEXT_FIELD_WEIGHTS: Dict[str, int] = {
    "name": 30,
    "dosage": 20,
    "frequency": 15,
    "route": 15,
    "quantity": 8,
    "instructions": 7,
    "prescriber": 5,
}

# Barcode-resolved registry matches
RECORD_FIELD_WEIGHTS: Dict[str, int] = {
    "name": 40,
    "dosage_form": 20,
    "route": 20,
    "active_ingredients": 20,
}


@dataclass
class ConfidenceThresholds:
    """Confidence level thresholds (0-100 scale)"""
    high: int = 75
    medium: int = 50

    @classmethod
    def from_settings(cls) -> "ConfidenceThresholds":
        return cls(
            high=threshold_settings.HIGH_CONFIDENCE_THRESHOLD,
            medium=threshold_settings.MEDIUM_CONFIDENCE_THRESHOLD,
        )

    def get_level(self, score: int) -> ConfidenceLevel:
        """
        Get confidence level from score.

        Args:
            score: Confidence score (0-100)

        Returns:
            ConfidenceLevel.HIGH, MEDIUM or LOW
        """
        if score >= self.high:
            return ConfidenceLevel.HIGH
        elif score >= self.medium:
            return ConfidenceLevel.MEDIUM
        else:
            return ConfidenceLevel.LOW


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) > 0
    return True


class ConfidenceScorer:
    """
    Pure scoring functions over fixed weight tables.
    """

    def __init__(
        self,
        thresholds: Optional[ConfidenceThresholds] = None,
        review_threshold: Optional[int] = None,
    ):
        self.thresholds = thresholds or ConfidenceThresholds.from_settings()
        self.review_threshold = (
            threshold_settings.REVIEW_THRESHOLD if review_threshold is None else review_threshold
        )

    def score(self, draft: Union[MedicationDraft, Mapping[str, Any]]) -> int:
        """
        Score a free-text draft from the fields it has.

        Args:
            draft: MedicationDraft or partial field dict from the extractor

        Returns:
            Score 0-100
        """
        fields = draft.populated_fields() if isinstance(draft, MedicationDraft) else draft
        return sum(
            weight
            for field, weight in TEXT_FIELD_WEIGHTS.items()
            if _present(fields.get(field))
        )

    def score_record(self, record: DrugRecord) -> int:
        """Registry-match completeness for a drug registry record."""
        slots = {
            "name": record.brand_name or record.generic_name,
            "dosage_form": record.dosage_form,
            "route": record.routes,
            "active_ingredients": record.active_ingredients,
        }
        return sum(
            weight
            for slot, weight in RECORD_FIELD_WEIGHTS.items()
            if _present(slots[slot])
        )

    def score_retail_product(self, product: RetailProduct) -> int:
        # Only the name slot can be filled from a retail product
        return RECORD_FIELD_WEIGHTS["name"] if _present(product.title or product.brand) else 0

    def level(self, score: int) -> ConfidenceLevel:
        return self.thresholds.get_level(score)

    def assess(self, score: int, threshold: Optional[int] = None) -> Dict[str, Any]:
        """
        Review decision for a score.

        Low scores are flagged for manual verification, never dropped.
        """
        threshold = self.review_threshold if threshold is None else threshold
        return {
            "confidence_score": score,
            "confidence_level": self.level(score).value,
            "needs_manual_verification": score < threshold,
        }

