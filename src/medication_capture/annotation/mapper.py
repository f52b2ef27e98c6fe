# ============================================================================
# src/medication_capture/annotation/mapper.py
# ============================================================================
"""
Annotation Mapper

Attributes recognized words to draft fields for the verification overlay.
A word belongs to a field when its normalized text is a non-empty substring
of the field's normalized value, or of the label text the value was read
from (so "PO" still marks route "Oral"). Containment rather than equality,
because recognition engines split tokens ("10" + "mg" for "10mg").

Every populated field in the style table yields an annotation, including
fields with no matching word, so the legend can show "no visual match".
"""

from typing import Dict, List, NamedTuple, Optional, Sequence
import logging
import re

from ..core.bbox_utils import bbox_to_percent_rect
from ..core.context.annotation import Annotation
from ..core.context.medication_draft import MedicationDraft
from ..core.context.scan_models import RecognizedWord

logger = logging.getLogger(__name__)


class FieldStyle(NamedTuple):
    label: str
    color: str


# Legend order; fields missing here are never annotated
FIELD_STYLES: Dict[str, FieldStyle] = {
    "name": FieldStyle("Medication Name", "#0966CC"),
    "dosage": FieldStyle("Dosage", "#10B981"),
    "frequency": FieldStyle("Frequency", "#F59E0B"),
    "route": FieldStyle("Route", "#8B5CF6"),
    "quantity": FieldStyle("Quantity", "#EC4899"),
    "instructions": FieldStyle("Instructions", "#F97316"),
    "prescriber": FieldStyle("Prescriber", "#06B6D4"),
}


def normalize_match_text(text: Optional[str]) -> str:
    """Lowercase and drop everything but a-z and 0-9."""
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


class AnnotationMapper:
    def __init__(self, styles: Optional[Dict[str, FieldStyle]] = None):
        self.styles = styles or FIELD_STYLES

    def map(
        self,
        draft: MedicationDraft,
        words: Optional[Sequence[RecognizedWord]] = None,
        sources: Optional[Dict[str, str]] = None,
    ) -> List[Annotation]:
        """
        Build overlay annotations for a draft.

        Args:
            draft: Scored medication draft
            words: Recognized words with pixel boxes (may be empty)
            sources: Label text each field was read from, when it differs
                from the normalized value ("PO" for route "Oral")

        Returns:
            One Annotation per populated, styled field, in legend order
        """
        words = tuple(words or ())
        sources = sources or {}
        normalized_words = [normalize_match_text(word.text) for word in words]
        populated = draft.populated_fields()

        annotations = []
        for field, style in self.styles.items():
            if field not in populated:
                continue

            targets = [
                target
                for target in (
                    normalize_match_text(populated[field]),
                    normalize_match_text(sources.get(field)),
                )
                if target
            ]
            matched = tuple(
                word
                for word, text in zip(words, normalized_words)
                if text and any(text in target for target in targets)
            )
            annotations.append(Annotation(
                field=field,
                label=style.label,
                color=style.color,
                words=matched,
            ))

        logger.debug(
            f"Mapped {len(annotations)} field(s), "
            f"{sum(1 for a in annotations if a.has_visual_match)} with visual match"
        )
        return annotations


def overlay_regions(
    annotations: Sequence[Annotation],
    image_width: float,
    image_height: float,
) -> List[Dict[str, object]]:
    """
    Percentage rectangles for drawing attributed words over the image.

    Boxes that fall outside the image or are malformed are skipped.
    """
    regions = []
    for annotation in annotations:
        for box in annotation.boxes:
            rect = bbox_to_percent_rect(box, image_width, image_height)
            if rect is None:
                continue
            regions.append({
                "field": annotation.field,
                "label": annotation.label,
                "color": annotation.color,
                **rect,
            })
    return regions
