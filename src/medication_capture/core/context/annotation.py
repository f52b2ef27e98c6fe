# ============================================================================
# src/medication_capture/core/context/annotation.py
# ============================================================================
"""
Verification overlay annotation
- Derived from a draft and recognition words, never persisted
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .scan_models import RecognizedWord
from ..bbox_utils import BBox, merge_bboxes


@dataclass(frozen=True)
class Annotation:
    field: str
    label: str
    color: str
    words: Tuple[RecognizedWord, ...] = ()

    @property
    def boxes(self) -> Tuple[BBox, ...]:
        return tuple(word.bbox for word in self.words)

    @property
    def region(self) -> Optional[BBox]:
        """Box enclosing every attributed word, None when nothing matched."""
        return merge_bboxes(list(self.boxes))

    @property
    def has_visual_match(self) -> bool:
        return bool(self.words)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "label": self.label,
            "color": self.color,
            "boxes": [list(box) for box in self.boxes],
        }
