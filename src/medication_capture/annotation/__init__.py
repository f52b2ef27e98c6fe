# src/medication_capture/annotation/__init__.py

from .mapper import AnnotationMapper, FIELD_STYLES, FieldStyle, normalize_match_text, overlay_regions

__all__ = [
    "AnnotationMapper",
    "FIELD_STYLES",
    "FieldStyle",
    "normalize_match_text",
    "overlay_regions",
]
