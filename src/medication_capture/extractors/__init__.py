# src/medication_capture/extractors/__init__.py

from .field_rules import FieldRule, RuleMatch, FIELD_RULES, anchor_names
from .medication_text_extractor import TextFieldExtractor

__all__ = [
    "FieldRule",
    "RuleMatch",
    "FIELD_RULES",
    "anchor_names",
    "TextFieldExtractor",
]
