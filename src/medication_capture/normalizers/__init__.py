# src/medication_capture/normalizers/__init__.py

from .ndc import CodeNormalizer, normalize_code, digits_only, segment

__all__ = ["CodeNormalizer", "normalize_code", "digits_only", "segment"]
