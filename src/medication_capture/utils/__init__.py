# src/medication_capture/utils/__init__.py

from .exceptions import (
    MedicationCaptureError,
    RegistryError,
    RegistryLookupError,
    ResolutionCancelledError,
    RecognitionInputError,
)
from .logging import setup_logging, JsonFormatter, LogAdapter

__all__ = [
    "MedicationCaptureError",
    "RegistryError",
    "RegistryLookupError",
    "ResolutionCancelledError",
    "RecognitionInputError",
    "setup_logging",
    "JsonFormatter",
    "LogAdapter",
]
