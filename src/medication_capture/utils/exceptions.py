# ============================================================================
# src/medication_capture/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the medication capture pipeline.

"Not found" and "nothing detected" are normal results, not errors:
they are returned as None / empty lists by the components.
"""


class MedicationCaptureError(Exception):
    """Base exception for all medication capture errors."""
    pass


class RegistryError(MedicationCaptureError):
    """Error talking to an external product registry."""
    pass


class RegistryLookupError(RegistryError):
    """
    A single registry lookup failed (network, timeout, 5xx, malformed body).

    The resolver treats this as "no match" for the candidate being tried.
    """

    def __init__(self, message: str, candidate: str = None, status: int = None):
        super().__init__(message)
        self.candidate = candidate
        self.status = status


class ResolutionCancelledError(MedicationCaptureError):
    """Candidate resolution was aborted by the caller before it finished."""

    def __init__(self, tried: int = 0):
        super().__init__(f"Resolution cancelled after {tried} candidate(s)")
        self.tried = tried


class RecognitionInputError(MedicationCaptureError):
    """Recognition engine output could not be interpreted."""
    pass
