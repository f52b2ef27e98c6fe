# ============================================================================
# src/medication_capture/core/tracing.py
# ============================================================================
"""
Resolution Trace Events

The resolver reports progress ("tried candidate X", "matched", "exhausted")
as TraceEvent objects sent to an injected observer instead of writing logs
itself. Observers decide where events go:

- NullObserver: drop everything
- RecordingObserver: keep events in order (tests, on-screen debug log)
- LoggingObserver: forward to stdlib logging (default)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from ..utils.logging import LogAdapter


class TraceEventKind(str, Enum):
    STARTED = "started"
    TRYING = "trying"
    NO_MATCH = "no_match"
    LOOKUP_FAILED = "lookup_failed"
    MATCHED = "matched"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    RETAIL_SKIPPED = "retail_skipped"
    RETAIL_TRYING = "retail_trying"
    RETAIL_MATCHED = "retail_matched"
    RETAIL_NOT_FOUND = "retail_not_found"


@dataclass(frozen=True)
class TraceEvent:
    kind: TraceEventKind
    candidate: Optional[str] = None
    # 1-based position of the candidate and the total count
    index: Optional[int] = None
    total: Optional[int] = None
    detail: Optional[str] = None

    def describe(self) -> str:
        """One human-readable debug line."""
        position = f"[{self.index}/{self.total}] " if self.index is not None else ""
        subject = f" {self.candidate}" if self.candidate else ""
        suffix = f": {self.detail}" if self.detail else ""
        return f"{position}{self.kind.value}{subject}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "candidate": self.candidate,
            "index": self.index,
            "total": self.total,
            "detail": self.detail,
        }


class ResolutionObserver(ABC):
    """Receives trace events from the resolver."""

    @abstractmethod
    def on_event(self, event: TraceEvent) -> None:
        pass


class NullObserver(ResolutionObserver):
    def on_event(self, event: TraceEvent) -> None:
        return None


@dataclass
class RecordingObserver(ResolutionObserver):
    events: List[TraceEvent] = field(default_factory=list)

    def on_event(self, event: TraceEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[TraceEventKind]:
        return [event.kind for event in self.events]

    def debug_log(self) -> List[str]:
        return [event.describe() for event in self.events]


class LoggingObserver(ResolutionObserver):
    """Forward trace events to a logger, with the event as structured extra."""

    _LEVELS = {
        TraceEventKind.LOOKUP_FAILED: logging.WARNING,
        TraceEventKind.MATCHED: logging.INFO,
        TraceEventKind.EXHAUSTED: logging.INFO,
        TraceEventKind.CANCELLED: logging.INFO,
        TraceEventKind.RETAIL_MATCHED: logging.INFO,
        TraceEventKind.RETAIL_NOT_FOUND: logging.INFO,
    }

    def __init__(self, logger: Optional[logging.Logger] = None, **context):
        base = logger or logging.getLogger("medication_capture.resolution")
        self.logger = LogAdapter(base, context)

    def on_event(self, event: TraceEvent) -> None:
        level = self._LEVELS.get(event.kind, logging.DEBUG)
        self.logger.log(level, event.describe(), extra={"trace": event.to_dict()})
