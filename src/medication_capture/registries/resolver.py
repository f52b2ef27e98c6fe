# ============================================================================
# src/medication_capture/registries/resolver.py
# ============================================================================
"""
Drug Registry Resolver

Tries NDC candidates against the drug registry strictly in order and stops
at the first hit. Candidate order encodes priority, so lookups are never
issued concurrently.

State machine per resolution:

    PENDING -> TRYING -> MATCHED
                      -> EXHAUSTED   (every candidate answered "no")
                      -> CANCELLED   (caller aborted between candidates)

A failed or timed-out lookup is a "no match" for that candidate only.
Cancelled is not the same as not found: `resolve()` raises
ResolutionCancelledError rather than returning None.

Retail fallback (`resolve_retail`) is keyed by the raw scanned code and
only runs for retail symbologies (UPC-A/E, EAN-13/8).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple
import asyncio

from .base import DrugRegistry, RetailRegistry
from ..config import registry_settings
from ..core.context.enums import Symbology
from ..core.context.scan_models import DrugRecord, RetailProduct
from ..core.tracing import (
    LoggingObserver,
    ResolutionObserver,
    TraceEvent,
    TraceEventKind,
)
from ..utils.exceptions import RegistryLookupError, ResolutionCancelledError


class ResolutionState(str, Enum):
    PENDING = "pending"
    TRYING = "trying"
    MATCHED = "matched"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class AttemptOutcome(str, Enum):
    NO_MATCH = "no_match"
    LOOKUP_FAILED = "lookup_failed"
    MATCHED = "matched"


@dataclass(frozen=True)
class CandidateAttempt:
    candidate: str
    outcome: AttemptOutcome
    error: Optional[str] = None


@dataclass
class Resolution:
    state: ResolutionState = ResolutionState.PENDING
    record: Optional[DrugRecord] = None
    matched_candidate: Optional[str] = None
    attempts: List[CandidateAttempt] = field(default_factory=list)

    @property
    def queries_issued(self) -> int:
        return len(self.attempts)


def _failure_reason(error: Exception) -> str:
    if isinstance(error, RegistryLookupError):
        return str(error)
    return f"{type(error).__name__}: {error}"


def iter_candidates(candidates: Iterable[str]) -> Iterator[Tuple[int, int, str]]:
    """Yield (1-based index, total, candidate) in priority order."""
    ordered = list(candidates)
    total = len(ordered)
    for index, candidate in enumerate(ordered, start=1):
        yield index, total, candidate


class DrugRegistryResolver:
    """
    Sequential NDC candidate resolution with retail fallback.

    Stateless between calls; safe to share across concurrent scans.
    """

    def __init__(
        self,
        drug_registry: DrugRegistry,
        retail_registry: Optional[RetailRegistry] = None,
        observer: Optional[ResolutionObserver] = None,
        lookup_timeout: Optional[float] = None,
        retail_enabled: Optional[bool] = None,
    ):
        self.drug_registry = drug_registry
        self.retail_registry = retail_registry
        self.retail_enabled = (
            registry_settings.RETAIL_LOOKUP_ENABLED if retail_enabled is None else retail_enabled
        )
        self.observer = observer or LoggingObserver()
        self.lookup_timeout = (
            registry_settings.LOOKUP_TIMEOUT_SECONDS if lookup_timeout is None else lookup_timeout
        )

    def _emit(self, kind: TraceEventKind, **kwargs) -> None:
        self.observer.on_event(TraceEvent(kind=kind, **kwargs))

    async def resolve_outcome(
        self,
        candidates: Iterable[str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Resolution:
        """
        Run the candidate loop and report how it ended.

        Args:
            candidates: NDC candidates, most likely first
            cancel_event: Set by the caller to abort between candidates

        Returns:
            Resolution with terminal state and every attempt made
        """
        resolution = Resolution()
        ordered = list(candidates)
        self._emit(TraceEventKind.STARTED, total=len(ordered))

        for index, total, candidate in iter_candidates(ordered):
            if cancel_event is not None and cancel_event.is_set():
                resolution.state = ResolutionState.CANCELLED
                self._emit(
                    TraceEventKind.CANCELLED,
                    index=index,
                    total=total,
                    detail=f"stopped after {resolution.queries_issued} candidate(s)",
                )
                return resolution

            resolution.state = ResolutionState.TRYING
            self._emit(TraceEventKind.TRYING, candidate=candidate, index=index, total=total)

            try:
                records = await asyncio.wait_for(
                    self.drug_registry.query(candidate),
                    timeout=self.lookup_timeout,
                )
            except asyncio.TimeoutError:
                resolution.attempts.append(CandidateAttempt(
                    candidate, AttemptOutcome.LOOKUP_FAILED, "timeout"
                ))
                self._emit(
                    TraceEventKind.LOOKUP_FAILED,
                    candidate=candidate, index=index, total=total,
                    detail=f"timed out after {self.lookup_timeout}s",
                )
                continue
            except Exception as e:
                reason = _failure_reason(e)
                resolution.attempts.append(CandidateAttempt(
                    candidate, AttemptOutcome.LOOKUP_FAILED, reason
                ))
                self._emit(
                    TraceEventKind.LOOKUP_FAILED,
                    candidate=candidate, index=index, total=total, detail=reason,
                )
                continue

            if not records:
                resolution.attempts.append(CandidateAttempt(candidate, AttemptOutcome.NO_MATCH))
                self._emit(TraceEventKind.NO_MATCH, candidate=candidate, index=index, total=total)
                continue

            record = records[0]
            resolution.attempts.append(CandidateAttempt(candidate, AttemptOutcome.MATCHED))
            resolution.state = ResolutionState.MATCHED
            resolution.record = record
            resolution.matched_candidate = candidate
            self._emit(
                TraceEventKind.MATCHED,
                candidate=candidate, index=index, total=total,
                detail=record.display_name,
            )
            return resolution

        resolution.state = ResolutionState.EXHAUSTED
        self._emit(
            TraceEventKind.EXHAUSTED,
            total=len(ordered),
            detail=f"no registry match in {len(ordered)} candidate(s)",
        )
        return resolution

    async def resolve(
        self,
        candidates: Iterable[str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[DrugRecord]:
        """
        First matching registry record, or None when every candidate failed.

        Raises:
            ResolutionCancelledError: cancel_event was set mid-loop
        """
        resolution = await self.resolve_outcome(candidates, cancel_event)
        if resolution.state == ResolutionState.CANCELLED:
            raise ResolutionCancelledError(tried=resolution.queries_issued)
        return resolution.record

    async def resolve_retail(
        self,
        raw_code: str,
        symbology: Symbology,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[RetailProduct]:
        """
        Retail product lookup keyed by the raw scanned code.

        Returns None for non-retail symbologies, when no retail registry is
        configured, or when the lookup fails or finds nothing.

        Raises:
            ResolutionCancelledError: cancel_event was already set
        """
        symbology = Symbology.parse(symbology)
        skip_reason = None
        if self.retail_registry is None or not self.retail_enabled:
            skip_reason = "retail lookup disabled"
        elif not symbology.is_retail:
            skip_reason = f"symbology {symbology.value} is not a retail format"

        if skip_reason:
            self._emit(TraceEventKind.RETAIL_SKIPPED, candidate=raw_code, detail=skip_reason)
            return None

        if cancel_event is not None and cancel_event.is_set():
            self._emit(TraceEventKind.CANCELLED, candidate=raw_code, detail="before retail lookup")
            raise ResolutionCancelledError()

        self._emit(TraceEventKind.RETAIL_TRYING, candidate=raw_code, detail=symbology.value)
        try:
            product = await asyncio.wait_for(
                self.retail_registry.query(raw_code),
                timeout=self.lookup_timeout,
            )
        except asyncio.TimeoutError:
            self._emit(
                TraceEventKind.LOOKUP_FAILED,
                candidate=raw_code,
                detail=f"retail lookup timed out after {self.lookup_timeout}s",
            )
            return None
        except Exception as e:
            self._emit(TraceEventKind.LOOKUP_FAILED, candidate=raw_code, detail=_failure_reason(e))
            return None

        if product is None:
            self._emit(TraceEventKind.RETAIL_NOT_FOUND, candidate=raw_code)
            return None

        self._emit(
            TraceEventKind.RETAIL_MATCHED,
            candidate=raw_code,
            detail=product.title or product.brand,
        )
        return product
