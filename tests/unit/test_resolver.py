# ============================================================================
# tests/unit/test_resolver.py
# ============================================================================
"""
Tests for the drug registry resolver state machine
"""

import asyncio

import pytest

from medication_capture.core.context import DrugRecord, Symbology
from medication_capture.core.tracing import RecordingObserver, TraceEventKind
from medication_capture.registries import (
    AttemptOutcome,
    DrugRegistryResolver,
    ResolutionState,
    iter_candidates,
)
from medication_capture.utils.exceptions import ResolutionCancelledError

CANDIDATES = ["1111-1111", "2222-222", "3333-3333", "4444-444", "5555-5555"]


def test_iter_candidates_yields_positions_in_order():
    assert list(iter_candidates(["a", "b"])) == [(1, 2, "a"), (2, 2, "b")]


class TestResolve:

    @pytest.mark.asyncio
    async def test_empty_candidates_issue_no_queries(self, stub_registry_factory, observer):
        registry = stub_registry_factory()
        resolver = DrugRegistryResolver(registry, observer=observer)

        assert await resolver.resolve([]) is None
        assert registry.queries == []
        assert observer.kinds() == [TraceEventKind.STARTED, TraceEventKind.EXHAUSTED]

    @pytest.mark.asyncio
    async def test_stops_at_first_match(self, stub_registry_factory, lisinopril_record):
        registry = stub_registry_factory({"3333-3333": lisinopril_record})
        resolver = DrugRegistryResolver(registry, observer=RecordingObserver())

        record = await resolver.resolve(CANDIDATES)

        assert record is lisinopril_record
        assert registry.queries == CANDIDATES[:3]

    @pytest.mark.asyncio
    async def test_first_candidate_wins_over_later_matches(self, stub_registry_factory, lisinopril_record):
        other = DrugRecord(generic_name="Other")
        registry = stub_registry_factory({"2222-222": lisinopril_record, "4444-444": other})
        resolver = DrugRegistryResolver(registry, observer=RecordingObserver())

        assert await resolver.resolve(CANDIDATES) is lisinopril_record

    @pytest.mark.asyncio
    async def test_exhausted_returns_none(self, stub_registry_factory, observer):
        registry = stub_registry_factory()
        resolver = DrugRegistryResolver(registry, observer=observer)

        outcome = await resolver.resolve_outcome(CANDIDATES)

        assert outcome.state == ResolutionState.EXHAUSTED
        assert outcome.record is None
        assert outcome.queries_issued == 5
        assert observer.kinds()[-1] == TraceEventKind.EXHAUSTED

    @pytest.mark.asyncio
    async def test_lookup_failure_does_not_abort(self, stub_registry_factory, lisinopril_record, observer):
        registry = stub_registry_factory(
            {"3333-3333": lisinopril_record},
            failing={"1111-1111", "2222-222"},
        )
        resolver = DrugRegistryResolver(registry, observer=observer)

        outcome = await resolver.resolve_outcome(CANDIDATES)

        assert outcome.state == ResolutionState.MATCHED
        assert outcome.matched_candidate == "3333-3333"
        assert [a.outcome for a in outcome.attempts] == [
            AttemptOutcome.LOOKUP_FAILED,
            AttemptOutcome.LOOKUP_FAILED,
            AttemptOutcome.MATCHED,
        ]
        assert observer.kinds().count(TraceEventKind.LOOKUP_FAILED) == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_as_no_match(self, stub_registry_factory, lisinopril_record, observer):
        registry = stub_registry_factory(
            {"2222-222": lisinopril_record},
            slow={"1111-1111"},
            delay=1.0,
        )
        resolver = DrugRegistryResolver(registry, observer=observer, lookup_timeout=0.05)

        outcome = await resolver.resolve_outcome(CANDIDATES)

        assert outcome.state == ResolutionState.MATCHED
        assert outcome.attempts[0].outcome == AttemptOutcome.LOOKUP_FAILED
        assert outcome.attempts[0].error == "timeout"
        assert registry.queries == ["1111-1111", "2222-222"]

    @pytest.mark.asyncio
    async def test_unexpected_registry_error_counts_as_lookup_failure(
        self, stub_registry_factory, lisinopril_record, observer
    ):
        registry = stub_registry_factory(
            {"2222-222": lisinopril_record},
            errors={"1111-1111": AttributeError("'str' object has no attribute 'get'")},
        )
        resolver = DrugRegistryResolver(registry, observer=observer)

        outcome = await resolver.resolve_outcome(CANDIDATES)

        assert outcome.state == ResolutionState.MATCHED
        assert registry.queries == ["1111-1111", "2222-222"]
        assert outcome.attempts[0].outcome == AttemptOutcome.LOOKUP_FAILED
        assert outcome.attempts[0].error.startswith("AttributeError")
        assert TraceEventKind.LOOKUP_FAILED in observer.kinds()

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, stub_registry_factory):
        class HangingRegistry(stub_registry_factory):
            async def query(self, candidate):
                self.queries.append(candidate)
                await asyncio.sleep(10)

        registry = HangingRegistry()
        resolver = DrugRegistryResolver(registry, observer=RecordingObserver(), lookup_timeout=30)
        task = asyncio.ensure_future(resolver.resolve(CANDIDATES))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert registry.queries == CANDIDATES[:1]

    def test_explicit_zero_timeout_is_kept(self, stub_registry_factory):
        resolver = DrugRegistryResolver(stub_registry_factory(), observer=RecordingObserver(), lookup_timeout=0)

        assert resolver.lookup_timeout == 0

    @pytest.mark.asyncio
    async def test_trace_events_in_order(self, stub_registry_factory, lisinopril_record, observer):
        registry = stub_registry_factory({"2222-222": lisinopril_record})
        resolver = DrugRegistryResolver(registry, observer=observer)

        await resolver.resolve(CANDIDATES)

        assert observer.kinds() == [
            TraceEventKind.STARTED,
            TraceEventKind.TRYING,
            TraceEventKind.NO_MATCH,
            TraceEventKind.TRYING,
            TraceEventKind.MATCHED,
        ]
        assert observer.debug_log()[-1] == "[2/5] matched 2222-222: Zestril"


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, stub_registry_factory, observer):
        registry = stub_registry_factory()
        resolver = DrugRegistryResolver(registry, observer=observer)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(ResolutionCancelledError):
            await resolver.resolve(CANDIDATES, cancel_event=cancel)

        assert registry.queries == []
        assert TraceEventKind.EXHAUSTED not in observer.kinds()

    @pytest.mark.asyncio
    async def test_cancel_between_candidates(self, stub_registry_factory, observer):
        cancel = asyncio.Event()

        class CancellingRegistry(stub_registry_factory):
            async def query(self, candidate):
                result = await super().query(candidate)
                if len(self.queries) == 2:
                    cancel.set()
                return result

        registry = CancellingRegistry()
        resolver = DrugRegistryResolver(registry, observer=observer)

        outcome = await resolver.resolve_outcome(CANDIDATES, cancel_event=cancel)

        assert outcome.state == ResolutionState.CANCELLED
        assert registry.queries == CANDIDATES[:2]
        assert observer.kinds()[-1] == TraceEventKind.CANCELLED
        assert TraceEventKind.EXHAUSTED not in observer.kinds()

    @pytest.mark.asyncio
    async def test_cancelled_error_reports_tried_count(self, stub_registry_factory):
        cancel = asyncio.Event()

        class CancellingRegistry(stub_registry_factory):
            async def query(self, candidate):
                cancel.set()
                return await super().query(candidate)

        resolver = DrugRegistryResolver(CancellingRegistry(), observer=RecordingObserver())

        with pytest.raises(ResolutionCancelledError) as exc_info:
            await resolver.resolve(CANDIDATES, cancel_event=cancel)

        assert exc_info.value.tried == 1


class TestRetailFallback:

    @pytest.mark.asyncio
    async def test_retail_lookup_uses_raw_code(
        self, stub_registry_factory, stub_retail_factory, retail_product, observer
    ):
        retail = stub_retail_factory({"012345678905": retail_product})
        resolver = DrugRegistryResolver(
            stub_registry_factory(), retail_registry=retail, observer=observer, retail_enabled=True
        )

        product = await resolver.resolve_retail("012345678905", Symbology.UPC_A)

        assert product is retail_product
        assert retail.queries == ["012345678905"]
        assert observer.kinds() == [TraceEventKind.RETAIL_TRYING, TraceEventKind.RETAIL_MATCHED]

    @pytest.mark.asyncio
    async def test_non_retail_symbology_is_skipped(
        self, stub_registry_factory, stub_retail_factory, retail_product, observer
    ):
        retail = stub_retail_factory({"012345678905": retail_product})
        resolver = DrugRegistryResolver(
            stub_registry_factory(), retail_registry=retail, observer=observer, retail_enabled=True
        )

        assert await resolver.resolve_retail("012345678905", "DATA_MATRIX") is None
        assert retail.queries == []
        assert observer.kinds() == [TraceEventKind.RETAIL_SKIPPED]

    @pytest.mark.asyncio
    async def test_disabled_retail_lookup(self, stub_registry_factory, stub_retail_factory, retail_product):
        retail = stub_retail_factory({"012345678905": retail_product})
        resolver = DrugRegistryResolver(
            stub_registry_factory(), retail_registry=retail,
            observer=RecordingObserver(), retail_enabled=False,
        )

        assert await resolver.resolve_retail("012345678905", Symbology.UPC_A) is None
        assert retail.queries == []

    @pytest.mark.asyncio
    async def test_retail_not_found(self, stub_registry_factory, stub_retail_factory, observer):
        resolver = DrugRegistryResolver(
            stub_registry_factory(), retail_registry=stub_retail_factory(),
            observer=observer, retail_enabled=True,
        )

        assert await resolver.resolve_retail("0123456789012", "ean13") is None
        assert observer.kinds()[-1] == TraceEventKind.RETAIL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_retail_registry_error_degrades_to_none(
        self, stub_registry_factory, stub_retail_factory, observer
    ):
        retail = stub_retail_factory(error=TypeError("UPCItemDB item must be an object, got str"))
        resolver = DrugRegistryResolver(
            stub_registry_factory(), retail_registry=retail, observer=observer, retail_enabled=True
        )

        assert await resolver.resolve_retail("012345678905", Symbology.UPC_A) is None
        assert observer.kinds() == [TraceEventKind.RETAIL_TRYING, TraceEventKind.LOOKUP_FAILED]
        assert observer.events[-1].detail.startswith("TypeError")
