# ============================================================================
# tests/unit/test_pipeline.py
# ============================================================================
"""
End-to-end tests for the capture pipeline with in-memory registries
"""

import asyncio

import pytest

from medication_capture.core.context import Provenance, ScanOutcome, ScannedCode, Symbology
from medication_capture.core.tracing import RecordingObserver
from medication_capture.pipeline import MedicationCapturePipeline, recognition_from_payload
from medication_capture.registries import DrugRegistryResolver
from medication_capture.utils.exceptions import (
    MedicationCaptureError,
    RecognitionInputError,
    ResolutionCancelledError,
)


@pytest.fixture
def build_pipeline(stub_registry_factory, stub_retail_factory):
    def build(records=None, products=None):
        registry = stub_registry_factory(records)
        retail = stub_retail_factory(products)
        resolver = DrugRegistryResolver(
            registry,
            retail_registry=retail,
            observer=RecordingObserver(),
            retail_enabled=True,
        )
        return MedicationCapturePipeline(resolver), registry, retail
    return build


class TestBarcodePath:

    @pytest.mark.asyncio
    async def test_registry_match(self, build_pipeline, lisinopril_record):
        pipeline, registry, _ = build_pipeline({"23456-789": lisinopril_record})

        result = await pipeline.process_barcode(
            ScannedCode("123456789012", Symbology.UPC_A), source_image="scan.jpg"
        )

        assert result.outcome == ScanOutcome.MATCHED
        assert registry.queries == ["2345-6789", "23456-789"]
        draft = result.drafts[0]
        assert draft.provenance == Provenance.BARCODE
        assert draft.name == "Zestril"
        assert draft.dosage == "10 mg/1"
        assert draft.route == "Oral"
        assert draft.instructions == "Tablet"
        assert draft.frequency is None
        assert draft.confidence == 100
        assert draft.source_image == "scan.jpg"
        assert not result.requires_manual_entry

    @pytest.mark.asyncio
    async def test_retail_fallback_uses_named_defaults(self, build_pipeline, retail_product):
        pipeline, registry, retail = build_pipeline(products={"012345678905": retail_product})

        result = await pipeline.process_barcode(ScannedCode.from_decoder("012345678905", "UPC-A"))

        assert result.outcome == ScanOutcome.RETAIL_MATCHED
        assert retail.queries == ["012345678905"]
        assert len(registry.queries) == len(result.candidates)
        draft = result.drafts[0]
        assert draft.name == "Vitamin D3 1000 IU Softgels"
        assert draft.dosage == "See package"
        assert draft.frequency == "As directed"
        assert draft.route == "Oral"
        assert draft.confidence == 40

    @pytest.mark.asyncio
    async def test_not_found(self, build_pipeline):
        pipeline, _, retail = build_pipeline()

        result = await pipeline.process_barcode(ScannedCode("12345678", Symbology.CODE_128))

        assert result.outcome == ScanOutcome.NOT_FOUND
        assert result.requires_manual_entry
        assert retail.queries == []

    @pytest.mark.asyncio
    async def test_code_without_digits(self, build_pipeline):
        pipeline, registry, _ = build_pipeline()

        result = await pipeline.process_barcode("NO-DIGITS")

        assert result.outcome == ScanOutcome.NOTHING_DETECTED
        assert registry.queries == []

    @pytest.mark.asyncio
    async def test_cancelled_scan_raises(self, build_pipeline):
        pipeline, registry, retail = build_pipeline()
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(ResolutionCancelledError):
            await pipeline.process_barcode("123456789012", cancel_event=cancel)

        assert registry.queries == []
        assert retail.queries == []

    @pytest.mark.asyncio
    async def test_batch_keeps_input_order(self, build_pipeline, lisinopril_record):
        pipeline, _, _ = build_pipeline({"1234-5678": lisinopril_record})

        results = await pipeline.process_barcodes(["12345678", "NONE", "87654321"], max_concurrency=2)

        assert [r.outcome for r in results] == [
            ScanOutcome.MATCHED,
            ScanOutcome.NOTHING_DETECTED,
            ScanOutcome.NOT_FOUND,
        ]

    @pytest.mark.asyncio
    async def test_failing_scan_does_not_sink_the_batch(self, build_pipeline, lisinopril_record):
        pipeline, _, _ = build_pipeline({"1234-5678": lisinopril_record})

        async def exploding_retail(*args, **kwargs):
            raise RuntimeError("retail backend crashed")

        # Only reached by the scan with no registry match
        pipeline.resolver.resolve_retail = exploding_retail

        results = await pipeline.process_barcodes(["12345678", "87654321"])

        assert results[0].outcome == ScanOutcome.MATCHED
        assert results[0].drafts[0].name == "Zestril"
        assert results[1].outcome == ScanOutcome.FAILED
        assert results[1].scanned_code == "87654321"
        assert results[1].error == "RuntimeError: retail backend crashed"
        assert results[1].requires_manual_entry
        assert results[1].to_dict()["error"] == "RuntimeError: retail backend crashed"

    @pytest.mark.asyncio
    async def test_cancelled_batch_reports_each_scan(self, build_pipeline):
        pipeline, registry, _ = build_pipeline()
        cancel = asyncio.Event()
        cancel.set()

        results = await pipeline.process_barcodes(["12345678", "NONE"], cancel_event=cancel)

        assert [r.outcome for r in results] == [ScanOutcome.CANCELLED, ScanOutcome.NOTHING_DETECTED]
        assert results[0].error.startswith("ResolutionCancelledError")
        assert registry.queries == []

    @pytest.mark.asyncio
    async def test_batch_rejects_zero_concurrency(self, build_pipeline):
        pipeline, _, _ = build_pipeline()

        with pytest.raises(ValueError):
            await pipeline.process_barcodes(["12345678"], max_concurrency=0)

    @pytest.mark.asyncio
    async def test_label_only_pipeline_rejects_barcodes(self):
        with pytest.raises(MedicationCaptureError):
            await MedicationCapturePipeline().process_barcode("12345678")


class TestLabelPath:

    def test_label_scan(self, sample_recognition):
        result = MedicationCapturePipeline().process_label(sample_recognition)

        assert result.outcome == ScanOutcome.EXTRACTED
        assert result.provenance == Provenance.OCR
        draft = result.drafts[0]
        assert draft.name == "Lisinopril"
        assert draft.dosage == "10mg"
        assert draft.route == "Oral"
        assert draft.frequency == "Once daily"
        assert draft.confidence == 80
        assert draft.source_image == "label-001.jpg"
        assert [a.field for a in result.annotations[0]] == ["name", "dosage", "frequency", "route"]

    def test_abbreviated_route_is_located_on_the_label(self, sample_recognition):
        result = MedicationCapturePipeline().process_label(sample_recognition)

        route = [a for a in result.annotations[0] if a.field == "route"][0]
        assert [w.text for w in route.words] == ["PO"]
        assert route.has_visual_match

    def test_multiple_medications(self):
        result = MedicationCapturePipeline().process_label("Metformin 500mg BID\n\nAmlodipine 5mg QD")

        assert [d.name for d in result.drafts] == ["Metformin", "Amlodipine"]
        assert len(result.annotations) == 2

    def test_empty_text(self):
        result = MedicationCapturePipeline().process_label("")

        assert result.outcome == ScanOutcome.NOTHING_DETECTED
        assert result.requires_manual_entry

    def test_round_trip_is_reproducible(self, sample_recognition):
        pipeline = MedicationCapturePipeline()

        first = pipeline.process_label(sample_recognition).to_dict(review_threshold=75)
        second = pipeline.process_label(sample_recognition).to_dict(review_threshold=75)

        assert first == second
        assert first["drafts"][0]["needs_manual_verification"] is False

    def test_low_confidence_drafts_are_flagged_not_dropped(self):
        result = MedicationCapturePipeline().process_label("Metformin 500mg")

        payload = result.to_dict(review_threshold=75)

        assert len(payload["drafts"]) == 1
        assert payload["drafts"][0]["confidence"] == 50
        assert payload["drafts"][0]["needs_manual_verification"] is True


class TestRecognitionPayload:

    def test_tesseract_style_words(self):
        recognition = recognition_from_payload(
            "Lisinopril",
            [{"text": "Lisinopril", "bbox": {"x0": 110, "y0": 30, "x1": 10, "y1": 10}, "confidence": 0.9}],
            image_ref="a.jpg",
        )

        word = recognition.words[0]
        assert word.bbox == (10.0, 10.0, 110.0, 30.0)
        assert recognition.image_ref == "a.jpg"

    def test_malformed_word_raises(self):
        with pytest.raises(RecognitionInputError):
            recognition_from_payload("x", [{"text": "x"}])
