# ============================================================================
# src/medication_capture/pipeline.py
# ============================================================================
"""
Medication Capture Pipeline

Two entry paths, one output shape:

    barcode:  CodeNormalizer -> DrugRegistryResolver -> ConfidenceScorer
    label:    TextFieldExtractor -> ConfidenceScorer -> AnnotationMapper

Both return a ScanResult holding scored MedicationDrafts for human review.
"Not found" and "nothing detected" are outcomes, not exceptions; the
caller switches to manual entry. A cancelled barcode scan raises
ResolutionCancelledError instead, since an aborted scan found nothing
conclusive.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
import asyncio
import logging

from .annotation.mapper import AnnotationMapper
from .config import registry_settings
from .core.confidence import ConfidenceScorer
from .core.context.annotation import Annotation
from .core.context.enums import Provenance, ScanOutcome
from .core.context.medication_draft import MedicationDraft
from .core.context.scan_models import RecognitionResult, RecognizedWord, ScannedCode
from .extractors.medication_text_extractor import TextFieldExtractor
from .normalizers.ndc import CodeNormalizer, digits_only
from .registries.draft_mapping import draft_from_drug_record, draft_from_retail_product
from .registries.openfda_client import OpenFDANdcClient
from .registries.resolver import DrugRegistryResolver
from .registries.retail_client import RetailProductClient
from .utils.exceptions import (
    MedicationCaptureError,
    RecognitionInputError,
    ResolutionCancelledError,
)

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    provenance: Provenance
    outcome: ScanOutcome
    drafts: List[MedicationDraft] = field(default_factory=list)
    # annotations[i] belongs to drafts[i]
    annotations: List[List[Annotation]] = field(default_factory=list)
    scanned_code: Optional[str] = None
    candidates: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def requires_manual_entry(self) -> bool:
        return not self.drafts

    def to_dict(self, review_threshold: Optional[int] = None) -> Dict[str, Any]:
        drafts = []
        for index, draft in enumerate(self.drafts):
            entry = draft.to_dict()
            if review_threshold is not None:
                entry["needs_manual_verification"] = draft.needs_review(review_threshold)
            if index < len(self.annotations):
                entry["annotations"] = [a.to_dict() for a in self.annotations[index]]
            drafts.append(entry)

        return {
            "provenance": self.provenance.value,
            "outcome": self.outcome.value,
            "requires_manual_entry": self.requires_manual_entry,
            "scanned_code": self.scanned_code,
            "candidates": list(self.candidates),
            "drafts": drafts,
            "error": self.error,
        }


def recognition_from_payload(
    text: str,
    words: Optional[Iterable[Dict[str, Any]]] = None,
    **kwargs,
) -> RecognitionResult:
    """
    Build a RecognitionResult from raw engine output.

    Raises:
        RecognitionInputError: a word entry is missing its text or box
    """
    parsed = []
    for position, entry in enumerate(words or []):
        try:
            parsed.append(RecognizedWord.from_dict(entry))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RecognitionInputError(f"Malformed recognized word at index {position}: {e}") from e
    return RecognitionResult(text=text or "", words=tuple(parsed), **kwargs)


class MedicationCapturePipeline:
    """
    Wires the capture components together.

    Components are stateless, so one pipeline can serve many concurrent
    scans; `process_barcodes` bounds how many run at once.
    A pipeline without a resolver only handles label scans.
    """

    def __init__(
        self,
        resolver: Optional[DrugRegistryResolver] = None,
        scorer: Optional[ConfidenceScorer] = None,
        extractor: Optional[TextFieldExtractor] = None,
        mapper: Optional[AnnotationMapper] = None,
        normalizer: Optional[CodeNormalizer] = None,
    ):
        self.resolver = resolver
        self.scorer = scorer or ConfidenceScorer()
        self.extractor = extractor or TextFieldExtractor()
        self.mapper = mapper or AnnotationMapper()
        self.normalizer = normalizer or CodeNormalizer()

    @classmethod
    def from_settings(cls, observer=None) -> "MedicationCapturePipeline":
        """Pipeline backed by openFDA and the retail registries from settings."""
        retail = RetailProductClient() if registry_settings.RETAIL_LOOKUP_ENABLED else None
        resolver = DrugRegistryResolver(
            drug_registry=OpenFDANdcClient(),
            retail_registry=retail,
            observer=observer,
        )
        return cls(resolver)

    async def close(self):
        if self.resolver is None:
            return
        for registry in (self.resolver.drug_registry, self.resolver.retail_registry):
            close = getattr(registry, "close", None)
            if close is not None:
                await close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def process_barcode(
        self,
        scanned_code: Union[ScannedCode, str],
        cancel_event: Optional[asyncio.Event] = None,
        source_image: Optional[str] = None,
    ) -> ScanResult:
        """
        Resolve a decoded barcode into a scored draft.

        Args:
            scanned_code: Decoder output, or a bare code string
            cancel_event: Set to abort between registry lookups
            source_image: Reference to the photo the code came from

        Returns:
            ScanResult with at most one draft

        Raises:
            ResolutionCancelledError: cancel_event was set mid-resolution
        """
        if self.resolver is None:
            raise MedicationCaptureError("Barcode scans need a registry resolver")
        if not isinstance(scanned_code, ScannedCode):
            scanned_code = ScannedCode.from_decoder(scanned_code)

        if not digits_only(scanned_code.raw):
            logger.info(f"Scanned code {scanned_code.raw!r} has no digits")
            return ScanResult(
                provenance=Provenance.BARCODE,
                outcome=ScanOutcome.NOTHING_DETECTED,
                scanned_code=scanned_code.raw,
            )

        candidates = self.normalizer.normalize(scanned_code.raw)
        result = ScanResult(
            provenance=Provenance.BARCODE,
            outcome=ScanOutcome.NOT_FOUND,
            scanned_code=scanned_code.raw,
            candidates=candidates,
        )

        record = await self.resolver.resolve(candidates, cancel_event)
        if record is not None:
            draft = draft_from_drug_record(
                record,
                confidence=self.scorer.score_record(record),
                source_image=source_image,
            )
            result.outcome = ScanOutcome.MATCHED
            result.drafts.append(draft)
            return result

        product = await self.resolver.resolve_retail(
            scanned_code.raw, scanned_code.symbology, cancel_event
        )
        if product is not None:
            draft = draft_from_retail_product(
                product,
                scanned_code.raw,
                confidence=self.scorer.score_retail_product(product),
                source_image=source_image,
            )
            result.outcome = ScanOutcome.RETAIL_MATCHED
            result.drafts.append(draft)
            return result

        logger.info(f"No registry match for scanned code {scanned_code.raw}")
        return result

    def process_label(self, recognition: Union[RecognitionResult, str]) -> ScanResult:
        """
        Extract, score and annotate medications from recognized label text.

        Args:
            recognition: Recognition engine output, or bare text

        Returns:
            ScanResult with one draft (and its annotations) per medication
        """
        if not isinstance(recognition, RecognitionResult):
            recognition = RecognitionResult(text=recognition or "")

        result = ScanResult(provenance=Provenance.OCR, outcome=ScanOutcome.NOTHING_DETECTED)

        for fields, sources in self.extractor.extract_with_sources(recognition.text):
            draft = MedicationDraft.from_fields(
                fields,
                provenance=Provenance.OCR,
                confidence=self.scorer.score(fields),
                source_image=recognition.image_ref,
            )
            result.drafts.append(draft)
            result.annotations.append(self.mapper.map(draft, recognition.words, sources))

        if result.drafts:
            result.outcome = ScanOutcome.EXTRACTED
        logger.info(f"Label scan produced {len(result.drafts)} draft(s)")
        return result

    async def process_barcodes(
        self,
        scans: Sequence[Union[ScannedCode, str]],
        max_concurrency: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ScanResult]:
        """
        Resolve unrelated scans in parallel, results in input order.

        Each scan's own candidate loop stays sequential. A scan that raises
        does not affect the others: it comes back as a FAILED result (or
        CANCELLED when cancel_event stopped it) with `error` set, so the
        caller falls back to manual entry for that scan only.
        """
        limit = registry_settings.MAX_CONCURRENT_SCANS if max_concurrency is None else max_concurrency
        if limit < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {limit}")
        semaphore = asyncio.Semaphore(limit)

        async def run(scan):
            async with semaphore:
                return await self.process_barcode(scan, cancel_event=cancel_event)

        outcomes = await asyncio.gather(*(run(scan) for scan in scans), return_exceptions=True)

        results = []
        for scan, outcome in zip(scans, outcomes):
            if isinstance(outcome, ScanResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            results.append(self._failed_scan(scan, outcome))
        return results

    def _failed_scan(self, scan: Union[ScannedCode, str], error: Exception) -> ScanResult:
        raw = scan.raw if isinstance(scan, ScannedCode) else str(scan)
        if isinstance(error, ResolutionCancelledError):
            logger.info(f"Scan {raw!r} cancelled: {error}")
            outcome = ScanOutcome.CANCELLED
        else:
            logger.error(f"Scan {raw!r} failed: {type(error).__name__}: {error}")
            outcome = ScanOutcome.FAILED
        return ScanResult(
            provenance=Provenance.BARCODE,
            outcome=outcome,
            scanned_code=raw,
            error=f"{type(error).__name__}: {error}",
        )
