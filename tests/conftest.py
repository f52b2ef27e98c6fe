# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import pytest

from medication_capture.core.context import (
    ActiveIngredient,
    DrugRecord,
    RecognitionResult,
    RecognizedWord,
    RetailProduct,
)
from medication_capture.core.tracing import RecordingObserver
from medication_capture.registries.base import DrugRegistry, RetailRegistry
from medication_capture.utils.exceptions import RegistryLookupError


class StubDrugRegistry(DrugRegistry):
    """In-memory drug registry that records every query it receives."""

    def __init__(
        self,
        records: Optional[Dict[str, DrugRecord]] = None,
        failing: Optional[set] = None,
        slow: Optional[set] = None,
        delay: float = 1.0,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.records = records or {}
        self.failing = failing or set()
        self.errors = errors or {}
        self.slow = slow or set()
        self.delay = delay
        self.queries: List[str] = []

    async def query(self, candidate: str) -> List[DrugRecord]:
        self.queries.append(candidate)
        if candidate in self.failing:
            raise RegistryLookupError("HTTP 500", candidate=candidate, status=500)
        if candidate in self.errors:
            raise self.errors[candidate]
        if candidate in self.slow:
            await asyncio.sleep(self.delay)
        record = self.records.get(candidate)
        return [record] if record else []


class StubRetailRegistry(RetailRegistry):
    def __init__(
        self,
        products: Optional[Dict[str, RetailProduct]] = None,
        error: Optional[Exception] = None,
    ):
        self.products = products or {}
        self.error = error
        self.queries: List[str] = []

    async def query(self, code: str) -> Optional[RetailProduct]:
        self.queries.append(code)
        if self.error is not None:
            raise self.error
        return self.products.get(code)


@pytest.fixture
def lisinopril_record():
    """openFDA-style record for Lisinopril 10 mg tablets"""
    return DrugRecord(
        brand_name="Zestril",
        generic_name="Lisinopril",
        dosage_form="TABLET",
        routes=("ORAL",),
        active_ingredients=(ActiveIngredient("LISINOPRIL", "10 mg/1"),),
        product_ndc="0310-0130",
    )


@pytest.fixture
def retail_product():
    return RetailProduct(code="012345678905", title="Vitamin D3 1000 IU Softgels", brand="Nature Made")


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def stub_registry_factory():
    return StubDrugRegistry


@pytest.fixture
def stub_retail_factory():
    return StubRetailRegistry


@pytest.fixture
def sample_label_text():
    """Single pharmacy label as a recognition engine would return it"""
    return (
        "CVS Pharmacy (555) 123-4567\n"
        "Rx# 1234567\n"
        "LISINOPRIL 10 MG TABLETS\n"
        "Take 1 tablet by mouth once daily\n"
        "Qty: 30\n"
        "Refills: 2\n"
        "Prescriber: Dr. Jane Smith\n"
    )


@pytest.fixture
def sample_words():
    """Recognized words for a short label line"""
    return [
        RecognizedWord("Lisinopril", (10.0, 10.0, 110.0, 30.0), 0.97),
        RecognizedWord("10", (120.0, 10.0, 140.0, 30.0), 0.95),
        RecognizedWord("mg", (142.0, 10.0, 165.0, 30.0), 0.93),
        RecognizedWord("PO", (170.0, 10.0, 195.0, 30.0), 0.90),
        RecognizedWord("once", (200.0, 10.0, 240.0, 30.0), 0.96),
        RecognizedWord("daily", (245.0, 10.0, 290.0, 30.0), 0.96),
    ]


@pytest.fixture
def sample_recognition(sample_words):
    return RecognitionResult(
        text="Lisinopril 10 mg PO once daily",
        words=tuple(sample_words),
        confidence=0.94,
        image_ref="label-001.jpg",
        image_width=400,
        image_height=100,
    )


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo setup_logging() handler changes made by a test"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
