# ============================================================================
# tests/unit/test_draft_mapping.py
# ============================================================================
"""
Tests for registry result -> draft mapping
"""

from medication_capture.core.context import ActiveIngredient, DrugRecord, Provenance, RetailProduct
from medication_capture.registries import (
    RETAIL_DEFAULT_DOSAGE,
    RETAIL_DEFAULT_FREQUENCY,
    RETAIL_DEFAULT_ROUTE,
    draft_from_drug_record,
    draft_from_retail_product,
)


def test_drug_record_draft(lisinopril_record):
    draft = draft_from_drug_record(lisinopril_record, confidence=100)

    assert draft.provenance == Provenance.BARCODE
    assert draft.populated_fields() == {
        "name": "Zestril",
        "dosage": "10 mg/1",
        "route": "Oral",
        "instructions": "Tablet",
    }


def test_generic_name_used_without_brand():
    record = DrugRecord(
        generic_name="Metformin Hydrochloride",
        routes=("ORAL", "BUCCAL"),
        active_ingredients=(ActiveIngredient("METFORMIN HYDROCHLORIDE", "500 mg/1"),),
    )

    draft = draft_from_drug_record(record)

    assert draft.name == "Metformin Hydrochloride"
    assert draft.route == "Oral"


def test_nameless_record():
    assert draft_from_drug_record(DrugRecord()).name == "Unknown Medication"


def test_retail_defaults():
    assert (RETAIL_DEFAULT_DOSAGE, RETAIL_DEFAULT_FREQUENCY, RETAIL_DEFAULT_ROUTE) == (
        "See package", "As directed", "Oral",
    )


def test_retail_name_fallbacks():
    titled = RetailProduct(code="1", title="Cough Syrup", brand="Robitussin")
    branded = RetailProduct(code="1", brand="Robitussin")
    bare = RetailProduct(code="1")

    assert draft_from_retail_product(titled, "0300").name == "Cough Syrup"
    assert draft_from_retail_product(branded, "0300").name == "Robitussin"
    assert draft_from_retail_product(bare, "0300").name == "Product 0300"
    assert draft_from_retail_product(bare, "0300").route == "Oral"
