# ============================================================================
# src/medication_capture/registries/draft_mapping.py
# ============================================================================
"""
Registry results -> MedicationDraft

Retail products carry no clinical data. The draft they produce is filled
with fixed, named product defaults so reviewers can tell them apart from
discovered values.
"""

from typing import Dict, Optional

from ..core.context.enums import Provenance
from ..core.context.medication_draft import MedicationDraft
from ..core.context.scan_models import DrugRecord, RetailProduct

UNKNOWN_MEDICATION_NAME = "Unknown Medication"

# Product decision for retail (UPC/EAN) matches, not registry data
RETAIL_DEFAULT_DOSAGE = "See package"
RETAIL_DEFAULT_FREQUENCY = "As directed"
RETAIL_DEFAULT_ROUTE = "Oral"


def drug_record_fields(record: DrugRecord) -> Dict[str, str]:
    fields = {"name": record.display_name or UNKNOWN_MEDICATION_NAME}

    if record.active_ingredients and record.active_ingredients[0].strength:
        fields["dosage"] = record.active_ingredients[0].strength
    if record.routes:
        fields["route"] = record.routes[0].strip().title()
    if record.dosage_form:
        fields["instructions"] = record.dosage_form.strip().title()

    return fields


def draft_from_drug_record(
    record: DrugRecord,
    confidence: int = 0,
    source_image: Optional[str] = None,
) -> MedicationDraft:
    return MedicationDraft.from_fields(
        drug_record_fields(record),
        provenance=Provenance.BARCODE,
        confidence=confidence,
        source_image=source_image,
    )


def draft_from_retail_product(
    product: RetailProduct,
    raw_code: str,
    confidence: int = 0,
    source_image: Optional[str] = None,
) -> MedicationDraft:
    return MedicationDraft(
        provenance=Provenance.BARCODE,
        confidence=confidence,
        name=product.title or product.brand or f"Product {raw_code}",
        dosage=RETAIL_DEFAULT_DOSAGE,
        frequency=RETAIL_DEFAULT_FREQUENCY,
        route=RETAIL_DEFAULT_ROUTE,
        source_image=source_image,
    )
