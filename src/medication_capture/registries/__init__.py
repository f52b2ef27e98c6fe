# src/medication_capture/registries/__init__.py

from .base import DrugRegistry, RetailRegistry
from .openfda_client import OpenFDANdcClient
from .retail_client import RetailProductClient, retail_code_variants
from .resolver import (
    DrugRegistryResolver,
    Resolution,
    ResolutionState,
    AttemptOutcome,
    CandidateAttempt,
    iter_candidates,
)
from .draft_mapping import (
    draft_from_drug_record,
    draft_from_retail_product,
    RETAIL_DEFAULT_DOSAGE,
    RETAIL_DEFAULT_FREQUENCY,
    RETAIL_DEFAULT_ROUTE,
)

__all__ = [
    "DrugRegistry",
    "RetailRegistry",
    "OpenFDANdcClient",
    "RetailProductClient",
    "retail_code_variants",
    "DrugRegistryResolver",
    "Resolution",
    "ResolutionState",
    "AttemptOutcome",
    "CandidateAttempt",
    "iter_candidates",
    "draft_from_drug_record",
    "draft_from_retail_product",
    "RETAIL_DEFAULT_DOSAGE",
    "RETAIL_DEFAULT_FREQUENCY",
    "RETAIL_DEFAULT_ROUTE",
]
