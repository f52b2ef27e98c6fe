# ============================================================================
# src/medication_capture/config/registry_config.py
# ============================================================================
"""
External Registry Settings
- openFDA NDC directory
- Retail product databases (OpenFoodFacts, UPCItemDB)
- Per-lookup timeout
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class RegistrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    OPENFDA_BASE_URL: str = Field(
        default="https://api.fda.gov",
        description="Base URL of the openFDA API (NDC directory lives under /drug/ndc.json)"
    )
    OPENFDA_API_KEY: Optional[str] = Field(
        default=None,
        description="Optional openFDA API key; raises the anonymous rate limit"
    )
    OPENFOODFACTS_BASE_URL: str = Field(
        default="https://world.openfoodfacts.org",
        description="OpenFoodFacts product database, first retail source"
    )
    UPCITEMDB_BASE_URL: str = Field(
        default="https://api.upcitemdb.com",
        description="UPCItemDB trial API, second retail source"
    )
    LOOKUP_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        gt=0.0,
        description="Timeout for a single registry lookup. A timeout counts as 'no match'."
    )
    RETAIL_LOOKUP_ENABLED: bool = Field(
        default=True,
        description="Fall back to retail product registries for UPC/EAN codes"
    )
    MAX_CONCURRENT_SCANS: int = Field(
        default=4,
        ge=1,
        description="Parallel unrelated scans in batch mode. A single scan is always sequential."
    )

registry_settings = RegistrySettings()
