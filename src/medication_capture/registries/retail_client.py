# ============================================================================
# src/medication_capture/registries/retail_client.py
# ============================================================================
"""
Retail Product Client

Looks a UPC/EAN code up in generic product databases when the drug
registry has nothing:

1. OpenFoodFacts  /api/v2/product/<code>.json   (status == 1 means found)
2. UPCItemDB      /prod/trial/lookup?upc=<code> (first of `items`)

Each source is tried for every code variant before moving to the next
source. A variant whose request fails is logged and skipped.
"""

import asyncio
from typing import List, Optional

import aiohttp

from .base import HttpRegistryClient, RetailRegistry
from ..config import registry_settings
from ..core.context.scan_models import RetailProduct
from ..normalizers.ndc import digits_only

MIN_RETAIL_DIGITS = 8


def retail_code_variants(code: str) -> List[str]:
    """
    Code spellings retail databases are keyed by.

    UPC-A may be stored with or without its number-system digit, and
    as zero-padded EAN-13 / GTIN-14.
    """
    digits = digits_only(code)
    if len(digits) < MIN_RETAIL_DIGITS:
        return []

    variants = [
        digits,
        digits[1:],
        digits.zfill(13),
        digits.zfill(14),
    ]
    return list(dict.fromkeys(variants))


class RetailProductClient(HttpRegistryClient, RetailRegistry):
    def __init__(
        self,
        openfoodfacts_url: Optional[str] = None,
        upcitemdb_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(
            timeout=registry_settings.LOOKUP_TIMEOUT_SECONDS if timeout is None else timeout,
            session=session,
        )
        self.openfoodfacts_url = (
            openfoodfacts_url or registry_settings.OPENFOODFACTS_BASE_URL
        ).rstrip("/")
        self.upcitemdb_url = (
            upcitemdb_url or registry_settings.UPCITEMDB_BASE_URL
        ).rstrip("/")

    async def query(self, code: str) -> Optional[RetailProduct]:
        variants = retail_code_variants(code)
        if not variants:
            self.logger.debug(f"Code too short for retail lookup: {code!r}")
            return None

        for variant in variants:
            product = await self._try(self._lookup_openfoodfacts, variant, "OpenFoodFacts")
            if product:
                return product

        for variant in variants:
            product = await self._try(self._lookup_upcitemdb, variant, "UPCItemDB")
            if product:
                return product

        self.logger.info(f"No retail product found for {code!r}")
        return None

    async def _try(self, lookup, variant: str, source: str) -> Optional[RetailProduct]:
        try:
            return await lookup(variant)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.warning(f"{source} lookup failed for variant {variant}: {e}")
            return None
        except (AttributeError, TypeError, KeyError) as e:
            self.logger.warning(f"{source} returned a malformed product for variant {variant}: {e}")
            return None

    async def _lookup_openfoodfacts(self, variant: str) -> Optional[RetailProduct]:
        status, payload = await self._get_json(
            f"{self.openfoodfacts_url}/api/v2/product/{variant}.json"
        )
        if status != 200 or not isinstance(payload, dict):
            return None
        if payload.get("status") != 1 or not payload.get("product"):
            return None

        self.logger.info(f"Product found in OpenFoodFacts for {variant}")
        return RetailProduct.from_openfoodfacts(variant, payload["product"])

    async def _lookup_upcitemdb(self, variant: str) -> Optional[RetailProduct]:
        status, payload = await self._get_json(
            f"{self.upcitemdb_url}/prod/trial/lookup",
            params={"upc": variant},
        )
        if status != 200 or not isinstance(payload, dict):
            return None

        items = payload.get("items") or []
        if not items:
            return None

        self.logger.info(f"Product found in UPCItemDB for {variant}")
        return RetailProduct.from_upcitemdb(variant, items[0])
