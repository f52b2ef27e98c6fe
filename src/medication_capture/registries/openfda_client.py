# ============================================================================
# src/medication_capture/registries/openfda_client.py
# ============================================================================
"""
openFDA NDC Directory Client

Queries https://api.fda.gov/drug/ndc.json by product NDC
(labeler-product segment, e.g. "0071-0155").

openFDA answers 404 with a NOT_FOUND error body when a search has no
hits; that is the normal "zero results" case, not a failure.
"""

import asyncio
from typing import List, Optional

import aiohttp

from .base import DrugRegistry, HttpRegistryClient
from ..config import registry_settings
from ..core.context.scan_models import DrugRecord
from ..utils.exceptions import RegistryLookupError

NDC_ENDPOINT = "/drug/ndc.json"


class OpenFDANdcClient(HttpRegistryClient, DrugRegistry):
    """
    openFDA-backed drug registry.

    Config options:
        base_url: API root (default: OPENFDA_BASE_URL)
        api_key: Optional openFDA key (default: OPENFDA_API_KEY)
        timeout: Per-request timeout in seconds (default: LOOKUP_TIMEOUT_SECONDS)
        limit: Max records per query (default: 1)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        limit: int = 1,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(
            timeout=registry_settings.LOOKUP_TIMEOUT_SECONDS if timeout is None else timeout,
            session=session,
        )
        self.base_url = (base_url or registry_settings.OPENFDA_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else registry_settings.OPENFDA_API_KEY
        self.limit = limit

    async def query(self, candidate: str) -> List[DrugRecord]:
        params = {
            "search": f'product_ndc:"{candidate}"',
            "limit": self.limit,
        }
        if self.api_key:
            params["api_key"] = self.api_key

        try:
            status, payload = await self._get_json(f"{self.base_url}{NDC_ENDPOINT}", params)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RegistryLookupError(
                f"openFDA lookup failed for {candidate}: {e}",
                candidate=candidate,
            ) from e

        if status == 404:
            return []
        if status != 200:
            raise RegistryLookupError(
                f"openFDA returned HTTP {status} for {candidate}",
                candidate=candidate,
                status=status,
            )
        if not isinstance(payload, dict):
            raise RegistryLookupError(
                f"openFDA returned a malformed body for {candidate}",
                candidate=candidate,
                status=status,
            )

        results = payload.get("results") or []
        if not isinstance(results, list):
            raise RegistryLookupError(
                f"openFDA returned a malformed results list for {candidate}",
                candidate=candidate,
                status=status,
            )

        try:
            return [DrugRecord.from_openfda(result) for result in results]
        except (AttributeError, TypeError, KeyError) as e:
            raise RegistryLookupError(
                f"openFDA returned a malformed record for {candidate}: {e}",
                candidate=candidate,
                status=status,
            ) from e
