# ============================================================================
# src/medication_capture/registries/base.py
# ============================================================================
"""
Registry Interfaces

Read-only keyed lookups against external catalogs:
- DrugRegistry: pharmaceutical product catalog keyed by NDC candidate
- RetailRegistry: generic barcode/product database keyed by the raw code

Zero results is a normal outcome (empty list / None). Transport problems
raise RegistryLookupError so the resolver can log and move on.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import asyncio
import logging

import aiohttp

from ..core.context.scan_models import DrugRecord, RetailProduct


class DrugRegistry(ABC):
    """Drug registry lookup port."""

    @abstractmethod
    async def query(self, candidate: str) -> List[DrugRecord]:
        """
        Look up one NDC candidate.

        Returns:
            Matching records, possibly empty

        Raises:
            RegistryLookupError: the lookup itself failed
        """
        pass


class RetailRegistry(ABC):
    """Retail product registry lookup port."""

    @abstractmethod
    async def query(self, code: str) -> Optional[RetailProduct]:
        """Look up a raw retail barcode; None when unknown."""
        pass


class HttpRegistryClient:
    """
    Shared aiohttp session handling for registry clients.

    The session is created lazily and tied to the running event loop. An
    injected session is used as-is and never closed by the client.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)

        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        if not self._owns_session:
            return self._session

        current_loop = asyncio.get_running_loop()

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()

            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )
            self._session_loop = current_loop

        return self._session

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None):
        """
        GET a JSON document.

        Returns:
            (status, payload) - payload is None for non-200 responses
        """
        session = await self._get_session()
        async with session.get(
            url,
            params=params,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status != 200:
                return response.status, None
            return response.status, await response.json(content_type=None)

    async def close(self):
        """Close HTTP session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None
            self._session_loop = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
