"""
Syncro Client Infrastructure
=============================

Async HTTP client for the Syncro REST API (customers, contacts, assets,
search, tickets).

Paginated endpoints are exposed as async page sequences: each call to
iter_pages() starts a fresh walk from page 1 and stops at the page count
reported in meta.total_pages. Aggregation and the policy for partial
failures belong to the callers.
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ticket_creator.config import Settings
from ticket_creator.core import ConfigurationException, ShapeMismatchException, TicketingException
from ticket_creator.directory.application import IDirectorySource
from ticket_creator.intake.application.services import ITicketGateway, TicketingResponse
from ticket_creator.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class SyncroClient(IDirectorySource, ITicketGateway):
    """
    Syncro API client.

    Every request carries the API key as the api_key query parameter.
    """

    def __init__(
        self,
        subdomain: Optional[str],
        api_key: Optional[str],
        base_domain: str = "syncromsp.com",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not subdomain or not api_key:
            raise ConfigurationException("Syncro subdomain and API key must be configured")

        self._api_key = api_key
        self._base_url = f"https://{subdomain}.{base_domain}/api/v1"
        self._timeout = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncroClient":
        return cls(
            subdomain=settings.syncro_subdomain,
            api_key=settings.syncro_api_key,
            base_domain=settings.syncro_base_domain,
            timeout_seconds=settings.syncro_timeout_seconds,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._http_client

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[dict] = None
    ) -> httpx.Response:
        client = await self._get_client()
        query = {**(params or {}), "api_key": self._api_key}
        try:
            return await client.request(method, path, params=query, json=payload)
        except httpx.HTTPError as e:
            logger.warning(
                "Syncro request failed",
                extra={"method": method, "path": path, "error": str(e)}
            )
            raise TicketingException(f"Error calling {path}: {e}", {"path": path})

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> dict:
        response = await self._request("GET", path, params=params)
        if response.status_code >= 400:
            raise TicketingException(
                f"{path} returned HTTP {response.status_code}",
                {"path": path, "status_code": response.status_code, "body": response.text[:500]}
            )
        try:
            data = response.json()
        except json.JSONDecodeError:
            raise ShapeMismatchException(
                "Syncro",
                f"{path} returned invalid JSON",
                {"path": path, "body": response.text[:500]}
            )
        if not isinstance(data, dict):
            raise ShapeMismatchException("Syncro", f"{path} returned a non-object payload", {"path": path})
        return data

    async def iter_pages(
        self,
        path: str,
        collection_key: str,
        params: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[List[dict]]:
        """
        Yield the records of each page of a paginated collection.

        The walk ends after the last page reported by meta.total_pages
        (1 when absent) or at the first page without a list under
        collection_key. Errors propagate to the consumer after the pages
        already yielded.
        """
        page = 1
        while True:
            data = await self._get_json(path, {**(params or {}), "page": page})
            records = data.get(collection_key)
            if not isinstance(records, list):
                return
            yield records

            meta = data.get("meta") or {}
            total_pages = meta.get("total_pages") or 1
            if page >= total_pages:
                return
            page += 1

    def iter_customers(self) -> AsyncIterator[List[dict]]:
        return self.iter_pages("/customers", "customers")

    def iter_contacts(self, customer_id: int) -> AsyncIterator[List[dict]]:
        return self.iter_pages("/contacts", "contacts", {"customer_id": customer_id})

    def iter_assets(self, customer_id: int) -> AsyncIterator[List[dict]]:
        return self.iter_pages("/customer_assets", "assets", {"customer_id": customer_id})

    async def search_contacts(self, query: str) -> List[dict]:
        """Full-text search, keeping only contact-typed results."""
        data = await self._get_json("/search", {"query": query})
        contacts = []
        for result in data.get("results") or []:
            table = result.get("table") if isinstance(result, dict) else None
            if not isinstance(table, dict) or table.get("_type") != "contact":
                continue
            source = (table.get("_source") or {}).get("table")
            if isinstance(source, dict):
                contacts.append(source)
        return contacts

    async def create_ticket(self, payload: dict) -> TicketingResponse:
        """POST a ticket; transport errors raise, any HTTP answer is returned."""
        response = await self._request("POST", "/tickets", payload=payload)
        try:
            body = response.json()
        except json.JSONDecodeError:
            body = None
        return TicketingResponse(status_code=response.status_code, body=body, text=response.text)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
