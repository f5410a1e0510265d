"""
Directory Application Services
===============================

In-memory snapshot of the ticketing service's customers and contacts.

The snapshot is loaded once in the background and queried synchronously
afterwards. Until it is ready every query raises DirectoryNotReadyException,
so "no data yet" is never mistaken for "no match".
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Tuple

from ticket_creator.core import DirectoryNotReadyException, ExternalServiceException
from ticket_creator.directory.domain import Asset, CandidateMatch, Contact, Organization
from ticket_creator.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Source Interface ==========

class IDirectorySource(ABC):
    """Interface for the paginated directory reads of the ticketing service."""

    @abstractmethod
    def iter_customers(self) -> AsyncIterator[List[dict]]:
        """Pages of customer records."""

    @abstractmethod
    def iter_contacts(self, customer_id: int) -> AsyncIterator[List[dict]]:
        """Pages of contact records of one customer."""

    @abstractmethod
    def iter_assets(self, customer_id: int) -> AsyncIterator[List[dict]]:
        """Pages of asset records of one customer."""

    @abstractmethod
    async def search_contacts(self, query: str) -> List[dict]:
        """Contact records matching a full-text query."""


@dataclass
class DirectoryStatus:
    """Snapshot summary for health checks."""
    ready: bool
    loading: bool
    complete: bool
    organizations: int
    contacts: int
    loaded_at: Optional[datetime]


async def collect_pages(pages: AsyncIterator[List[dict]], what: str) -> Tuple[List[dict], bool]:
    """
    Drain a page sequence.

    Returns the records and whether every page arrived. A failing page ends
    the walk but keeps what was already fetched.
    """
    records: List[dict] = []
    try:
        async for page in pages:
            records.extend(r for r in page if isinstance(r, dict) and r.get("id") is not None)
    except ExternalServiceException as e:
        logger.warning(
            "Pagination stopped early, keeping partial results",
            extra={"collection": what, "fetched": len(records), "error": e.message}
        )
        return records, False
    return records, True


class DirectoryCache:
    """
    Read-only directory of organizations and contacts.

    load() fetches all organizations, then fans out one contacts walk per
    organization and joins them before marking the cache ready.
    """

    def __init__(self, source: IDirectorySource):
        self._source = source
        self._load_task: Optional[asyncio.Task] = None
        self._reset()

    def _reset(self) -> None:
        self._organizations: List[Organization] = []
        self._organizations_by_id: Dict[int, Organization] = {}
        self._contacts: List[Contact] = []
        self._contacts_by_organization: Dict[int, List[Contact]] = {}
        self._ready = False
        self._complete = False
        self._loaded_at: Optional[datetime] = None

    # ========== Loading ==========

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_loading(self) -> bool:
        return self._load_task is not None and not self._load_task.done()

    async def load(self) -> bool:
        """Load the snapshot; concurrent callers share one in-flight load."""
        if self._ready:
            return True
        if self._load_task is None or self._load_task.done():
            self._load_task = asyncio.create_task(self._load())
        return await self._load_task

    async def refresh(self) -> bool:
        """Drop the snapshot and load it again."""
        if self.is_loading:
            return await self._load_task
        self._reset()
        self._load_task = None
        return await self.load()

    async def _load(self) -> bool:
        logger.info("Loading organizations and contacts")
        with log_latency(logger, "directory_load"):
            records, complete = await collect_pages(self._source.iter_customers(), "customers")
            organizations = [Organization.from_api(r) for r in records]

            results = await asyncio.gather(
                *(self._load_contacts(organization) for organization in organizations)
            )

        contacts_by_organization: Dict[int, List[Contact]] = {}
        for organization, (contacts, contacts_complete) in zip(organizations, results):
            contacts_by_organization[organization.id] = contacts
            complete = complete and contacts_complete

        self._organizations = organizations
        self._organizations_by_id = {o.id: o for o in organizations}
        self._contacts_by_organization = contacts_by_organization
        self._contacts = [c for o in organizations for c in contacts_by_organization[o.id]]
        self._complete = complete
        self._loaded_at = datetime.now(timezone.utc)
        self._ready = True

        logger.info(
            "Directory loaded",
            extra={
                "organizations": len(self._organizations),
                "contacts": len(self._contacts),
                "complete": complete
            }
        )
        return True

    async def _load_contacts(self, organization: Organization) -> Tuple[List[Contact], bool]:
        records, complete = await collect_pages(
            self._source.iter_contacts(organization.id),
            f"contacts:{organization.id}"
        )
        return [Contact.from_api(r, organization.id) for r in records], complete

    def status(self) -> DirectoryStatus:
        return DirectoryStatus(
            ready=self._ready,
            loading=self.is_loading,
            complete=self._complete,
            organizations=len(self._organizations),
            contacts=len(self._contacts),
            loaded_at=self._loaded_at,
        )

    # ========== Queries ==========

    def _require_ready(self) -> None:
        if not self._ready:
            raise DirectoryNotReadyException()

    def organizations(self) -> List[Organization]:
        self._require_ready()
        return list(self._organizations)

    def organization(self, organization_id: int) -> Optional[Organization]:
        self._require_ready()
        return self._organizations_by_id.get(organization_id)

    def find_organization(self, text: str) -> Optional[Organization]:
        """First organization, in fetch order, whose display name contains text."""
        self._require_ready()
        return next((o for o in self._organizations if o.name_contains(text)), None)

    def contacts_of(self, organization_id: int) -> List[Contact]:
        self._require_ready()
        return list(self._contacts_by_organization.get(organization_id, []))

    def all_contacts(self) -> List[Contact]:
        self._require_ready()
        return list(self._contacts)

    def contact(self, contact_id: int) -> Optional[Contact]:
        self._require_ready()
        return next((c for c in self._contacts if c.id == contact_id), None)

    def find_contacts(self, text: str) -> List[CandidateMatch]:
        """Every cached contact matching text, paired with its organization."""
        self._require_ready()
        matches = []
        for contact in self._contacts:
            organization = self._organizations_by_id.get(contact.organization_id)
            if organization is not None and contact.matches(text):
                matches.append(CandidateMatch(contact=contact, organization=organization))
        return matches

    # ========== Remote reads ==========

    async def search_contacts(self, query: str) -> List[Contact]:
        """Server-side full-text contact search; does not need the snapshot."""
        records = await self._source.search_contacts(query)
        return [
            Contact.from_api(r, r["customer_id"])
            for r in records
            if r.get("id") is not None and r.get("customer_id") is not None
        ]

    async def fetch_assets(self, organization_id: int) -> List[Asset]:
        """Assets of one organization; fetched on demand, never cached."""
        records, _ = await collect_pages(
            self._source.iter_assets(organization_id),
            f"assets:{organization_id}"
        )
        return [Asset.from_api(r, organization_id) for r in records]
