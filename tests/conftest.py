from __future__ import annotations

import json
from typing import AsyncIterator, Callable, Dict, List, Optional, Union

import pytest

from ticket_creator.config import Settings
from ticket_creator.core import ApplicationException, TicketingException
from ticket_creator.directory.application import DirectoryCache, IDirectorySource
from ticket_creator.infrastructure.llm import ChatCompletionResult, ICompletionClient
from ticket_creator.intake.application import (
    ExtractionService,
    ITicketGateway,
    ReviewSession,
    TicketingResponse,
    TicketSubmissionService,
)


CUSTOMERS = [
    {"id": 101, "business_name": "Acme Corp"},
    {"id": 102, "business_name": "Globex"},
    {"id": 103, "business_name": None, "firstname": "Jane", "lastname": "Doe"},
    {"id": 104, "business_name": "Initech"},
]

CONTACTS = {
    101: [
        {"id": 5001, "name": "John Smith", "firstname": "John", "lastname": "Smith", "email": "john@acme.test"},
        {"id": 5002, "name": "Alice Jones", "firstname": "Alice", "lastname": "Jones"},
    ],
    102: [
        {"id": 5003, "name": "John Smith", "firstname": "John", "lastname": "Smith", "email": "jsmith@globex.test"},
        {"id": 5004, "name": "", "firstname": "Bob", "lastname": "Brown"},
    ],
    103: [],
    104: [
        {"id": 5005, "name": "Peter Gibbons", "firstname": "Peter", "lastname": "Gibbons"},
    ],
}

ASSETS = {
    101: [
        {"id": 9002, "name": "zeta-laptop", "asset_type": "Laptop"},
        {"id": 9001, "name": "Alpha-WS", "asset_type": "Desktop"},
    ],
    102: [{"id": 9003, "name": "GLX-01", "asset_type": "Desktop"}],
    103: [],
    104: [],
}


async def _pages(records: List[dict], page_size: int, fail_at: Optional[int] = None) -> AsyncIterator[List[dict]]:
    for number, start in enumerate(range(0, len(records), page_size), start=1):
        if fail_at is not None and number >= fail_at:
            raise TicketingException(f"page {number} failed")
        yield records[start:start + page_size]


class FakeDirectorySource(IDirectorySource):
    """In-memory Syncro directory with optional page failures."""

    def __init__(
        self,
        customers: Optional[List[dict]] = None,
        contacts: Optional[Dict[int, List[dict]]] = None,
        assets: Optional[Dict[int, List[dict]]] = None,
        page_size: int = 2,
    ) -> None:
        self.customers = CUSTOMERS if customers is None else customers
        self.contacts = CONTACTS if contacts is None else contacts
        self.assets = ASSETS if assets is None else assets
        self.page_size = page_size
        self.customer_failure_page: Optional[int] = None
        self.contact_failures: Dict[int, int] = {}
        self.search_results: List[dict] = []
        self.customer_walks = 0
        self.asset_calls: List[int] = []

    def iter_customers(self) -> AsyncIterator[List[dict]]:
        self.customer_walks += 1
        return _pages(self.customers, self.page_size, self.customer_failure_page)

    def iter_contacts(self, customer_id: int) -> AsyncIterator[List[dict]]:
        return _pages(self.contacts.get(customer_id, []), self.page_size, self.contact_failures.get(customer_id))

    def iter_assets(self, customer_id: int) -> AsyncIterator[List[dict]]:
        self.asset_calls.append(customer_id)
        return _pages(self.assets.get(customer_id, []), self.page_size)

    async def search_contacts(self, query: str) -> List[dict]:
        return self.search_results


def completion_json(**fields) -> str:
    record = {
        "organization": "",
        "user": "",
        "computer_reference": False,
        "subject": "Computer not working",
        "issue": "The computer does not start.",
        "problem_type": "Hardware",
    }
    record.update(fields)
    return json.dumps(record)


class FakeCompletionClient(ICompletionClient):
    """Returns queued contents (or raises queued exceptions) in order."""

    def __init__(self, *responses: Union[str, Exception], models: Optional[List[str]] = None) -> None:
        self.responses = list(responses)
        self.models = models or ["openai/gpt-4o-mini"]
        self.calls: List[dict] = []
        self.closed = False
        self.before_return: Optional[Callable[[], None]] = None

    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 500
    ) -> ChatCompletionResult:
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.before_return is not None:
            self.before_return()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return ChatCompletionResult(
            content=response,
            model=model,
            prompt_tokens=10,
            completion_tokens=20,
            latency_ms=5,
        )

    async def list_models(self) -> List[str]:
        return self.models

    async def close(self) -> None:
        self.closed = True


class FakeGateway(ITicketGateway):
    """Records payloads and answers with a fixed response."""

    def __init__(
        self,
        response: Optional[TicketingResponse] = None,
        error: Optional[ApplicationException] = None,
    ) -> None:
        self.response = response or TicketingResponse(
            status_code=200,
            body={"ticket": {"id": 777, "number": 1234}},
            text='{"ticket": {"id": 777, "number": 1234}}',
        )
        self.error = error
        self.payloads: List[dict] = []
        self.before_return: Optional[Callable[[], None]] = None

    async def create_ticket(self, payload: dict) -> TicketingResponse:
        self.payloads.append(payload)
        if self.before_return is not None:
            self.before_return()
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openrouter_api_key="or-test-key",
        syncro_api_key="syncro-test-key",
        syncro_subdomain="acme-msp",
        use_shield_domain=True,
    )


@pytest.fixture
def directory_source() -> FakeDirectorySource:
    return FakeDirectorySource()


@pytest.fixture
async def directory(directory_source: FakeDirectorySource) -> DirectoryCache:
    cache = DirectoryCache(directory_source)
    await cache.load()
    return cache


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_session(directory: DirectoryCache, gateway: FakeGateway, settings: Settings):
    """Build a session over the loaded directory with a scripted completion client."""

    def factory(*responses: Union[str, Exception], cache: Optional[DirectoryCache] = None) -> ReviewSession:
        client = FakeCompletionClient(*responses)
        return ReviewSession(
            session_id="session-1",
            directory=cache or directory,
            extraction=ExtractionService(client),
            submission=TicketSubmissionService(gateway, settings),
            model="openai/gpt-4o-mini",
        )

    return factory
