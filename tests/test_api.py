from __future__ import annotations

from typing import Iterator, Tuple

import pytest
from fastapi.testclient import TestClient

from ticket_creator import main
from ticket_creator.config import Settings
from ticket_creator.context import TicketCreatorContext
from ticket_creator.core import ConfigurationException, LLMException
from ticket_creator.intake.application import TicketingResponse

from conftest import FakeCompletionClient, FakeDirectorySource, FakeGateway, completion_json


class FakeSyncro(FakeDirectorySource):
    """Directory source and ticket gateway in one, like the real client."""

    def __init__(self) -> None:
        super().__init__()
        self.gateway = FakeGateway()
        self.closed = False

    async def create_ticket(self, payload: dict) -> TicketingResponse:
        return await self.gateway.create_ticket(payload)

    async def close(self) -> None:
        self.closed = True


def unconfigured_settings() -> Settings:
    return Settings(
        _env_file=None,
        openrouter_api_key=None,
        syncro_api_key=None,
        syncro_subdomain=None,
        mock_llm=False,
    )


@pytest.fixture
def unconfigured_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setattr(main, "settings", unconfigured_settings())
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def api(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> Iterator[Tuple[TestClient, TicketCreatorContext]]:
    monkeypatch.setattr(main, "settings", unconfigured_settings())
    context = TicketCreatorContext(
        settings,
        syncro=FakeSyncro(),
        completion_client=FakeCompletionClient(
            completion_json(user="John Smith", computer_reference=True),
            LLMException("upstream timeout"),
            models=["anthropic/claude-3-haiku", "openai/gpt-4o-mini"],
        ),
    )
    with TestClient(main.app) as client:
        main.app.state.context = context
        yield client, context


def test_unconfigured_service_reports_missing_credentials(unconfigured_client: TestClient) -> None:
    health = unconfigured_client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "degraded"
    assert "syncro_api_key" in health.json()["checks"]["configuration"]

    response = unconfigured_client.get("/directory/status")
    assert response.status_code == 503
    body = response.json()
    assert body["error_type"] == ConfigurationException.__name__
    assert "syncro_subdomain" in body["details"]["missing"]
    assert body["correlation_id"]


def test_root_and_correlation_id(unconfigured_client: TestClient) -> None:
    response = unconfigured_client.get("/", headers={"X-Correlation-ID": "abc-123"})

    assert response.status_code == 200
    assert response.json()["service"] == "Syncro AI Ticket Creator"
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_directory_not_ready_is_a_conflict(api) -> None:
    client, _ = api

    response = client.get("/directory/organizations")

    assert response.status_code == 409
    assert response.json()["error_type"] == "DirectoryNotReadyException"


def test_directory_endpoints_after_refresh(api) -> None:
    client, _ = api

    status = client.post("/directory/refresh").json()
    assert status["ready"] is True
    assert status["organizations"] == 4

    organizations = client.get("/directory/organizations").json()
    assert organizations[0] == {"id": 101, "name": "Acme Corp"}

    contacts = client.get("/directory/organizations/101/contacts").json()
    assert [c["id"] for c in contacts] == [5001, 5002]

    assert client.get("/directory/organizations/999/contacts").status_code == 404


def test_contact_search_works_before_the_cache_is_ready(api) -> None:
    client, context = api
    context.syncro.search_results = [{"id": 5001, "name": "John Smith", "customer_id": 101}]

    response = client.get("/directory/contacts/search", params={"q": "john"})

    assert response.status_code == 200
    assert response.json()[0]["organization_id"] == 101


def test_models(api) -> None:
    client, _ = api

    body = client.get("/models").json()

    assert body["default_model"] == "openai/gpt-4o-mini"
    assert "anthropic/claude-3-haiku" in body["models"]


def test_review_flow_with_disambiguation(api) -> None:
    client, context = api
    client.post("/directory/refresh")

    session = client.post("/sessions", json={}).json()
    assert session["state"] == "idle"
    session_id = session["id"]

    described = client.post(
        f"/sessions/{session_id}/describe",
        json={"description": "John Smith called about his computer"},
    ).json()
    assert described["state"] == "disambiguating"
    assert [c["label"] for c in described["candidates"]] == ["John Smith (Acme Corp)", "John Smith (Globex)"]

    chosen = client.post(f"/sessions/{session_id}/candidates/1").json()
    assert chosen["state"] == "reviewing"
    assert chosen["draft"]["organization_id"] == 102
    assert chosen["draft"]["contact_id"] == 5003
    assert chosen["draft"]["asset_id"] == 9003

    edited = client.patch(f"/sessions/{session_id}/draft", json={"send_email": True}).json()
    assert edited["draft"]["send_email"] is True
    assert edited["draft"]["overridden"] == ["send_email"]

    submitted = client.post(f"/sessions/{session_id}/submit").json()
    assert submitted["state"] == "idle"
    assert submitted["ticket"]["url"] == "https://acme-msp.shield.syncromsp.com/tickets/777"

    payload = context.syncro.gateway.payloads[0]
    assert payload["customer_id"] == 102
    assert payload["contact_id"] == 5003
    assert payload["asset_ids"] == [9003]
    assert payload["comments_attributes"][0]["do_not_email"] is False


def test_extraction_failure_maps_to_bad_gateway(api) -> None:
    client, context = api
    context.completion_client.responses.pop(0)
    session_id = client.post("/sessions").json()["id"]

    response = client.post(f"/sessions/{session_id}/describe", json={"description": "anything"})

    assert response.status_code == 502
    body = response.json()
    assert body["error_type"] == "ExtractionException"
    assert body["details"]["kind"] == "transport"
    assert client.get(f"/sessions/{session_id}").json()["state"] == "idle"


def test_request_validation(api) -> None:
    client, _ = api
    client.post("/directory/refresh")
    session_id = client.post("/sessions").json()["id"]

    assert client.post(f"/sessions/{session_id}/describe", json={"description": ""}).status_code == 422
    assert client.patch(f"/sessions/{session_id}/draft", json={"problem_category": "Printers"}).status_code == 422


def test_operations_in_the_wrong_state_conflict(api) -> None:
    client, _ = api
    session_id = client.post("/sessions").json()["id"]

    response = client.post(f"/sessions/{session_id}/submit")

    assert response.status_code == 409
    assert response.json()["error_type"] == "InvalidTransitionException"


def test_unknown_and_closed_sessions(api) -> None:
    client, _ = api
    session_id = client.post("/sessions").json()["id"]

    assert client.delete(f"/sessions/{session_id}").status_code == 204
    assert client.get(f"/sessions/{session_id}").status_code == 404
    assert client.post("/sessions/nope/restart").status_code == 404
