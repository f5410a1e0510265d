from __future__ import annotations

import json
from typing import Dict, List

import httpx
import pytest

from ticket_creator.core import ConfigurationException, ShapeMismatchException, TicketingException
from ticket_creator.directory.application import collect_pages
from ticket_creator.infrastructure.syncro import SyncroClient
from ticket_creator.shared.infrastructure.logging import redact_url


def make_client(handler) -> SyncroClient:
    return SyncroClient(
        subdomain="acme-msp",
        api_key="secret-key",
        transport=httpx.MockTransport(handler),
    )


def paged(pages: Dict[int, dict], seen: List[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        page = int(request.url.params.get("page", "1"))
        return httpx.Response(200, json=pages[page])
    return handler


def test_missing_credentials_are_rejected() -> None:
    with pytest.raises(ConfigurationException):
        SyncroClient(subdomain="acme-msp", api_key=None)
    with pytest.raises(ConfigurationException):
        SyncroClient(subdomain="", api_key="key")


async def test_iter_pages_walks_until_total_pages() -> None:
    seen: List[httpx.Request] = []
    client = make_client(paged({
        1: {"customers": [{"id": 1}, {"id": 2}], "meta": {"total_pages": 3, "page": 1}},
        2: {"customers": [{"id": 3}], "meta": {"total_pages": 3, "page": 2}},
        3: {"customers": [{"id": 4}], "meta": {"total_pages": 3, "page": 3}},
    }, seen))

    pages = [page async for page in client.iter_customers()]

    assert [[r["id"] for r in page] for page in pages] == [[1, 2], [3], [4]]
    assert [r.url.params["page"] for r in seen] == ["1", "2", "3"]
    assert all(r.url.params["api_key"] == "secret-key" for r in seen)
    assert seen[0].url.host == "acme-msp.syncromsp.com"
    assert seen[0].url.path == "/api/v1/customers"
    await client.close()


async def test_missing_meta_means_single_page() -> None:
    seen: List[httpx.Request] = []
    client = make_client(paged({1: {"contacts": [{"id": 7}]}}, seen))

    pages = [page async for page in client.iter_contacts(101)]

    assert pages == [[{"id": 7}]]
    assert len(seen) == 1
    assert seen[0].url.params["customer_id"] == "101"
    await client.close()


async def test_assets_use_customer_assets_collection() -> None:
    seen: List[httpx.Request] = []
    client = make_client(paged({1: {"assets": [{"id": 9001, "name": "WS-01"}], "meta": {"total_pages": 1}}}, seen))

    pages = [page async for page in client.iter_assets(101)]

    assert pages == [[{"id": 9001, "name": "WS-01"}]]
    assert seen[0].url.path == "/api/v1/customer_assets"
    await client.close()


async def test_page_without_collection_ends_the_walk() -> None:
    seen: List[httpx.Request] = []
    client = make_client(paged({1: {"error": "nope", "meta": {"total_pages": 5}}}, seen))

    pages = [page async for page in client.iter_customers()]

    assert pages == []
    assert len(seen) == 1
    await client.close()


async def test_failing_page_keeps_earlier_pages() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "1":
            return httpx.Response(200, json={"customers": [{"id": 1}], "meta": {"total_pages": 2}})
        return httpx.Response(500, text="boom")

    client = make_client(handler)

    records, complete = await collect_pages(client.iter_customers(), "customers")

    assert records == [{"id": 1}]
    assert complete is False
    await client.close()


async def test_error_status_raises_transport_failure() -> None:
    client = make_client(lambda request: httpx.Response(401, text="unauthorized"))

    with pytest.raises(TicketingException) as excinfo:
        [page async for page in client.iter_customers()]

    assert excinfo.value.details["status_code"] == 401
    assert excinfo.value.kind == "transport"
    await client.close()


async def test_network_error_raises_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = make_client(handler)

    with pytest.raises(TicketingException):
        await client.search_contacts("john")
    await client.close()


async def test_invalid_json_raises_shape_mismatch() -> None:
    client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(ShapeMismatchException) as excinfo:
        [page async for page in client.iter_customers()]

    assert excinfo.value.kind == "shape"
    await client.close()


async def test_search_keeps_only_contacts() -> None:
    seen: List[httpx.Request] = []
    body = {
        "results": [
            {"table": {"_type": "customer", "_source": {"table": {"id": 101, "business_name": "Acme"}}}},
            {"table": {"_type": "contact", "_source": {"table": {"id": 5001, "name": "John Smith", "customer_id": 101}}}},
            {"table": {"_type": "ticket", "_source": {"table": {"id": 3}}}},
        ]
    }

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=body)

    client = make_client(handler)

    contacts = await client.search_contacts("john")

    assert contacts == [{"id": 5001, "name": "John Smith", "customer_id": 101}]
    assert seen[0].url.path == "/api/v1/search"
    assert seen[0].url.params["query"] == "john"
    await client.close()


async def test_create_ticket_posts_payload_and_returns_raw_response() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ticket": {"id": 55, "number": 1001}})

    client = make_client(handler)

    response = await client.create_ticket({"customer_id": 101, "subject": "Broken"})

    assert response.status_code == 200
    assert response.body == {"ticket": {"id": 55, "number": 1001}}
    assert response.is_success
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/v1/tickets"
    assert json.loads(seen[0].content) == {"customer_id": 101, "subject": "Broken"}
    await client.close()


async def test_create_ticket_tolerates_unparsable_body() -> None:
    client = make_client(lambda request: httpx.Response(201, text="created"))

    response = await client.create_ticket({"customer_id": 101})

    assert response.body is None
    assert response.text == "created"
    assert response.is_success
    await client.close()


def test_api_key_is_redacted_from_urls() -> None:
    url = "https://acme-msp.syncromsp.com/api/v1/customers?page=2&api_key=secret-key"

    assert "secret-key" not in redact_url(url)
    assert "page=2" in redact_url(url)
