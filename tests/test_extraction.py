from __future__ import annotations

import pytest

from ticket_creator.config import ProblemCategory
from ticket_creator.core import ExtractionException, LLMException, ShapeMismatchException
from ticket_creator.infrastructure.llm import MockCompletionClient
from ticket_creator.intake.application import ExtractionService

from conftest import FakeCompletionClient, completion_json


async def test_extract_parses_fenced_json() -> None:
    content = "```json\n" + completion_json(organization="Acme Corp", user="John", computer_reference=True) + "\n```"
    client = FakeCompletionClient(content)

    record = await ExtractionService(client).extract("John at Acme called", "openai/gpt-4o-mini")

    assert record.organization == "Acme Corp"
    assert record.user == "John"
    assert record.computer_reference is True
    assert record.problem_category == ProblemCategory.HARDWARE
    assert record.user_inferred is False
    assert record.model_used == "openai/gpt-4o-mini"


async def test_request_uses_single_user_message_and_sampling_settings() -> None:
    client = FakeCompletionClient(completion_json())

    await ExtractionService(client).extract("Printer jammed", "some/model")

    call = client.calls[0]
    assert call["model"] == "some/model"
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 500
    assert [m["role"] for m in call["messages"]] == ["user"]
    assert '"Printer jammed"' in call["messages"][0]["content"]


async def test_unknown_category_is_normalized() -> None:
    client = FakeCompletionClient(completion_json(problem_type="Email problem with password"))

    record = await ExtractionService(client).extract("x", "m")

    assert record.problem_category == ProblemCategory.ACCOUNT


async def test_nulls_and_missing_optional_fields_default() -> None:
    client = FakeCompletionClient('{"subject": "Email down", "issue": "Outlook fails", "organization": null, "user": null}')

    record = await ExtractionService(client).extract("email is down", "m")

    assert record.organization == ""
    assert record.user == ""
    assert record.computer_reference is False
    assert record.problem_category == ProblemCategory.OTHER


async def test_subject_is_clipped() -> None:
    client = FakeCompletionClient(completion_json(subject="x" * 120))

    record = await ExtractionService(client).extract("long", "m")

    assert len(record.subject) == 80


async def test_empty_user_falls_back_to_name_heuristic() -> None:
    client = FakeCompletionClient(completion_json(user=""))

    record = await ExtractionService(client).extract("John called about his computer not working", "m")

    assert record.user == "John"
    assert record.user_inferred is True


async def test_transport_failure_is_an_extraction_error() -> None:
    client = FakeCompletionClient(LLMException("connection refused"))

    with pytest.raises(ExtractionException) as excinfo:
        await ExtractionService(client).extract("x", "m")

    assert excinfo.value.kind == "transport"


async def test_missing_message_structure_is_a_shape_error() -> None:
    client = FakeCompletionClient(ShapeMismatchException("Completion Service", "missing choices"))

    with pytest.raises(ExtractionException) as excinfo:
        await ExtractionService(client).extract("x", "m")

    assert excinfo.value.kind == "shape"


@pytest.mark.parametrize(
    "content",
    [
        "Sorry, I cannot help with that.",
        "[1, 2, 3]",
        '{"organization": "Acme"}',
        '{"subject": ["a"], "issue": "b"}',
    ],
)
async def test_unusable_content_is_a_shape_error(content: str) -> None:
    client = FakeCompletionClient(content)

    with pytest.raises(ExtractionException) as excinfo:
        await ExtractionService(client).extract("x", "m")

    assert excinfo.value.kind == "shape"


async def test_mock_client_round_trips_through_extraction() -> None:
    service = ExtractionService(MockCompletionClient())

    record = await service.extract("Sarah Connor says her computer is slow", MockCompletionClient.MODEL)

    assert record.issue == "Sarah Connor says her computer is slow"
    assert record.computer_reference is True
    assert record.user == "Sarah Connor"
    assert record.user_inferred is True
    assert await service.list_models() == ["mock-model"]
