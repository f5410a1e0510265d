from __future__ import annotations

import pytest

from ticket_creator.config import ProblemCategory, Settings
from ticket_creator.core import SubmissionException, ValidationException
from ticket_creator.intake.application import TicketingResponse, TicketSubmissionService
from ticket_creator.intake.domain import ExtractedRecord, Resolution, ResolutionKind, ReviewDraft
from ticket_creator.directory.domain import Contact, Organization

from conftest import FakeGateway


ACME = Organization(id=101, business_name="Acme Corp")
JOHN = Contact(id=5001, organization_id=101, name="John Smith")


def seeded_draft(contact: Contact = JOHN) -> ReviewDraft:
    record = ExtractedRecord(
        organization="Acme Corp",
        user="John",
        computer_reference=True,
        subject="Laptop will not boot",
        issue="The laptop shows a black screen after the logo.",
        problem_category=ProblemCategory.HARDWARE,
    )
    resolution = Resolution(kind=ResolutionKind.RESOLVED, organization=ACME, contact=contact)
    return ReviewDraft.seed(record, resolution)


async def test_unmodified_draft_round_trips_into_the_payload(gateway: FakeGateway, settings: Settings) -> None:
    draft = seeded_draft()

    await TicketSubmissionService(gateway, settings).submit(draft)

    assert gateway.payloads == [{
        "customer_id": 101,
        "subject": "Laptop will not boot",
        "problem_type": "Hardware",
        "status": "New",
        "comments_attributes": [{
            "subject": "Initial Issue",
            "body": "The laptop shows a black screen after the logo.",
            "hidden": False,
            "do_not_email": True,
        }],
        "contact_id": 5001,
    }]


def test_send_email_clears_do_not_email(settings: Settings) -> None:
    draft = seeded_draft()
    draft.send_email = True
    draft.asset_id = 9001

    payload = TicketSubmissionService(FakeGateway(), settings).build_payload(draft)

    assert payload["comments_attributes"][0]["do_not_email"] is False
    assert payload["asset_ids"] == [9001]


def test_synthetic_contact_sends_no_contact_id(settings: Settings) -> None:
    draft = seeded_draft(contact=Contact.for_organization(ACME))

    payload = TicketSubmissionService(FakeGateway(), settings).build_payload(draft)

    assert "contact_id" not in payload
    assert "asset_ids" not in payload


@pytest.mark.parametrize(
    "field, change",
    [
        ("organization_id", {"organization_id": None}),
        ("subject", {"subject": "  "}),
        ("issue", {"issue": ""}),
    ],
)
async def test_validation_happens_before_any_network_call(
    field: str, change: dict, gateway: FakeGateway, settings: Settings
) -> None:
    draft = seeded_draft()
    for name, value in change.items():
        setattr(draft, name, value)

    with pytest.raises(ValidationException) as excinfo:
        await TicketSubmissionService(gateway, settings).submit(draft)

    assert excinfo.value.field == field
    assert gateway.payloads == []


async def test_ticket_link_uses_display_domain(settings: Settings) -> None:
    gateway = FakeGateway(TicketingResponse(201, {"ticket": {"id": 42, "number": "T-9"}}, ""))

    ticket = await TicketSubmissionService(gateway, settings).submit(seeded_draft())

    assert ticket.id == 42
    assert ticket.number == "T-9"
    assert ticket.url == "https://acme-msp.shield.syncromsp.com/tickets/42"


async def test_ticket_link_without_shield(settings: Settings) -> None:
    settings.use_shield_domain = False
    gateway = FakeGateway(TicketingResponse(200, {"ticket": {"id": 42}}, ""))

    ticket = await TicketSubmissionService(gateway, settings).submit(seeded_draft())

    assert ticket.url == "https://acme-msp.syncromsp.com/tickets/42"


async def test_success_status_without_ticket_body_still_succeeds(settings: Settings) -> None:
    gateway = FakeGateway(TicketingResponse(200, None, "OK"))

    ticket = await TicketSubmissionService(gateway, settings).submit(seeded_draft())

    assert ticket.id is None
    assert ticket.url is None


async def test_error_status_carries_raw_response(settings: Settings) -> None:
    gateway = FakeGateway(TicketingResponse(422, {"message": ["Subject is invalid"]}, '{"message": ["Subject is invalid"]}'))

    with pytest.raises(SubmissionException) as excinfo:
        await TicketSubmissionService(gateway, settings).submit(seeded_draft())

    assert excinfo.value.status_code == 422
    assert "Subject is invalid" in excinfo.value.response_body
    assert excinfo.value.kind == "shape"
