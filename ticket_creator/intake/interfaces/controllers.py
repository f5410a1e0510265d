"""
Intake Controllers (API Routes)
================================

FastAPI routes for the directory, the completion model picker and the
review sessions.

Controllers delegate to the review session and application services;
exceptions are mapped to HTTP responses by the shared handlers.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ticket_creator.context import TicketCreatorContext
from ticket_creator.core import ConfigurationException, ResourceNotFoundException
from ticket_creator.intake.application import (
    AssetChoice,
    ContactChoice,
    ContactInfo,
    DescribeRequest,
    DirectoryStatusResponse,
    DraftUpdate,
    ModelsResponse,
    OpenSessionRequest,
    OrganizationChoice,
    OrganizationInfo,
    ReviewSession,
    SessionResponse,
)
from ticket_creator.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

directory_router = APIRouter(prefix="/directory", tags=["Directory"])
models_router = APIRouter(tags=["Models"])
sessions_router = APIRouter(prefix="/sessions", tags=["Review Sessions"])


# ========== Example payloads for Swagger ==========

DESCRIBE_REQUEST_EXAMPLE = {
    "description": "John called about his computer not working",
    "model": "openai/gpt-4o-mini"
}

SESSION_RESPONSE_EXAMPLE = {
    "id": "9b2f0c6e8f5a4a1c9d7e3b2a1f0e9d8c",
    "state": "reviewing",
    "generation": 0,
    "busy": False,
    "model": "openai/gpt-4o-mini",
    "resolution": "resolved",
    "message": "",
    "last_error": None,
    "extraction": {
        "organization": "Acme Corp",
        "user": "John Smith",
        "computer_reference": True,
        "subject": "Computer not working",
        "issue": "User reports that the computer is not working.",
        "problem_category": "Hardware",
        "user_inferred": False,
        "model": "openai/gpt-4o-mini"
    },
    "draft": {
        "subject": "Computer not working",
        "issue": "User reports that the computer is not working.",
        "problem_category": "Hardware",
        "organization_id": 101,
        "contact_id": 5001,
        "asset_id": 9001,
        "send_email": False,
        "overridden": []
    },
    "candidates": [],
    "contacts": [
        {"id": 5001, "organization_id": 101, "name": "John Smith", "email": "john@acme.test", "synthetic": False}
    ],
    "assets": [{"id": 9001, "name": "ACME-WS-01", "asset_type": "Desktop"}],
    "ticket": None
}


# ========== Dependencies ==========

def get_context(request: Request) -> TicketCreatorContext:
    """Per-process context; unavailable until credentials are configured."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        error = getattr(request.app.state, "config_error", None)
        raise error or ConfigurationException("Service is not configured")
    return context


def get_session(
    session_id: str,
    context: TicketCreatorContext = Depends(get_context)
) -> ReviewSession:
    return context.sessions.get(session_id)


# ========== Directory ==========

@directory_router.get(
    "/status",
    response_model=DirectoryStatusResponse,
    summary="Directory cache status"
)
async def directory_status(context: TicketCreatorContext = Depends(get_context)):
    snapshot = context.directory.status()
    return DirectoryStatusResponse(
        ready=snapshot.ready,
        loading=snapshot.loading,
        complete=snapshot.complete,
        organizations=snapshot.organizations,
        contacts=snapshot.contacts,
        loaded_at=snapshot.loaded_at
    )


@directory_router.post(
    "/refresh",
    response_model=DirectoryStatusResponse,
    summary="Reload organizations and contacts"
)
async def refresh_directory(context: TicketCreatorContext = Depends(get_context)):
    await context.directory.refresh()
    return await directory_status(context)


@directory_router.get(
    "/organizations",
    response_model=List[OrganizationInfo],
    summary="All organizations in fetch order",
    responses={409: {"description": "Directory still loading"}}
)
async def list_organizations(context: TicketCreatorContext = Depends(get_context)):
    return [OrganizationInfo.from_domain(o) for o in context.directory.organizations()]


@directory_router.get(
    "/organizations/{organization_id}/contacts",
    response_model=List[ContactInfo],
    summary="Contacts of one organization",
    responses={404: {"description": "Unknown organization"}, 409: {"description": "Directory still loading"}}
)
async def list_contacts(
    organization_id: int,
    context: TicketCreatorContext = Depends(get_context)
):
    if context.directory.organization(organization_id) is None:
        raise ResourceNotFoundException("Organization", str(organization_id))
    return [ContactInfo.from_domain(c) for c in context.directory.contacts_of(organization_id)]


@directory_router.get(
    "/contacts/search",
    response_model=List[ContactInfo],
    summary="Full-text contact search on Syncro",
    description="Queries the Syncro search endpoint directly; works while the cache is loading."
)
async def search_contacts(
    q: str = Query(..., min_length=1, description="Search text"),
    context: TicketCreatorContext = Depends(get_context)
):
    contacts = await context.directory.search_contacts(q)
    return [ContactInfo.from_domain(c) for c in contacts]


# ========== Models ==========

@models_router.get(
    "/models",
    response_model=ModelsResponse,
    summary="Completion models available for parsing"
)
async def list_models(context: TicketCreatorContext = Depends(get_context)):
    models = await context.extraction.list_models()
    return ModelsResponse(default_model=context.settings.default_ai_model, models=models)


# ========== Review Sessions ==========

@sessions_router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a review session"
)
async def open_session(
    payload: Optional[OpenSessionRequest] = None,
    context: TicketCreatorContext = Depends(get_context)
):
    session = context.sessions.open(model=payload.model if payload else None)
    return SessionResponse.from_session(session)


@sessions_router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Current state of a review session",
    responses={
        200: {"content": {"application/json": {"example": SESSION_RESPONSE_EXAMPLE}}},
        404: {"description": "Unknown session"}
    }
)
async def get_session_state(session: ReviewSession = Depends(get_session)):
    return SessionResponse.from_session(session)


@sessions_router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close a review session"
)
async def close_session(
    session_id: str,
    context: TicketCreatorContext = Depends(get_context)
):
    context.sessions.close(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@sessions_router.post(
    "/{session_id}/describe",
    response_model=SessionResponse,
    summary="Parse a description and resolve it against the directory",
    description="""
    Sends the description to the completion service, then resolves the
    extracted organization and user against the directory cache.

    The resulting state is one of:
    - `reviewing` - organization (and possibly contact) pre-selected
    - `disambiguating` - several contacts matched; pick one with `/candidates/{index}`
    - `awaiting_resolution` - directory still loading; call `/resolve` later
    - `idle` - nothing matched; `last_error` explains what was searched

    **Example Request**:
    ```json
    {
        "description": "John called about his computer not working"
    }
    ```
    """,
    responses={
        409: {"description": "Session busy or not idle"},
        502: {"description": "Completion service failed or returned an unexpected payload"}
    }
)
async def describe(
    payload: DescribeRequest,
    request: Request,
    session: ReviewSession = Depends(get_session)
):
    logger.info(
        "Parsing description",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "session_id": session.id,
            "description_length": len(payload.description)
        }
    )
    await session.describe(payload.description, model=payload.model)
    return SessionResponse.from_session(session)


@sessions_router.post(
    "/{session_id}/resolve",
    response_model=SessionResponse,
    summary="Retry resolution once the directory is ready"
)
async def resolve(session: ReviewSession = Depends(get_session)):
    await session.resolve()
    return SessionResponse.from_session(session)


@sessions_router.post(
    "/{session_id}/candidates/{index}",
    response_model=SessionResponse,
    summary="Choose one of the ambiguous contacts"
)
async def choose_candidate(index: int, session: ReviewSession = Depends(get_session)):
    await session.choose_candidate(index)
    return SessionResponse.from_session(session)


@sessions_router.put(
    "/{session_id}/organization",
    response_model=SessionResponse,
    summary="Change the draft organization"
)
async def change_organization(
    payload: OrganizationChoice,
    session: ReviewSession = Depends(get_session)
):
    session.change_organization(payload.organization_id)
    return SessionResponse.from_session(session)


@sessions_router.put(
    "/{session_id}/contact",
    response_model=SessionResponse,
    summary="Change the draft contact"
)
async def change_contact(
    payload: ContactChoice,
    session: ReviewSession = Depends(get_session)
):
    await session.change_contact(payload.contact_id)
    return SessionResponse.from_session(session)


@sessions_router.put(
    "/{session_id}/asset",
    response_model=SessionResponse,
    summary="Select the draft asset"
)
async def select_asset(
    payload: AssetChoice,
    session: ReviewSession = Depends(get_session)
):
    session.select_asset(payload.asset_id)
    return SessionResponse.from_session(session)


@sessions_router.patch(
    "/{session_id}/draft",
    response_model=SessionResponse,
    summary="Edit subject, issue, category or the send-email flag"
)
async def edit_draft(
    payload: DraftUpdate,
    session: ReviewSession = Depends(get_session)
):
    session.edit(payload.model_dump(exclude_unset=True))
    return SessionResponse.from_session(session)


@sessions_router.post(
    "/{session_id}/submit",
    response_model=SessionResponse,
    summary="Create the ticket in Syncro",
    responses={
        422: {"description": "Required field missing"},
        502: {"description": "Syncro rejected the ticket or was unreachable"}
    }
)
async def submit(request: Request, session: ReviewSession = Depends(get_session)):
    ticket = await session.submit()
    logger.info(
        "Ticket submitted",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "session_id": session.id,
            "ticket_id": ticket.id if ticket else None
        }
    )
    return SessionResponse.from_session(session)


@sessions_router.post(
    "/{session_id}/restart",
    response_model=SessionResponse,
    summary="Discard the session's work and return to idle"
)
async def restart(session: ReviewSession = Depends(get_session)):
    session.restart()
    return SessionResponse.from_session(session)
