"""
Intake Application Services
============================

Application services for description extraction, entity resolution, asset
selection and ticket submission.

Orchestrates business logic between domain entities, the directory cache
and the external services.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import ValidationError

from ticket_creator.config import Settings, TicketStatus
from ticket_creator.core import (
    DirectoryNotReadyException,
    ExternalServiceException,
    ExtractionException,
    SubmissionException,
    ValidationException,
)
from ticket_creator.directory.application import DirectoryCache
from ticket_creator.directory.domain import Contact, Organization
from ticket_creator.infrastructure.llm import ICompletionClient
from ticket_creator.intake.application.dto import ExtractionPayload
from ticket_creator.intake.domain import (
    AssetSelection,
    ExtractedRecord,
    ExtractionPromptBuilder,
    Resolution,
    ResolutionKind,
    ReviewDraft,
    TicketRef,
    extract_names,
    normalize_problem_category,
    strip_code_fences,
)
from ticket_creator.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Gateway Interfaces ==========

@dataclass
class TicketingResponse:
    """Raw outcome of a write call; interpretation is left to the caller."""
    status_code: int
    body: Optional[Any]
    text: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class ITicketGateway(ABC):
    """Interface for ticket creation."""

    @abstractmethod
    async def create_ticket(self, payload: dict) -> TicketingResponse:
        """Create a ticket; raises TransportException when unreachable."""


# ========== Application Services ==========

class ExtractionService:
    """
    Service turning a free-text description into an ExtractedRecord.

    Coordinates between the completion client and the fallback heuristics.
    """

    def __init__(
        self,
        completion_client: ICompletionClient,
        temperature: float = 0.3,
        max_tokens: int = 500
    ):
        self._llm = completion_client
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def extract(self, description: str, model: str) -> ExtractedRecord:
        """
        Parse a description with the completion service.

        Raises:
            ExtractionException: transport failure, missing message structure
                or content that is not the expected JSON object
        """
        try:
            response = await self._llm.chat_completion(
                messages=ExtractionPromptBuilder.build_messages(description),
                model=model,
                temperature=self._temperature,
                max_tokens=self._max_tokens
            )
        except ExternalServiceException as e:
            raise ExtractionException(e.message, kind=e.kind, details=e.details)

        content = strip_code_fences(response.content)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ExtractionException(
                f"Error parsing completion response: {e}",
                kind=ExternalServiceException.SHAPE,
                details={"content": content[:500]}
            )
        if not isinstance(data, dict):
            raise ExtractionException(
                "Completion response is not a JSON object",
                kind=ExternalServiceException.SHAPE,
                details={"content": content[:500]}
            )

        try:
            payload = ExtractionPayload.model_validate(data)
        except ValidationError as e:
            raise ExtractionException(
                f"Completion response has unexpected fields: {e.error_count()} error(s)",
                kind=ExternalServiceException.SHAPE,
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)}
            )

        user = payload.user
        user_inferred = False
        if not user:
            names = extract_names(description)
            if names:
                user = names[0]
                user_inferred = True

        record = ExtractedRecord(
            organization=payload.organization,
            user=user,
            computer_reference=payload.computer_reference,
            subject=payload.subject,
            issue=payload.issue,
            problem_category=normalize_problem_category(payload.problem_type),
            user_inferred=user_inferred,
            model_used=response.model,
        )
        logger.info(
            "Description extracted",
            extra={
                "model": response.model,
                "has_organization": record.has_organization,
                "has_user": record.has_user,
                "user_inferred": user_inferred,
                "problem_category": record.problem_category
            }
        )
        return record

    async def list_models(self) -> List[str]:
        return await self._llm.list_models()


class EntityResolver:
    """
    Maps an extracted record onto directory entries.

    Pure over the cache snapshot: the same record against the same snapshot
    always yields the same resolution.
    """

    def __init__(self, directory: DirectoryCache):
        self._directory = directory

    def resolve(self, record: ExtractedRecord) -> Resolution:
        try:
            organizations = self._directory.organizations()
        except DirectoryNotReadyException as e:
            return Resolution(kind=ResolutionKind.NOT_READY, message=e.message)

        organization_name = record.organization.strip()
        user_name = record.user.strip()

        if organization_name:
            return self._resolve_by_organization(organization_name, user_name, organizations)
        if user_name:
            return self._resolve_by_user(user_name, organizations)
        return Resolution(kind=ResolutionKind.MANUAL, organizations=organizations)

    def _resolve_by_organization(
        self,
        organization_name: str,
        user_name: str,
        organizations: List[Organization]
    ) -> Resolution:
        organization = self._directory.find_organization(organization_name)
        if organization is None:
            return Resolution(
                kind=ResolutionKind.MANUAL,
                organizations=organizations,
                message=f'No organization matching "{organization_name}"; select one manually.'
            )

        contacts = self._directory.contacts_of(organization.id)
        contact = None
        if user_name:
            contact = next((c for c in contacts if c.matches(user_name)), None)

        return Resolution(
            kind=ResolutionKind.RESOLVED,
            organization=organization,
            contact=contact,
            contacts=contacts,
            organizations=organizations,
        )

    def _resolve_by_user(
        self,
        user_name: str,
        organizations: List[Organization]
    ) -> Resolution:
        candidates = self._directory.find_contacts(user_name)

        if len(candidates) > 1:
            return Resolution(
                kind=ResolutionKind.AMBIGUOUS,
                candidates=candidates,
                organizations=organizations,
                message=f'Multiple users named "{user_name}" were found. Please select the correct user.'
            )

        if len(candidates) == 1:
            match = candidates[0]
            organization, contact = match.organization, match.contact
        else:
            # Individual customers: the "user" may be the customer itself.
            organization = self._directory.find_organization(user_name)
            if organization is None:
                return Resolution(
                    kind=ResolutionKind.NOT_FOUND,
                    organizations=organizations,
                    message=(
                        f'Could not find user "{user_name}" in contacts or customers. '
                        "Please check the name or provide the organization name."
                    )
                )
            contact = Contact.for_organization(organization)

        return Resolution(
            kind=ResolutionKind.RESOLVED,
            organization=organization,
            contact=contact,
            contacts=self._directory.contacts_of(organization.id),
            organizations=organizations,
            organization_name=organization.display_name,
            user_name=contact.display_name,
        )


class AssetResolver:
    """Loads an organization's assets and decides the pre-selection."""

    def __init__(self, directory: DirectoryCache):
        self._directory = directory

    async def resolve(self, organization_id: int, computer_reference: bool) -> AssetSelection:
        """
        Pre-select only when the description mentioned a computer and the
        organization has exactly one asset. Assets are never name-matched.
        """
        assets = await self._directory.fetch_assets(organization_id)
        assets.sort(key=lambda a: a.display_name.lower())

        selected = assets[0] if computer_reference and len(assets) == 1 else None
        logger.info(
            "Assets loaded",
            extra={
                "organization_id": organization_id,
                "assets": len(assets),
                "preselected": selected is not None
            }
        )
        return AssetSelection(assets=assets, selected=selected)


class TicketSubmissionService:
    """Service converting a finished draft into a Syncro ticket."""

    INITIAL_COMMENT_SUBJECT = "Initial Issue"

    def __init__(self, gateway: ITicketGateway, settings: Settings):
        self._gateway = gateway
        self._subdomain = settings.syncro_subdomain
        self._display_domain = settings.display_domain

    def validate(self, draft: ReviewDraft) -> None:
        """Raise a field-specific ValidationException for missing required fields."""
        if draft.organization_id is None:
            raise ValidationException("Please select an organization.", field="organization_id")
        if not draft.subject.strip():
            raise ValidationException("Please enter a subject.", field="subject")
        if not draft.issue.strip():
            raise ValidationException("Please enter an issue description.", field="issue")

    def build_payload(self, draft: ReviewDraft) -> dict:
        """Create-ticket request body for a validated draft."""
        payload = {
            "customer_id": draft.organization_id,
            "subject": draft.subject.strip(),
            "problem_type": normalize_problem_category(draft.problem_category),
            "status": TicketStatus.NEW,
            "comments_attributes": [{
                "subject": self.INITIAL_COMMENT_SUBJECT,
                "body": draft.issue.strip(),
                "hidden": False,
                "do_not_email": not draft.send_email
            }]
        }
        if draft.contact_id is not None:
            payload["contact_id"] = draft.contact_id
        if draft.asset_id is not None:
            payload["asset_ids"] = [draft.asset_id]
        return payload

    async def submit(self, draft: ReviewDraft) -> TicketRef:
        """
        Validate locally, then create the ticket.

        Raises:
            ValidationException: before any network call
            SubmissionException: transport failure or unsuccessful response
        """
        self.validate(draft)
        payload = self.build_payload(draft)

        try:
            response = await self._gateway.create_ticket(payload)
        except ExternalServiceException as e:
            raise SubmissionException(f"Error creating ticket: {e.message}", kind=e.kind)

        ticket = response.body.get("ticket") if isinstance(response.body, dict) else None
        if isinstance(ticket, dict) and ticket.get("id"):
            ref = self._ticket_ref(ticket)
        elif response.is_success:
            ref = self._ticket_ref(response.body if isinstance(response.body, dict) else {})
        else:
            logger.warning(
                "Ticket creation rejected",
                extra={"status_code": response.status_code, "customer_id": draft.organization_id}
            )
            raise SubmissionException(
                f"Failed to create ticket (HTTP {response.status_code})",
                status_code=response.status_code,
                response_body=response.text
            )

        logger.info(
            "Ticket created",
            extra={"ticket_id": ref.id, "ticket_number": ref.number, "customer_id": draft.organization_id}
        )
        return ref

    def _ticket_ref(self, data: dict) -> TicketRef:
        ticket_id = data.get("id")
        number = data.get("number")
        url = None
        if ticket_id is not None:
            url = f"https://{self._subdomain}.{self._display_domain}/tickets/{ticket_id}"
        return TicketRef(
            id=ticket_id,
            number=str(number) if number is not None else None,
            url=url,
        )
