"""
Review Session
==============

State machine carrying one description through extraction, resolution,
review and submission.

States:
    idle -> awaiting_extraction -> awaiting_resolution -> disambiguating
         -> reviewing -> submitting -> idle

restart() is allowed from any state. Every transition is appended to the
session history and delivered to listeners as a SessionEvent.
"""

import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from ticket_creator.config import PROBLEM_CATEGORIES
from ticket_creator.core import (
    ApplicationException,
    InvalidTransitionException,
    ResourceNotFoundException,
    SessionBusyException,
    ValidationException,
)
from ticket_creator.directory.application import DirectoryCache
from ticket_creator.directory.domain import Asset, CandidateMatch, Contact
from ticket_creator.intake.application.services import (
    AssetResolver,
    EntityResolver,
    ExtractionService,
    TicketSubmissionService,
)
from ticket_creator.intake.domain import (
    EDITABLE_FIELDS,
    SUBJECT_MAX_LENGTH,
    ExtractedRecord,
    Resolution,
    ResolutionKind,
    ReviewDraft,
    ReviewState,
    SessionEvent,
    TicketRef,
)
from ticket_creator.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SessionListener = Callable[[SessionEvent], None]


def _error_message(error: Exception) -> str:
    if isinstance(error, ApplicationException):
        return error.message
    return str(error) or type(error).__name__


TRANSITIONS = {
    ReviewState.IDLE: {ReviewState.AWAITING_EXTRACTION},
    ReviewState.AWAITING_EXTRACTION: {ReviewState.AWAITING_RESOLUTION, ReviewState.IDLE},
    ReviewState.AWAITING_RESOLUTION: {
        ReviewState.DISAMBIGUATING, ReviewState.REVIEWING, ReviewState.IDLE
    },
    ReviewState.DISAMBIGUATING: {ReviewState.REVIEWING},
    ReviewState.REVIEWING: {ReviewState.SUBMITTING},
    ReviewState.SUBMITTING: {ReviewState.IDLE, ReviewState.REVIEWING},
}


class ReviewSession:
    """
    One technician's ticket in progress.

    Extraction and submission are guarded by busy flags: a second call while
    one is in flight raises SessionBusyException instead of queueing.
    restart() bumps the generation so results of abandoned calls are dropped.
    """

    def __init__(
        self,
        session_id: str,
        directory: DirectoryCache,
        extraction: ExtractionService,
        submission: TicketSubmissionService,
        model: str
    ):
        self.id = session_id
        self.model = model
        self._directory = directory
        self._extraction = extraction
        self._resolver = EntityResolver(directory)
        self._asset_resolver = AssetResolver(directory)
        self._submission = submission

        self.state = ReviewState.IDLE
        self.generation = 0
        self.history: List[SessionEvent] = []
        self.last_error: Optional[str] = None
        self.ticket: Optional[TicketRef] = None
        self._listeners: List[SessionListener] = []
        self._extracting = False
        self._submitting = False
        self._asset_load = 0
        self.touched_at = time.monotonic()
        self._clear_work()

    def _clear_work(self) -> None:
        self.record: Optional[ExtractedRecord] = None
        self.resolution: Optional[Resolution] = None
        self.draft: Optional[ReviewDraft] = None
        self.contact: Optional[Contact] = None
        self.candidates: List[CandidateMatch] = []
        self.contacts: List[Contact] = []
        self.assets: List[Asset] = []
        self.message = ""

    # ========== Events ==========

    @property
    def is_busy(self) -> bool:
        return self._extracting or self._submitting

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def _transition(self, target: ReviewState) -> None:
        previous = self.state
        self.state = target
        event = SessionEvent(
            session_id=self.id,
            previous=previous,
            current=target,
            generation=self.generation
        )
        self.history.append(event)
        logger.debug(
            "Session transition",
            extra={
                "session_id": self.id,
                "from_state": previous.value,
                "to_state": target.value,
                "generation": self.generation
            }
        )
        for listener in self._listeners:
            listener(event)

    def _require(self, operation: str, target: ReviewState, *states: ReviewState) -> None:
        if self.state not in states or target not in TRANSITIONS[self.state]:
            raise InvalidTransitionException(operation, self.state.value)

    def _require_reviewing(self, operation: str) -> None:
        if self.state != ReviewState.REVIEWING or self.draft is None:
            raise InvalidTransitionException(operation, self.state.value)

    # ========== Operations ==========

    async def describe(self, description: str, model: Optional[str] = None) -> Optional[Resolution]:
        """
        Extract fields from a description and resolve them.

        Returns None when the session was restarted while the completion
        call was in flight.
        """
        if self._extracting:
            raise SessionBusyException("describe")
        self._require("describe", ReviewState.AWAITING_EXTRACTION, ReviewState.IDLE)

        generation = self.generation
        self._extracting = True
        self._clear_work()
        self.last_error = None
        self.ticket = None
        self._transition(ReviewState.AWAITING_EXTRACTION)

        try:
            record = await self._extraction.extract(description, model or self.model)
        except Exception as e:
            if generation == self.generation:
                self.last_error = _error_message(e)
                self._transition(ReviewState.IDLE)
            raise
        finally:
            if generation == self.generation:
                self._extracting = False

        if generation != self.generation:
            logger.info("Discarding extraction of an abandoned session", extra={"session_id": self.id})
            return None

        self.record = record
        self._transition(ReviewState.AWAITING_RESOLUTION)
        return await self.resolve()

    async def resolve(self) -> Resolution:
        """
        Map the extracted record onto the directory.

        A not-ready directory leaves the session in awaiting_resolution so
        resolve() can be called again once loading finished.
        """
        if self.state != ReviewState.AWAITING_RESOLUTION or self.record is None:
            raise InvalidTransitionException("resolve", self.state.value)

        resolution = self._resolver.resolve(self.record)
        self.resolution = resolution
        if resolution.organization_name is not None:
            self.record.organization = resolution.organization_name
        if resolution.user_name is not None:
            self.record.user = resolution.user_name
        self.message = resolution.message
        logger.info(
            "Resolution finished",
            extra={"session_id": self.id, "resolution": resolution.kind.value}
        )

        if resolution.kind == ResolutionKind.NOT_READY:
            return resolution

        if resolution.kind == ResolutionKind.AMBIGUOUS:
            self.candidates = list(resolution.candidates)
            self._transition(ReviewState.DISAMBIGUATING)
            return resolution

        if resolution.kind == ResolutionKind.NOT_FOUND:
            self.last_error = resolution.message
            self._transition(ReviewState.IDLE)
            return resolution

        await self._begin_review(resolution)
        return resolution

    async def choose_candidate(self, index: int) -> Resolution:
        """Explicitly pick one entry of the disambiguation list."""
        if self.state != ReviewState.DISAMBIGUATING:
            raise InvalidTransitionException("choose a candidate", self.state.value)
        if not 0 <= index < len(self.candidates):
            raise ValidationException(
                f"Candidate {index} does not exist",
                field="candidate",
                details={"field": "candidate", "candidates": len(self.candidates)}
            )

        match = self.candidates[index]
        self.record.organization = match.organization.display_name
        self.record.user = match.contact.display_name
        resolution = Resolution(
            kind=ResolutionKind.RESOLVED,
            organization=match.organization,
            contact=match.contact,
            contacts=self._directory.contacts_of(match.organization.id),
            organizations=self.resolution.organizations if self.resolution else [],
        )
        self.resolution = resolution
        self.candidates = []
        self.message = ""
        await self._begin_review(resolution)
        return resolution

    async def _begin_review(self, resolution: Resolution) -> None:
        # Seeding happens once; later edits are never overwritten from the record.
        self.draft = ReviewDraft.seed(self.record, resolution)
        self.contact = resolution.contact
        self.contacts = list(resolution.contacts)
        self.assets = []
        self._asset_load += 1
        self._transition(ReviewState.REVIEWING)
        if self.contact is not None:
            await self._load_assets()

    async def _load_assets(self) -> None:
        # Only the latest load may write; any contact or organization change supersedes it.
        self._asset_load += 1
        token = self._asset_load
        generation = self.generation
        contact = self.contact
        organization_id = self.draft.organization_id
        computer_reference = self.record.computer_reference if self.record else False

        selection = await self._asset_resolver.resolve(organization_id, computer_reference)

        if (
            token != self._asset_load
            or generation != self.generation
            or self.contact is not contact
            or self.draft is None
            or self.draft.organization_id != organization_id
        ):
            logger.debug("Discarding superseded asset load", extra={"session_id": self.id})
            return
        self.assets = selection.assets
        self.draft.asset_id = selection.selected.id if selection.selected else None

    def change_organization(self, organization_id: int) -> None:
        """Switch organization; contact, asset and asset list are cleared."""
        self._require_reviewing("change organization")
        organization = self._directory.organization(organization_id)
        if organization is None:
            raise ValidationException(
                f"Organization {organization_id} does not exist",
                field="organization_id"
            )

        self._asset_load += 1
        self.draft.organization_id = organization.id
        self.draft.contact_id = None
        self.draft.asset_id = None
        self.contact = None
        self.contacts = self._directory.contacts_of(organization.id)
        self.assets = []

    async def change_contact(self, contact_id: Optional[int]) -> None:
        """Switch contact within the draft organization and reload its assets."""
        self._require_reviewing("change contact")

        contact = None
        if contact_id is not None:
            contact = next((c for c in self.contacts if c.id == contact_id), None)
            if contact is None or contact.organization_id != self.draft.organization_id:
                raise ValidationException(
                    "Contact does not belong to the selected organization",
                    field="contact_id"
                )

        self._asset_load += 1
        self.draft.asset_id = None
        self.assets = []
        self.draft.contact_id = contact_id
        self.contact = contact
        if contact is not None:
            await self._load_assets()

    def select_asset(self, asset_id: Optional[int]) -> None:
        self._require_reviewing("select asset")
        if asset_id is not None and not any(a.id == asset_id for a in self.assets):
            raise ValidationException(
                "Asset is not one of the selected organization's assets",
                field="asset_id"
            )
        self.draft.asset_id = asset_id

    def edit(self, changes: Dict[str, Any]) -> ReviewDraft:
        """Apply reviewer edits; edited fields are marked as overridden."""
        self._require_reviewing("edit")

        for name, value in changes.items():
            if name not in EDITABLE_FIELDS:
                raise ValidationException(f"Field '{name}' cannot be edited", field=name)
            if name == "problem_category" and value not in PROBLEM_CATEGORIES:
                raise ValidationException(f"Unknown problem category: {value}", field=name)
            if name == "send_email" and not isinstance(value, bool):
                raise ValidationException("send_email must be true or false", field=name)
            if name in ("subject", "issue") and not isinstance(value, str):
                raise ValidationException(f"{name} must be text", field=name)
            if name == "subject" and len(value) > SUBJECT_MAX_LENGTH:
                raise ValidationException(
                    f"Subject longer than {SUBJECT_MAX_LENGTH} characters",
                    field=name
                )

        for name, value in changes.items():
            setattr(self.draft, name, value)
            self.draft.overridden.add(name)
        return self.draft

    async def submit(self) -> Optional[TicketRef]:
        """
        Create the ticket from the draft.

        On success the session returns to idle with the work cleared; on any
        failure it returns to reviewing with the draft untouched.
        """
        if self._submitting:
            raise SessionBusyException("submit")
        self._require("submit", ReviewState.SUBMITTING, ReviewState.REVIEWING)

        generation = self.generation
        self._submitting = True
        self.last_error = None
        self._transition(ReviewState.SUBMITTING)

        try:
            ticket = await self._submission.submit(self.draft)
        except Exception as e:
            if generation == self.generation:
                self.last_error = _error_message(e)
                self._transition(ReviewState.REVIEWING)
            raise
        finally:
            if generation == self.generation:
                self._submitting = False

        if generation != self.generation:
            logger.info(
                "Ticket created for an abandoned session",
                extra={"session_id": self.id, "ticket_id": ticket.id}
            )
            return ticket

        self._clear_work()
        self.ticket = ticket
        self._transition(ReviewState.IDLE)
        return ticket

    def restart(self) -> None:
        """Discard everything and return to idle; in-flight results are ignored."""
        self.generation += 1
        self._extracting = False
        self._submitting = False
        self._clear_work()
        self.last_error = None
        self.ticket = None
        self._transition(ReviewState.IDLE)


class ReviewSessionRegistry:
    """
    In-memory registry of open review sessions.

    Every lookup touches the session. Sessions idle for longer than
    idle_timeout are dropped whenever a new one is opened, unless a call is
    still in flight.
    """

    def __init__(
        self,
        directory: DirectoryCache,
        extraction: ExtractionService,
        submission: TicketSubmissionService,
        default_model: str,
        idle_timeout: float = 4 * 3600
    ):
        self._directory = directory
        self._extraction = extraction
        self._submission = submission
        self._default_model = default_model
        self._idle_timeout = idle_timeout
        self._sessions: Dict[str, ReviewSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Drop idle sessions; returns the dropped ids."""
        now = time.monotonic() if now is None else now
        expired = [
            s.id for s in self._sessions.values()
            if not s.is_busy and now - s.touched_at > self._idle_timeout
        ]
        for session_id in expired:
            self._sessions.pop(session_id).restart()
        if expired:
            logger.info("Idle sessions dropped", extra={"sessions": len(expired)})
        return expired

    def open(self, model: Optional[str] = None) -> ReviewSession:
        self.sweep()
        session = ReviewSession(
            session_id=uuid.uuid4().hex,
            directory=self._directory,
            extraction=self._extraction,
            submission=self._submission,
            model=model or self._default_model
        )
        self._sessions[session.id] = session
        logger.info("Session opened", extra={"session_id": session.id, "model": session.model})
        return session

    def get(self, session_id: str) -> ReviewSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise ResourceNotFoundException("ReviewSession", session_id)
        session.touched_at = time.monotonic()
        return session

    def close(self, session_id: str) -> None:
        session = self.get(session_id)
        session.restart()
        del self._sessions[session_id]
        logger.info("Session closed", extra={"session_id": session_id})
