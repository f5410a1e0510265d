"""
Intake Domain Entities
======================

Domain entities for turning a description into a ticket: the extracted
record, the resolution outcome, the editable draft and the created ticket.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from ticket_creator.config import PROBLEM_CATEGORIES, ProblemCategory
from ticket_creator.directory.domain import Asset, CandidateMatch, Contact, Organization

SUBJECT_MAX_LENGTH = 80


class ReviewState(str, Enum):
    """States of a review session."""
    IDLE = "idle"
    AWAITING_EXTRACTION = "awaiting_extraction"
    AWAITING_RESOLUTION = "awaiting_resolution"
    DISAMBIGUATING = "disambiguating"
    REVIEWING = "reviewing"
    SUBMITTING = "submitting"


class ResolutionKind(str, Enum):
    """Outcome of mapping an extracted record onto the directory."""
    NOT_READY = "not_ready"
    RESOLVED = "resolved"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    MANUAL = "manual"


@dataclass
class ExtractedRecord:
    """
    Structured fields pulled out of a free-text description.

    organization and user may be empty; problem_category is always one of
    the Syncro problem types.
    """
    organization: str
    user: str
    computer_reference: bool
    subject: str
    issue: str
    problem_category: str = ProblemCategory.OTHER
    user_inferred: bool = False
    model_used: str = ""

    def __post_init__(self):
        if self.problem_category not in PROBLEM_CATEGORIES:
            raise ValueError(f"Unknown problem category: {self.problem_category}")
        if len(self.subject) > SUBJECT_MAX_LENGTH:
            raise ValueError(f"Subject longer than {SUBJECT_MAX_LENGTH} characters")

    @property
    def has_organization(self) -> bool:
        return bool(self.organization.strip())

    @property
    def has_user(self) -> bool:
        return bool(self.user.strip())


@dataclass
class Resolution:
    """
    Result of entity resolution.

    organizations and contacts are the option lists a reviewer can pick
    from; organization/contact are the pre-selected values, if any.
    organization_name/user_name are the directory names that replace the
    extracted ones when the match came from the user name alone.
    """
    kind: ResolutionKind
    organization: Optional[Organization] = None
    contact: Optional[Contact] = None
    contacts: List[Contact] = field(default_factory=list)
    candidates: List[CandidateMatch] = field(default_factory=list)
    organizations: List[Organization] = field(default_factory=list)
    message: str = ""
    organization_name: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def needs_choice(self) -> bool:
        return self.kind == ResolutionKind.AMBIGUOUS


@dataclass
class AssetSelection:
    """Assets offered for a contact, sorted by name, with the pre-selection."""
    assets: List[Asset] = field(default_factory=list)
    selected: Optional[Asset] = None


EDITABLE_FIELDS = ("subject", "issue", "problem_category", "send_email")


@dataclass
class ReviewDraft:
    """
    Mutable working copy of one ticket under review.

    overridden holds the names of fields the reviewer edited; those are never
    re-seeded from the extraction.
    """
    subject: str
    issue: str
    problem_category: str
    organization_id: Optional[int] = None
    contact_id: Optional[int] = None
    asset_id: Optional[int] = None
    send_email: bool = False
    overridden: Set[str] = field(default_factory=set)

    @classmethod
    def seed(cls, record: ExtractedRecord, resolution: Resolution) -> "ReviewDraft":
        """Defaults taken from the extraction and the resolved directory entries."""
        contact = resolution.contact
        return cls(
            subject=record.subject,
            issue=record.issue,
            problem_category=record.problem_category,
            organization_id=resolution.organization.id if resolution.organization else None,
            contact_id=contact.id if contact is not None else None,
        )


@dataclass
class TicketRef:
    """A ticket created in Syncro."""
    id: Optional[int]
    number: Optional[str] = None
    url: Optional[str] = None


@dataclass
class SessionEvent:
    """A state transition of a review session."""
    session_id: str
    previous: ReviewState
    current: ReviewState
    generation: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
