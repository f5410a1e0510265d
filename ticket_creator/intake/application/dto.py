"""
Intake Application DTOs
========================

Data Transfer Objects for the Intake API layer.

Pydantic models for request/response validation, plus the model that
validates the completion service's extraction JSON.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime

from ticket_creator.config import PROBLEM_CATEGORIES, ProblemCategory
from ticket_creator.intake.domain import SUBJECT_MAX_LENGTH


# ========== Extraction DTOs ==========

class ExtractionPayload(BaseModel):
    """
    JSON object returned by the completion service.

    subject and issue are required; null strings become empty strings and
    unknown keys are ignored. problem_type stays raw until normalized.
    """
    model_config = ConfigDict(extra="ignore")

    organization: str = ""
    user: str = ""
    computer_reference: bool = False
    subject: str
    issue: str
    problem_type: Any = ProblemCategory.OTHER

    @field_validator("organization", "user", "subject", "issue", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("computer_reference", mode="before")
    @classmethod
    def null_to_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("organization", "user", "issue")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("subject")
    @classmethod
    def clip_subject(cls, v: str) -> str:
        """Syncro subjects are kept to a single short line."""
        return v.strip()[:SUBJECT_MAX_LENGTH]


# ========== Request DTOs ==========

class OpenSessionRequest(BaseModel):
    """Request model for opening a review session."""
    model: Optional[str] = Field(None, description="Completion model; defaults to the configured one")


class DescribeRequest(BaseModel):
    """Request model for parsing a free-text description."""
    description: str = Field(..., min_length=1, description="Incident description")
    model: Optional[str] = Field(None, description="Completion model for this call")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        """Ensure the description is not blank or too long for the model."""
        if not v.strip():
            raise ValueError("Please enter a ticket description")
        if len(v) > 10000:
            raise ValueError("Description too long (max 10000 characters)")
        return v


class OrganizationChoice(BaseModel):
    """Request model for changing the draft organization."""
    organization_id: int


class ContactChoice(BaseModel):
    """Request model for changing the draft contact; null clears it."""
    contact_id: Optional[int] = None


class AssetChoice(BaseModel):
    """Request model for selecting an asset; null clears it."""
    asset_id: Optional[int] = None


class DraftUpdate(BaseModel):
    """Request model for editing draft fields. Only fields sent are applied."""
    subject: Optional[str] = Field(None, max_length=SUBJECT_MAX_LENGTH)
    issue: Optional[str] = None
    problem_category: Optional[str] = None
    send_email: Optional[bool] = None

    @field_validator("problem_category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in PROBLEM_CATEGORIES:
            raise ValueError(f"problem_category must be one of {PROBLEM_CATEGORIES}")
        return v


# ========== Response DTOs ==========

class OrganizationInfo(BaseModel):
    """Organization as shown in pickers."""
    id: int
    name: str

    @classmethod
    def from_domain(cls, organization: Any) -> "OrganizationInfo":
        return cls(id=organization.id, name=organization.display_name)


class ContactInfo(BaseModel):
    """Contact as shown in pickers."""
    id: Optional[int]
    organization_id: int
    name: str
    email: str = ""
    synthetic: bool = False

    @classmethod
    def from_domain(cls, contact: Any) -> "ContactInfo":
        return cls(
            id=contact.id,
            organization_id=contact.organization_id,
            name=contact.display_name,
            email=contact.email,
            synthetic=contact.is_synthetic
        )


class AssetInfo(BaseModel):
    """Asset as shown in pickers."""
    id: int
    name: str
    asset_type: str = ""

    @classmethod
    def from_domain(cls, asset: Any) -> "AssetInfo":
        return cls(id=asset.id, name=asset.display_name, asset_type=asset.asset_type)


class CandidateInfo(BaseModel):
    """One entry of a disambiguation list."""
    index: int
    label: str
    contact: ContactInfo
    organization: OrganizationInfo


class ExtractionInfo(BaseModel):
    """Fields extracted from the description."""
    organization: str
    user: str
    computer_reference: bool
    subject: str
    issue: str
    problem_category: str
    user_inferred: bool
    model: str


class DraftInfo(BaseModel):
    """The ticket under review."""
    subject: str
    issue: str
    problem_category: str
    organization_id: Optional[int]
    contact_id: Optional[int]
    asset_id: Optional[int]
    send_email: bool
    overridden: List[str]


class TicketInfo(BaseModel):
    """A created ticket."""
    id: Optional[int]
    number: Optional[str] = None
    url: Optional[str] = None


class SessionResponse(BaseModel):
    """Full state of a review session."""
    id: str
    state: str
    generation: int
    busy: bool
    model: str
    resolution: Optional[str] = None
    message: str = ""
    last_error: Optional[str] = None
    extraction: Optional[ExtractionInfo] = None
    draft: Optional[DraftInfo] = None
    contact: Optional[ContactInfo] = None
    candidates: List[CandidateInfo] = []
    contacts: List[ContactInfo] = []
    assets: List[AssetInfo] = []
    ticket: Optional[TicketInfo] = None

    @classmethod
    def from_session(cls, session: Any) -> "SessionResponse":
        record = session.record
        draft = session.draft
        ticket = session.ticket
        resolution = session.resolution
        return cls(
            id=session.id,
            state=session.state.value,
            generation=session.generation,
            busy=session.is_busy,
            model=session.model,
            resolution=resolution.kind.value if resolution else None,
            message=session.message,
            last_error=session.last_error,
            extraction=ExtractionInfo(
                organization=record.organization,
                user=record.user,
                computer_reference=record.computer_reference,
                subject=record.subject,
                issue=record.issue,
                problem_category=record.problem_category,
                user_inferred=record.user_inferred,
                model=record.model_used
            ) if record else None,
            draft=DraftInfo(
                subject=draft.subject,
                issue=draft.issue,
                problem_category=draft.problem_category,
                organization_id=draft.organization_id,
                contact_id=draft.contact_id,
                asset_id=draft.asset_id,
                send_email=draft.send_email,
                overridden=sorted(draft.overridden)
            ) if draft else None,
            contact=ContactInfo.from_domain(session.contact) if session.contact else None,
            candidates=[
                CandidateInfo(
                    index=i,
                    label=c.label,
                    contact=ContactInfo.from_domain(c.contact),
                    organization=OrganizationInfo.from_domain(c.organization)
                )
                for i, c in enumerate(session.candidates)
            ],
            contacts=[ContactInfo.from_domain(c) for c in session.contacts],
            assets=[AssetInfo.from_domain(a) for a in session.assets],
            ticket=TicketInfo(id=ticket.id, number=ticket.number, url=ticket.url) if ticket else None
        )


class DirectoryStatusResponse(BaseModel):
    """Response model for the directory cache status."""
    ready: bool
    loading: bool
    complete: bool
    organizations: int
    contacts: int
    loaded_at: Optional[datetime] = None


class ModelsResponse(BaseModel):
    """Response model for the completion model picker."""
    default_model: str
    models: List[str]
