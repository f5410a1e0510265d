"""
Intake Application Layer
=========================

Application layer for the description intake module.

Contains:
- Services: extraction, entity and asset resolution, ticket submission
- Session: the review state machine and its registry
- DTOs: Data transfer objects for API serialization
"""

from ticket_creator.intake.application.dto import (
    AssetChoice,
    ContactChoice,
    DescribeRequest,
    DirectoryStatusResponse,
    DraftUpdate,
    ExtractionPayload,
    ModelsResponse,
    OpenSessionRequest,
    OrganizationChoice,
    OrganizationInfo,
    ContactInfo,
    SessionResponse,
    TicketInfo,
)
from ticket_creator.intake.application.services import (
    AssetResolver,
    EntityResolver,
    ExtractionService,
    ITicketGateway,
    TicketingResponse,
    TicketSubmissionService,
)
from ticket_creator.intake.application.session import (
    ReviewSession,
    ReviewSessionRegistry,
    TRANSITIONS,
)

__all__ = [
    # DTOs
    "AssetChoice",
    "ContactChoice",
    "DescribeRequest",
    "DirectoryStatusResponse",
    "DraftUpdate",
    "ExtractionPayload",
    "ModelsResponse",
    "OpenSessionRequest",
    "OrganizationChoice",
    "OrganizationInfo",
    "ContactInfo",
    "SessionResponse",
    "TicketInfo",
    # Services
    "AssetResolver",
    "EntityResolver",
    "ExtractionService",
    "ITicketGateway",
    "TicketingResponse",
    "TicketSubmissionService",
    # Session
    "ReviewSession",
    "ReviewSessionRegistry",
    "TRANSITIONS",
]
