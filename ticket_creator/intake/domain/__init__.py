"""
Intake Domain Layer
===================

Domain layer for description intake and ticket review.

Contains:
- Entities: ExtractedRecord, Resolution, ReviewDraft, TicketRef, SessionEvent
- Value Objects: category normalization, name heuristic, prompt builder

This layer is framework-agnostic and contains pure business logic.
"""

from ticket_creator.intake.domain.entities import (
    AssetSelection,
    EDITABLE_FIELDS,
    ExtractedRecord,
    Resolution,
    ResolutionKind,
    ReviewDraft,
    ReviewState,
    SessionEvent,
    SUBJECT_MAX_LENGTH,
    TicketRef,
)
from ticket_creator.intake.domain.value_objects import (
    ExtractionPromptBuilder,
    extract_names,
    normalize_problem_category,
    strip_code_fences,
)

__all__ = [
    "AssetSelection",
    "EDITABLE_FIELDS",
    "ExtractedRecord",
    "Resolution",
    "ResolutionKind",
    "ReviewDraft",
    "ReviewState",
    "SessionEvent",
    "SUBJECT_MAX_LENGTH",
    "TicketRef",
    "ExtractionPromptBuilder",
    "extract_names",
    "normalize_problem_category",
    "strip_code_fences",
]
