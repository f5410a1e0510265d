"""
Directory Domain Layer
======================

Framework-agnostic records for customers, contacts and assets.
"""

from ticket_creator.directory.domain.entities import (
    Organization,
    Contact,
    Asset,
    CandidateMatch,
)

__all__ = [
    "Organization",
    "Contact",
    "Asset",
    "CandidateMatch",
]
