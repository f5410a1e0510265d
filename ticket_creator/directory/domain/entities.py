"""
Directory Domain Entities
==========================

Immutable records mirrored from the ticketing service: organizations
(Syncro customers), their contacts and their assets.

Name matching is plain case-insensitive substring containment.
"""

from dataclasses import dataclass
from typing import Any, Optional


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _full_name(firstname: str, lastname: str) -> str:
    return f"{firstname} {lastname}".strip()


@dataclass(frozen=True)
class Organization:
    """A Syncro customer record."""
    id: int
    business_name: str = ""
    firstname: str = ""
    lastname: str = ""

    @property
    def display_name(self) -> str:
        """Business name, else the person's name for individual customers."""
        return self.business_name or _full_name(self.firstname, self.lastname)

    def name_contains(self, text: str) -> bool:
        needle = text.strip().lower()
        if not needle:
            return False
        return needle in self.display_name.lower()

    @classmethod
    def from_api(cls, data: dict) -> "Organization":
        return cls(
            id=data["id"],
            business_name=_text(data.get("business_name")),
            firstname=_text(data.get("firstname")),
            lastname=_text(data.get("lastname")),
        )


@dataclass(frozen=True)
class Contact:
    """
    A person scoped to one organization.

    A synthetic contact stands in for an organization that is itself the
    person (sole proprietor); it has no id of its own.
    """
    id: Optional[int]
    organization_id: int
    name: str = ""
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    is_synthetic: bool = False

    @property
    def display_name(self) -> str:
        return self.name or _full_name(self.firstname, self.lastname)

    def matches(self, text: str) -> bool:
        """True when text is contained in the full, combined, first or last name."""
        needle = text.strip().lower()
        if not needle:
            return False

        full_name = self.name.lower()
        first = self.firstname.lower()
        last = self.lastname.lower()
        combined = f"{first} {last}" if first and last else ""

        return any(
            needle in candidate
            for candidate in (full_name, combined, first, last)
            if candidate
        )

    @classmethod
    def from_api(cls, data: dict, organization_id: int) -> "Contact":
        return cls(
            id=data["id"],
            organization_id=organization_id,
            name=_text(data.get("name")),
            firstname=_text(data.get("firstname")),
            lastname=_text(data.get("lastname")),
            email=_text(data.get("email")),
        )

    @classmethod
    def for_organization(cls, organization: Organization) -> "Contact":
        """Synthetic self-reference contact for an individual customer."""
        return cls(
            id=None,
            organization_id=organization.id,
            name=organization.display_name,
            is_synthetic=True,
        )


@dataclass(frozen=True)
class Asset:
    """A device record; assets belong to organizations, not contacts."""
    id: int
    organization_id: int
    name: str = ""
    asset_type: str = ""

    @property
    def display_name(self) -> str:
        return self.name or f"Asset #{self.id}"

    @classmethod
    def from_api(cls, data: dict, organization_id: int) -> "Asset":
        return cls(
            id=data["id"],
            organization_id=data.get("customer_id") or organization_id,
            name=_text(data.get("name")),
            asset_type=_text(data.get("asset_type")),
        )


@dataclass(frozen=True)
class CandidateMatch:
    """A contact found by a cross-organization search, with its owner."""
    contact: Contact
    organization: Organization

    @property
    def label(self) -> str:
        return f"{self.contact.display_name} ({self.organization.display_name})"
