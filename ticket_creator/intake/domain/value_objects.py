"""
Intake Value Objects
=====================

Pure functions and prompt text used when turning a free-text description
into an extracted record.
"""

import re
from typing import Any, List

from ticket_creator.config import ProblemCategory, PROBLEM_CATEGORIES


# Ordered: the first row with a keyword contained in the value wins.
CATEGORY_KEYWORDS = [
    (ProblemCategory.HARDWARE, ("hardware", "device issue")),
    (ProblemCategory.SOFTWARE, ("software", "application")),
    (ProblemCategory.NETWORK, ("network", "connectivity", "internet")),
    (ProblemCategory.PROJECT, ("project", "planned")),
    (ProblemCategory.NEW_DEVICE, ("deployment", "new device", "setup")),
    (ProblemCategory.MAINTENANCE, ("maintenance", "preventive", "preventitive")),
    (ProblemCategory.ACCOUNT, ("account", "access", "password", "login")),
    (ProblemCategory.SECURITY, ("security", "malware", "virus")),
    (ProblemCategory.INTERNAL, ("msp", "internal", "operations")),
]


def normalize_problem_category(value: Any) -> str:
    """
    Map any extracted category onto the Syncro problem-type enumeration.

    Exact (case-insensitive) match first, then the keyword table, then Other.
    """
    if not isinstance(value, str) or not value.strip():
        return ProblemCategory.OTHER

    lowered = value.strip().lower()
    for category in PROBLEM_CATEGORIES:
        if category.lower() == lowered:
            return category

    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category

    return ProblemCategory.OTHER


_NAME = r"([A-Z][a-z]+)"

NAME_PATTERNS = [
    re.compile(rf"\b{_NAME}\s+(?:called|said|reported|from|at|needs?|has|is having|experienced?)\b"),
    re.compile(rf"\b{_NAME}\s+{_NAME}?\s+(?:called|said|reported|needs?|has|is having|experienced?)\b"),
    re.compile(rf"\b{_NAME}\s+{_NAME}\b"),
]


def extract_names(description: str) -> List[str]:
    """
    Best-effort person names found in a description.

    Patterns run in order; names are kept in discovery order without
    duplicates. Product names written in title case can be picked up too.
    """
    names: List[str] = []
    for pattern in NAME_PATTERNS:
        for match in pattern.finditer(description):
            name = " ".join(part for part in match.groups() if part)
            if len(name) > 1 and name not in names:
                names.append(name)
    return names


class ExtractionPromptBuilder:
    """
    Builds the prompt for description parsing.

    All prompt wording in one place.
    """

    PROMPT_TEMPLATE = """You are a ticket parsing assistant. Parse the following ticket description and extract:
1. Customer/Organization name (company name) - if not mentioned, use empty string ""
2. User name (person's name) - extract any person mentioned who is reporting or experiencing the issue
3. Computer reference - TRUE if the description mentions "their computer", "my computer", "the computer", "his computer", "her computer", "laptop", "desktop", "workstation", or similar device references. FALSE otherwise.
4. A concise subject line for the ticket (max 80 characters)
5. The initial issue description (cleaned up and professional, without including any user or company names)
6. The problem type/category - MUST be EXACTLY one of these values:
{categories}

Examples:
- "John called about his computer not working" -> user: "John", organization: "", computer_reference: true
- "Sarah from ABC Corp said her email isn't working" -> user: "Sarah", organization: "ABC Corp", computer_reference: false
- "The server at XYZ Company is down" -> user: "", organization: "XYZ Company", computer_reference: false

Ticket description:
"{description}"

Respond ONLY with valid JSON in this exact format (no markdown, no code blocks, just raw JSON):
{{
  "organization": "extracted organization name or empty string",
  "user": "extracted user name or empty string",
  "computer_reference": true or false,
  "subject": "concise subject line",
  "issue": "cleaned up issue description",
  "problem_type": "problem category (must be one of the exact values listed above)"
}}"""

    @classmethod
    def build_prompt(cls, description: str) -> str:
        """Embed the raw description in the extraction instructions."""
        categories = "\n".join(f'   - "{category}"' for category in PROBLEM_CATEGORIES)
        return cls.PROMPT_TEMPLATE.format(categories=categories, description=description)

    @classmethod
    def build_messages(cls, description: str) -> List[dict]:
        return [{"role": "user", "content": cls.build_prompt(description)}]


_FENCE = re.compile(r"```(?:json)?\n?")


def strip_code_fences(content: str) -> str:
    """Remove markdown code fences the model may wrap around JSON."""
    return _FENCE.sub("", content.strip()).strip()
