"""
Directory Application Layer
============================

Cache service over the ticketing service's customers and contacts.
"""

from ticket_creator.directory.application.services import (
    DirectoryCache,
    DirectoryStatus,
    IDirectorySource,
    collect_pages,
)

__all__ = [
    "DirectoryCache",
    "DirectoryStatus",
    "IDirectorySource",
    "collect_pages",
]
