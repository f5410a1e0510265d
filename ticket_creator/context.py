"""
Application Context
===================

Per-process wiring of clients, the directory cache, services and the
session registry. Built once in the FastAPI lifespan and closed on shutdown.
"""

import asyncio
from typing import Optional

from ticket_creator.config import Settings
from ticket_creator.core import ConfigurationException
from ticket_creator.directory.application import DirectoryCache
from ticket_creator.infrastructure.llm import ICompletionClient, create_completion_client
from ticket_creator.infrastructure.syncro import SyncroClient
from ticket_creator.intake.application import (
    ExtractionService,
    ReviewSessionRegistry,
    TicketSubmissionService,
)
from ticket_creator.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _log_load_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(
            "Background directory load failed",
            extra={"error": str(error), "error_type": type(error).__name__},
            exc_info=error
        )


class TicketCreatorContext:
    """Everything a request needs, with an explicit lifetime."""

    def __init__(
        self,
        settings: Settings,
        syncro: SyncroClient,
        completion_client: ICompletionClient
    ):
        self.settings = settings
        self.syncro = syncro
        self.completion_client = completion_client
        self.directory = DirectoryCache(syncro)
        self.extraction = ExtractionService(
            completion_client,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens
        )
        self.submission = TicketSubmissionService(syncro, settings)
        self.sessions = ReviewSessionRegistry(
            directory=self.directory,
            extraction=self.extraction,
            submission=self.submission,
            default_model=settings.default_ai_model,
            idle_timeout=settings.session_idle_timeout_seconds
        )
        self._load_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TicketCreatorContext":
        """
        Build the context, refusing when credentials are missing.

        Raises:
            ConfigurationException: lists the missing settings
        """
        missing = settings.missing_credentials()
        if missing:
            raise ConfigurationException(
                "Missing configuration: " + ", ".join(missing),
                {"missing": missing}
            )
        return cls(
            settings=settings,
            syncro=SyncroClient.from_settings(settings),
            completion_client=create_completion_client(settings)
        )

    def start(self) -> None:
        """Start loading the directory in the background."""
        if self._load_task is None:
            self._load_task = asyncio.create_task(self.directory.load())
            self._load_task.add_done_callback(_log_load_failure)

    async def close(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
            try:
                await self._load_task
            except asyncio.CancelledError:
                logger.info("Directory load cancelled on shutdown")
        await self.syncro.close()
        await self.completion_client.close()
