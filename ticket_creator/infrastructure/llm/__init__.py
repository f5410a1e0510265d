"""
LLM Client Infrastructure
==========================

Wrapper for the completion service (OpenRouter, OpenAI-compatible) providing
a clean interface for chat completions and model listing.

The application layer depends on ICompletionClient, not on the SDK.
"""

import json
import re
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from ticket_creator.config import Settings
from ticket_creator.core import LLMException, ConfigurationException, ShapeMismatchException
from ticket_creator.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ICompletionClient(ABC):
    """Interface for completion service operations."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 500
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Raises:
            LLMException: transport failure
            ShapeMismatchException: response without choices[0].message.content
        """

    @abstractmethod
    async def list_models(self) -> List[str]:
        """Ids of the models the service offers."""

    async def close(self) -> None:
        """Release HTTP resources."""


class OpenRouterClient(ICompletionClient):
    """
    OpenRouter client built on the OpenAI SDK.

    OpenRouter is OpenAI-compatible; only the base URL and the attribution
    headers differ.
    """

    def __init__(self, settings: Settings, api_key: Optional[str] = None):
        self._api_key = api_key or settings.openrouter_api_key
        if not self._api_key:
            raise ConfigurationException("OpenRouter API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.openrouter_referer,
                "X-Title": settings.openrouter_title,
            },
        )

    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 500
    ) -> ChatCompletionResult:
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except openai.APIError as e:
            logger.warning(
                "Completion request failed",
                extra={"model": model, "error": str(e)}
            )
            raise LLMException(f"Chat completion failed: {e}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        choices = getattr(response, "choices", None)
        message = choices[0].message if choices else None
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise ShapeMismatchException(
                "Completion Service",
                "Unexpected response format: missing choices[0].message.content",
                {"model": model}
            )

        usage = getattr(response, "usage", None)
        result = ChatCompletionResult(
            content=content,
            model=getattr(response, "model", None) or model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            latency_ms=latency_ms
        )
        logger.info(
            "Completion received",
            extra={
                "model": result.model,
                "latency_ms": latency_ms,
                "tokens_total": result.total_tokens
            }
        )
        return result

    async def list_models(self) -> List[str]:
        try:
            page = await self._client.models.list()
        except openai.APIError as e:
            raise LLMException(f"Listing models failed: {e}")
        return sorted(model.id for model in page.data)

    async def close(self) -> None:
        await self._client.close()


class MockCompletionClient(ICompletionClient):
    """
    Mock completion client for local runs without an API key.

    Echoes the quoted description back as a minimal extraction record so the
    rest of the pipeline (name heuristic, resolution) still has work to do.
    """

    MODEL = "mock-model"

    _DESCRIPTION = re.compile(r'Ticket description:\s*"(.*?)"\s*Respond', re.DOTALL)

    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 500
    ) -> ChatCompletionResult:
        user_content = str(messages[-1].get("content", "")) if messages else ""
        match = self._DESCRIPTION.search(user_content)
        description = match.group(1).strip() if match else user_content.strip()

        mock_response = {
            "organization": "",
            "user": "",
            "computer_reference": "computer" in description.lower(),
            "subject": description[:80] or "Support request",
            "issue": description or "Support request",
            "problem_type": "Other"
        }
        content = f"```json\n{json.dumps(mock_response, indent=2)}\n```"

        return ChatCompletionResult(
            content=content,
            model=self.MODEL,
            prompt_tokens=len(user_content.split()),
            completion_tokens=len(content.split()),
            latency_ms=0
        )

    async def list_models(self) -> List[str]:
        return [self.MODEL]


def create_completion_client(settings: Settings) -> ICompletionClient:
    """Pick the mock or the real client from settings."""
    if settings.mock_llm:
        logger.info("Using mock completion client")
        return MockCompletionClient()
    return OpenRouterClient(settings)
