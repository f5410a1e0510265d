"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Credentials are treated as opaque values; nothing here talks to the network.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticket-creator", description="Application name")
    app_version: str = Field(default="1.4.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Completion Service (OpenRouter) ==========
    openrouter_api_key: Optional[str] = Field(
        default=None,
        description="OpenRouter API key used for description parsing"
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenAI-compatible base URL of the completion service"
    )
    openrouter_referer: str = Field(
        default="https://syncromsp.com",
        description="Value sent as HTTP-Referer to OpenRouter"
    )
    openrouter_title: str = Field(
        default="Syncro Ticket Creator",
        description="Value sent as X-Title to OpenRouter"
    )
    default_ai_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Model used when a request does not name one"
    )
    llm_temperature: float = Field(
        default=0.3,
        description="Sampling temperature for extraction",
        ge=0.0,
        le=2.0
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Max tokens for the extraction completion",
        ge=1,
        le=8000
    )
    llm_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for completion calls",
        ge=1.0
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock completion responses (no API calls)"
    )

    # ========== Ticketing Service (Syncro) ==========
    syncro_api_key: Optional[str] = Field(
        default=None,
        description="Syncro API key, sent as the api_key query parameter"
    )
    syncro_subdomain: Optional[str] = Field(
        default=None,
        description="Syncro account subdomain (<subdomain>.syncromsp.com)"
    )
    syncro_base_domain: str = Field(
        default="syncromsp.com",
        description="Domain hosting the Syncro API"
    )
    use_shield_domain: bool = Field(
        default=True,
        description="Build ticket links on shield.syncromsp.com instead of syncromsp.com"
    )
    syncro_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for Syncro API calls",
        ge=0.1,
        le=300
    )

    # ========== Review Sessions ==========
    session_idle_timeout_seconds: float = Field(
        default=4 * 3600,
        description="Open sessions untouched for this long are dropped",
        gt=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )
    cors_origin_regex: Optional[str] = Field(
        default=r"https://.*\.syncromsp\.com",
        description="Origin pattern for the panel injected into Syncro pages"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("syncro_subdomain")
    @classmethod
    def strip_subdomain(cls, v: Optional[str]) -> Optional[str]:
        """Accept 'acme', 'acme.syncromsp.com' or a full URL."""
        if v is None:
            return None
        v = v.strip().removeprefix("https://").removeprefix("http://")
        return v.split(".")[0] or None

    def missing_credentials(self) -> List[str]:
        """Names of credential settings that are not configured."""
        missing = []
        if not self.openrouter_api_key and not self.mock_llm:
            missing.append("openrouter_api_key")
        if not self.syncro_api_key:
            missing.append("syncro_api_key")
        if not self.syncro_subdomain:
            missing.append("syncro_subdomain")
        return missing

    @property
    def display_domain(self) -> str:
        """Domain used for links shown to the technician."""
        if self.use_shield_domain:
            return f"shield.{self.syncro_base_domain}"
        return self.syncro_base_domain


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class ProblemCategory(str):
    """Ticket problem types accepted by the Syncro API (exact wire strings)."""
    HARDWARE = "Hardware"
    SOFTWARE = "Software"
    PROJECT = "Project / Planned Work"
    NETWORK = "Network / Connectivity"
    NEW_DEVICE = "New Device / Deployment"
    MAINTENANCE = "Maintenance / Preventitive"
    ACCOUNT = "User Account / Access"
    SECURITY = "Security / Malware"
    INTERNAL = "Internal / MSP Operations"
    OTHER = "Other"


class TicketStatus(str):
    """Ticket statuses used when creating tickets."""
    NEW = "New"


# ========== Lists for validation ==========

PROBLEM_CATEGORIES = [
    ProblemCategory.HARDWARE, ProblemCategory.SOFTWARE,
    ProblemCategory.PROJECT, ProblemCategory.NETWORK,
    ProblemCategory.NEW_DEVICE, ProblemCategory.MAINTENANCE,
    ProblemCategory.ACCOUNT, ProblemCategory.SECURITY,
    ProblemCategory.INTERNAL, ProblemCategory.OTHER
]
