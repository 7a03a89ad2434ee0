"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="wildwatch-triage", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/wildwatch",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== LLM (OpenAI-compatible endpoint) ==========
    llm_api_key: Optional[str] = Field(
        default=None,
        description="API key for the text-generation endpoint"
    )
    llm_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible base URL (Gemini by default)"
    )
    llm_primary_model: str = Field(
        default="gemini-2.5-pro",
        description="Model tried first for every analysis call"
    )
    llm_fallback_model: str = Field(
        default="gemini-2.5-flash",
        description="Model tried when the primary model fails"
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single model call",
        ge=0.1,
        le=300
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )

    # ========== Triage ==========
    triage_task_timeout_seconds: float = Field(
        default=75.0,
        description="Upper bound for each concurrent triage call",
        gt=0
    )
    triage_similar_limit: int = Field(
        default=3,
        description="Similar incidents attached to an allowed report",
        ge=1,
        le=20
    )

    # ========== Similarity ==========
    similarity_threshold: float = Field(
        default=0.60,
        description="Minimum Jaccard score for a similar incident",
        ge=0.0,
        le=1.0
    )
    similarity_cache_enabled: bool = Field(
        default=True,
        description="Cache active candidate incidents between queries"
    )
    similarity_cache_ttl_minutes: float = Field(
        default=10,
        description="Minutes before the candidate cache is refreshed",
        gt=0
    )
    similarity_cache_max_candidates: int = Field(
        default=30,
        description="Maximum number of cached candidate incidents",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8081"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
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

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class ModerationDecision(str, Enum):
    """Outcome of the moderation gate."""
    ALLOW = "ALLOW"
    BLOCK = "BLOCK"


class IncidentStatus(str, Enum):
    """Incident lifecycle statuses as stored by the reporting platform."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


@dataclass(frozen=True)
class Office:
    """A handling office. Description is only used to build the routing prompt."""
    code: str
    full_name: str
    description: str


OFFICES = (
    Office(
        code="TSG",
        full_name="Technical Service Group",
        description=(
            "Handles WiFi and network connectivity, computers, lab equipment "
            "and any other technical issue across campus."
        ),
    ),
    Office(
        code="OPC",
        full_name="Office of the Property Custodian",
        description=(
            "Handles non-computer property, furniture, facilities, grounds "
            "and building maintenance."
        ),
    ),
    Office(
        code="SSO",
        full_name="Student Success Office",
        description=(
            "Provides academic support and counseling, manages student "
            "records and disciplinary matters between students."
        ),
    ),
    Office(
        code="SSD",
        full_name="Safety and Security Department",
        description=(
            "Handles theft, robbery, external threats, campus security, "
            "parking and vehicle incidents."
        ),
    ),
    Office(
        code="SSG",
        full_name="Supreme Student Government",
        description=(
            "Handles student advocacy, student welfare and general concerns "
            "that do not belong to another office."
        ),
    ),
)

DEFAULT_OFFICE_CODE = "SSG"

OFFICES_BY_CODE = {office.code: office for office in OFFICES}


def get_office(code: str) -> Optional[Office]:
    """Look up an office by its code (case-insensitive)."""
    return OFFICES_BY_CODE.get(code.strip().upper()) if code else None


def get_default_office() -> Office:
    """Office used when routing output cannot be mapped to the table."""
    return OFFICES_BY_CODE[DEFAULT_OFFICE_CODE]


# ========== Lists for validation ==========

ACTIVE_STATUSES = [IncidentStatus.PENDING, IncidentStatus.IN_PROGRESS]
TERMINAL_STATUSES = [IncidentStatus.RESOLVED, IncidentStatus.CLOSED]
