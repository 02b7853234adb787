"""
Centralized configuration with environment variable overrides.

School details, scheduling windows, throttling limits and service
credentials are all configurable here. Nothing is hardcoded in the
conversation or tool logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from admission_bot.logging_context import ConversationIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

INTERACTION_LOGGER_NAME = "admission_bot.interactions"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_weekdays(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated list of weekday numbers (Monday=0)."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError, AttributeError):
        raise ValueError(
            f"Invalid weekday list for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class SchoolConfig:
    """School-specific settings loaded from environment or defaults."""

    name: str = os.getenv("SCHOOL_NAME", "IVY International School")
    bot_name: str = os.getenv("BOT_NAME", "Ivy Admissions Assistant")
    faq_document_path: str = os.getenv("FAQ_DOCUMENT_PATH", "input.txt")
    appointment_host: str = os.getenv("APPOINTMENT_HOST", "IvyBot")
    appointment_purpose: str = os.getenv("APPOINTMENT_PURPOSE", "Admission Inquiry")
    appointment_type: str = os.getenv("APPOINTMENT_TYPE", "Admission")


@dataclass(frozen=True)
class ModelConfig:
    """Chat completion model settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    api_key: str = os.getenv("OPENAI_API_KEY", "")
    classification_temperature: float = _safe_float("LLM_CLASSIFICATION_TEMPERATURE", "0.0")
    answer_temperature: float = _safe_float("LLM_ANSWER_TEMPERATURE", "0.5")
    timeout_seconds: float = _safe_float("LLM_TIMEOUT_SECONDS", "30.0")


@dataclass(frozen=True)
class DatabaseConfig:
    """Relational store connection settings."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///./admissions.db")


@dataclass(frozen=True)
class SchedulingConfig:
    """Weekly meeting window used to generate bookable slots."""

    lookahead_days: int = _safe_int("SLOT_LOOKAHEAD_DAYS", "3")
    day_start_hour: int = _safe_int("SLOT_DAY_START_HOUR", "8")
    day_end_hour: int = _safe_int("SLOT_DAY_END_HOUR", "15")
    slot_minutes: int = _safe_int("SLOT_MINUTES", "30")
    # Sunday through Thursday
    weekdays: tuple[int, ...] = _safe_weekdays("SLOT_WEEKDAYS", "6,0,1,2,3")
    default_grade: int = _safe_int("DEFAULT_GRADE", "4")


@dataclass(frozen=True)
class MessagingConfig:
    """Twilio WhatsApp credentials."""

    account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    whatsapp_from: str = os.getenv("TWILIO_WHATSAPP_FROM", "")


@dataclass(frozen=True)
class GuardrailConfig:
    """Inbound throttling and session lifetime limits."""

    rate_limit_max_messages: int = _safe_int("RATE_LIMIT_MAX_MESSAGES", "100")
    rate_limit_window_seconds: float = _safe_float("RATE_LIMIT_WINDOW_SECONDS", "60")
    session_idle_ttl_seconds: float = _safe_float("SESSION_IDLE_TTL_SECONDS", "0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    school: SchoolConfig = field(default_factory=SchoolConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    guardrails: GuardrailConfig = field(default_factory=GuardrailConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    interaction_log_path: str = os.getenv("INTERACTION_LOG_PATH", "user_interactions.log")
    port: int = _safe_int("PORT", "3000")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for temp_name, temp_value in [
        ("LLM_CLASSIFICATION_TEMPERATURE", config.model.classification_temperature),
        ("LLM_ANSWER_TEMPERATURE", config.model.answer_temperature),
    ]:
        if not 0.0 <= temp_value <= 2.0:
            raise ValueError(f"{temp_name} must be between 0.0 and 2.0, got {temp_value}")

    if config.model.timeout_seconds <= 0:
        raise ValueError(
            f"LLM_TIMEOUT_SECONDS must be > 0, got {config.model.timeout_seconds}"
        )

    scheduling = config.scheduling
    if scheduling.lookahead_days < 1:
        raise ValueError(
            f"SLOT_LOOKAHEAD_DAYS must be >= 1, got {scheduling.lookahead_days}"
        )
    if not 0 <= scheduling.day_start_hour < scheduling.day_end_hour <= 24:
        raise ValueError(
            "SLOT_DAY_START_HOUR must be before SLOT_DAY_END_HOUR within 0-24, "
            f"got {scheduling.day_start_hour}-{scheduling.day_end_hour}"
        )
    if not 1 <= scheduling.slot_minutes <= 60 or 60 % scheduling.slot_minutes:
        raise ValueError(
            f"SLOT_MINUTES must evenly divide an hour, got {scheduling.slot_minutes}"
        )
    if not scheduling.weekdays or any(day not in range(7) for day in scheduling.weekdays):
        raise ValueError(
            f"SLOT_WEEKDAYS must list weekdays 0-6, got {scheduling.weekdays}"
        )
    if scheduling.default_grade < 1:
        raise ValueError(
            f"DEFAULT_GRADE must be >= 1, got {scheduling.default_grade}"
        )

    if config.guardrails.rate_limit_max_messages < 1:
        raise ValueError(
            "RATE_LIMIT_MAX_MESSAGES must be >= 1, "
            f"got {config.guardrails.rate_limit_max_messages}"
        )
    if config.guardrails.rate_limit_window_seconds <= 0:
        raise ValueError(
            "RATE_LIMIT_WINDOW_SECONDS must be > 0, "
            f"got {config.guardrails.rate_limit_window_seconds}"
        )
    if config.guardrails.session_idle_ttl_seconds < 0:
        raise ValueError(
            "SESSION_IDLE_TTL_SECONDS must be >= 0, "
            f"got {config.guardrails.session_idle_ttl_seconds}"
        )

    if not 1 <= config.port <= 65535:
        raise ValueError(f"PORT must be between 1 and 65535, got {config.port}")


def _configure_interaction_log(path: str) -> None:
    """Attach a file handler that records every inbound message line."""
    interactions = logging.getLogger(INTERACTION_LOGGER_NAME)
    if any(isinstance(h, logging.FileHandler) for h in interactions.handlers):
        return
    handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    interactions.addHandler(handler)
    interactions.setLevel(logging.INFO)


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(conversation_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, ConversationIdFilter) for f in handler.filters):
            handler.addFilter(ConversationIdFilter())
    _configure_interaction_log(config.interaction_log_path)
    logger.info("Configuration loaded for '%s'", config.school.name)
    return config


# Singleton instance
settings = load_config()
