"""Application configuration for the household task tracker."""
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pytz
from dotenv import load_dotenv

# Load environment variables but prioritize local development
load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./family_tasks.db"
DEFAULT_TIME_ZONE = "Asia/Jerusalem"
WEBHOOK_PATH = "/api/notifications/webhook"


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _as_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _as_csv_tuple(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    items = [item.strip() for item in value.split(",")]
    return tuple(item for item in items if item)


def _normalize_mode(value: Optional[str], *, default: str, allowed: set) -> str:
    if value is None:
        return default
    normalized = value.strip().lower()
    return normalized if normalized in allowed else default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built once at startup."""

    database_url: str = DEFAULT_DATABASE_URL
    environment: str = "development"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    time_zone: str = DEFAULT_TIME_ZONE
    public_base_url: str = "http://localhost:8000"

    # Messaging gateway
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_whatsapp_number: str = ""
    gateway_timeout_seconds: int = 15
    whatsapp_fallback_error_codes: Tuple[str, ...] = ("63007",)

    # Reminder scheduler
    scheduler_enabled: bool = True
    reminder_tick_seconds: int = 60
    reminder_window_seconds: int = 120
    reminder_stale_seconds: int = 300

    # Recurring series
    recurrence_horizon_months: int = 3

    webhook_signature_mode: str = "off"

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.twilio_whatsapp_number.strip())

    @property
    def status_callback_url(self) -> str:
        return self.public_base_url.rstrip("/") + WEBHOOK_PATH


def get_settings() -> Settings:
    """Build settings from the process environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        environment=os.getenv("ENVIRONMENT", "development"),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        time_zone=os.getenv("APP_TIME_ZONE", DEFAULT_TIME_ZONE),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"),
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID", ""),
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN", ""),
        twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER", ""),
        twilio_whatsapp_number=os.getenv("TWILIO_WHATSAPP_NUMBER", ""),
        gateway_timeout_seconds=_as_int(os.getenv("GATEWAY_TIMEOUT_SECONDS"), 15),
        whatsapp_fallback_error_codes=_as_csv_tuple(
            os.getenv("WHATSAPP_FALLBACK_ERROR_CODES"), ("63007",)
        ),
        scheduler_enabled=_as_bool(os.getenv("REMINDER_SCHEDULER_ENABLED"), True),
        reminder_tick_seconds=_as_int(os.getenv("REMINDER_TICK_SECONDS"), 60),
        reminder_window_seconds=_as_int(os.getenv("REMINDER_WINDOW_SECONDS"), 120),
        reminder_stale_seconds=_as_int(os.getenv("REMINDER_STALE_SECONDS"), 300),
        recurrence_horizon_months=_as_int(os.getenv("RECURRENCE_HORIZON_MONTHS"), 3),
        webhook_signature_mode=_normalize_mode(
            os.getenv("WEBHOOK_SIGNATURE_MODE"),
            default="off",
            allowed={"off", "enforce"},
        ),
    )


def gateway_config_issues(settings: Settings) -> List[str]:
    """
    List everything that prevents the messaging gateway from starting.

    Args:
        settings: Settings to check

    Returns:
        Human-readable issues; empty when the configuration is usable
    """
    issues: List[str] = []
    if not settings.twilio_account_sid.startswith("AC"):
        issues.append("TWILIO_ACCOUNT_SID must start with AC")
    if not settings.twilio_auth_token.strip():
        issues.append("TWILIO_AUTH_TOKEN is required")
    if not settings.twilio_phone_number.startswith("+"):
        issues.append("TWILIO_PHONE_NUMBER must start with +")
    if settings.whatsapp_configured and not settings.twilio_whatsapp_number.startswith("+"):
        issues.append("TWILIO_WHATSAPP_NUMBER must start with +")
    if settings.time_zone not in pytz.all_timezones_set:
        issues.append(f"APP_TIME_ZONE is not a known time zone: {settings.time_zone}")
    if settings.reminder_window_seconds >= settings.reminder_stale_seconds:
        issues.append("REMINDER_WINDOW_SECONDS must be smaller than REMINDER_STALE_SECONDS")
    if settings.gateway_timeout_seconds <= 0:
        issues.append("GATEWAY_TIMEOUT_SECONDS must be positive")
    return issues
