"""
Dealflow configuration, read from the environment (and a local .env file).
Credentials are only ever taken from the environment.
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        password = os.getenv("PGPASSWORD", "")
        host = os.getenv("PGHOST", "localhost")
        port = os.getenv("PGPORT", "5432")
        name = os.getenv("PGDATABASE", "dealflow_dev")
        url = f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"
    # psycopg (v3) driver for bare postgresql:// URLs
    if url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Process-wide settings, built on first use."""
    return Settings()


class Settings:
    """Environment-backed settings for the scoring engine and proposal lifecycle."""

    app_name: str = "Dealflow"
    debug: bool = False

    database_url: str
    db_connect_timeout: int = 10  # seconds

    # AI judgment collaborator. One model per role:
    # reasoning=deal scoring, json=progress evaluation, outreach=founder mail
    llm_provider: str = "openai"
    llm_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_model_reasoning: str = "gpt-4o"
    llm_model_json: str = "gpt-4o-mini"
    llm_model_outreach: str = "gpt-4o-mini"
    llm_timeout: float = 60.0
    llm_max_retries: int = 3

    # Extraction confidence (0-100) below this is treated as noise
    intake_confidence_threshold: int = 60
    default_rejection_reason: str = "Not a fit at this time"
    default_snooze_months: int = 1
    inbox_poll_interval_minutes: int = 5

    # Founder mail
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    founder_mail_signature: str = "The Investment Team"

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        self.database_url = _database_url()
        self.db_connect_timeout = _env_int("DB_CONNECT_TIMEOUT", self.db_connect_timeout)

        self.llm_provider = os.getenv("LLM_PROVIDER", self.llm_provider)
        self.llm_api_key = os.getenv("LLM_API_KEY")
        # LLM_MODEL alone pins every role; role variables win when set
        shared_model = os.getenv("LLM_MODEL")
        self.llm_model = shared_model or self.llm_model
        for role in ("reasoning", "json", "outreach"):
            attr = f"llm_model_{role}"
            value = os.getenv(attr.upper()) or shared_model or getattr(self, attr)
            setattr(self, attr, value)
        self.llm_timeout = _env_float("LLM_TIMEOUT", self.llm_timeout)
        self.llm_max_retries = _env_int("LLM_MAX_RETRIES", self.llm_max_retries)

        self.intake_confidence_threshold = _env_int(
            "INTAKE_CONFIDENCE_THRESHOLD", self.intake_confidence_threshold
        )
        self.default_rejection_reason = os.getenv(
            "DEFAULT_REJECTION_REASON", self.default_rejection_reason
        )
        self.default_snooze_months = _env_int("DEFAULT_SNOOZE_MONTHS", self.default_snooze_months)
        self.inbox_poll_interval_minutes = _env_int(
            "INBOX_POLL_INTERVAL_MINUTES", self.inbox_poll_interval_minutes
        )

        self.smtp_host = os.getenv("SMTP_HOST", self.smtp_host)
        self.smtp_port = _env_int("SMTP_PORT", self.smtp_port)
        self.smtp_user = os.getenv("SMTP_USER", self.smtp_user)
        self.smtp_password = os.getenv("SMTP_PASSWORD", self.smtp_password)
        self.smtp_from = os.getenv("SMTP_FROM", self.smtp_from)
        self.founder_mail_signature = os.getenv(
            "FOUNDER_MAIL_SIGNATURE", self.founder_mail_signature
        )
