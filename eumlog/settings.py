# eumlog/settings.py

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger("eumlog_backend")

# --- Configuration ---
LLM_MODEL           = os.getenv("LLM_MODEL", "gemini-2.5-flash")
VERTEX_PROJECT      = os.getenv("GOOGLE_CLOUD_PROJECT", "your-project-id")
VERTEX_REGION       = os.getenv("GOOGLE_CLOUD_REGION", "us-central1")
LLM_TIMEOUT         = float(os.getenv("LLM_TIMEOUT", "60"))
LLM_RETRIES         = int(os.getenv("LLM_RETRIES", "3"))
LLM_BACKOFF_SECONDS = float(os.getenv("LLM_BACKOFF_SECONDS", "2.0"))
LLM_TEMPERATURE     = float(os.getenv("LLM_TEMPERATURE", "0.2"))

APPS_SCRIPT_URL     = os.getenv("APPS_SCRIPT_URL", "")
CONSULTATION_DB_URL = os.getenv("CONSULTATION_DB_URL", "sqlite:///consultations.db")

HISTORY_TTL_SECONDS = int(os.getenv("HISTORY_TTL_SECONDS", str(24 * 3600)))
HISTORY_MAX_TOKENS  = int(os.getenv("HISTORY_MAX_TOKENS", "16000"))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))

PAYMENT_ACCOUNT_TEXT = os.getenv("PAYMENT_ACCOUNT_TEXT", "")


@dataclass(frozen=True)
class SessionConfig:
    """
    Everything a consultation session needs from the outside world.

    Built once by the host process and handed to Backend / ConsultationSession,
    so the engine itself never reads environment variables.
    """

    llm_model: str = LLM_MODEL
    vertex_project: str = VERTEX_PROJECT
    vertex_region: str = VERTEX_REGION
    llm_timeout: float = LLM_TIMEOUT
    llm_retries: int = LLM_RETRIES
    llm_backoff_seconds: float = LLM_BACKOFF_SECONDS
    llm_temperature: float = LLM_TEMPERATURE
    apps_script_url: str = APPS_SCRIPT_URL
    consultation_db_url: str = CONSULTATION_DB_URL
    history_ttl_seconds: int = HISTORY_TTL_SECONDS
    history_max_tokens: int = HISTORY_MAX_TOKENS
    sweep_interval_seconds: int = SWEEP_INTERVAL_SECONDS
    payment_account_text: str = PAYMENT_ACCOUNT_TEXT

    @classmethod
    def from_env(cls) -> "SessionConfig":
        return cls(
            llm_model=os.getenv("LLM_MODEL", LLM_MODEL),
            vertex_project=os.getenv("GOOGLE_CLOUD_PROJECT", VERTEX_PROJECT),
            vertex_region=os.getenv("GOOGLE_CLOUD_REGION", VERTEX_REGION),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", str(LLM_TIMEOUT))),
            llm_retries=int(os.getenv("LLM_RETRIES", str(LLM_RETRIES))),
            llm_backoff_seconds=float(os.getenv("LLM_BACKOFF_SECONDS", str(LLM_BACKOFF_SECONDS))),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", str(LLM_TEMPERATURE))),
            apps_script_url=os.getenv("APPS_SCRIPT_URL", APPS_SCRIPT_URL),
            consultation_db_url=os.getenv("CONSULTATION_DB_URL", CONSULTATION_DB_URL),
            history_ttl_seconds=int(os.getenv("HISTORY_TTL_SECONDS", str(HISTORY_TTL_SECONDS))),
            history_max_tokens=int(os.getenv("HISTORY_MAX_TOKENS", str(HISTORY_MAX_TOKENS))),
            sweep_interval_seconds=int(os.getenv("SWEEP_INTERVAL_SECONDS", str(SWEEP_INTERVAL_SECONDS))),
            payment_account_text=os.getenv("PAYMENT_ACCOUNT_TEXT", PAYMENT_ACCOUNT_TEXT),
        )
