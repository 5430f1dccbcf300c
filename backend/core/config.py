import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CALL_STYLES = ("chat_schema", "responses", "chat_json_object")


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_int(value: Optional[str], default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    call_style: str = "chat_schema"

    port: int = 8080
    upload_dir: str = "uploads"
    export_dir: str = "exports"
    csv_export_enabled: bool = False
    cors_allow_origins: tuple = ("*",)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from the process environment (and a .env file, if any)."""
        load_dotenv(env_file)

        call_style = os.getenv("OPENAI_CALL_STYLE", "chat_schema").strip().lower()
        if call_style not in CALL_STYLES:
            logger.warning("Unknown OPENAI_CALL_STYLE %r, falling back to chat_schema", call_style)
            call_style = "chat_schema"

        origins: List[str] = [
            o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
        ]

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            call_style=call_style,
            port=_as_int(os.getenv("PORT"), 8080),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            export_dir=os.getenv("EXPORT_DIR", "exports"),
            csv_export_enabled=_as_bool(os.getenv("CSV_EXPORT_ENABLED")),
            cors_allow_origins=tuple(origins or ["*"]),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def warn_if_incomplete(self) -> None:
        if not self.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set; /analyze will fail until it is configured")
