"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the Telegram credentials and the public site origin are supplied via env
vars (or a ``.env`` file loaded by the process manager).
"""

import os
from dataclasses import dataclass, field
from typing import Literal

from intake_forms.constants import SESSION_TTL_SECONDS, USER_TOKEN_TTL_SECONDS

TokenMode = Literal["store", "stateless"]

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS: comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    # Questionnaire directory (None → QuestionnaireStore default, v1/ from repo root)
    questionnaire_dir: str | None = None

    # Telegram Bot API; submissions fail with 500 when token or chat id is unset
    bot_token: str | None = None
    chat_id: str | None = None
    api_base: str = "https://api.telegram.org"
    bot_name: str | None = None
    delivery_timeout: float = 20.0

    # Public origin of the form; the confirm endpoint appends ?auth_token=...
    site_url: str | None = None

    # "store": one-time tokens in memory.  "stateless": base64url identity
    # tokens that bypass the store.
    token_mode: TokenMode = "store"

    # When on, /auth/confirm rejects requests without a valid initData
    require_signature: bool = False

    session_ttl: int = SESSION_TTL_SECONDS
    user_token_ttl: int = USER_TOKEN_TTL_SECONDS


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*``, ``TELEGRAM_*`` and ``AUTH_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    token_mode = os.getenv("AUTH_TOKEN_MODE", "store").strip().lower()
    if token_mode not in ("store", "stateless"):
        raise ValueError(f"AUTH_TOKEN_MODE must be 'store' or 'stateless', got {token_mode!r}")

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        questionnaire_dir=os.getenv("SERVER_QUESTIONNAIRE_DIR") or None,
        bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
        chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
        api_base=os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org"),
        bot_name=os.getenv("TELEGRAM_BOT_NAME") or None,
        delivery_timeout=float(os.getenv("DELIVERY_TIMEOUT_SECONDS", "20")),
        site_url=os.getenv("SITE_URL") or None,
        token_mode=token_mode,
        require_signature=_flag("AUTH_REQUIRE_SIGNATURE"),
        session_ttl=int(os.getenv("SESSION_TTL_SECONDS", str(SESSION_TTL_SECONDS))),
        user_token_ttl=int(os.getenv("USER_TOKEN_TTL_SECONDS", str(USER_TOKEN_TTL_SECONDS))),
    )
