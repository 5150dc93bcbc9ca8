"""Login handshake endpoints — session, confirm, redeem.

Flow::

    browser      POST /auth/session   → {sessionId, loginUrl}
    login page   POST /auth/confirm   → {authToken, returnUrl}
    browser      GET  /auth/redeem    → {user}          (exactly once)

In ``store`` mode the auth token is a one-time random handle into the
in-memory token store.  In ``stateless`` mode it is the identity itself,
base64url-encoded and stamped with ``auth_date``; redeem then only checks
its age and required fields.
"""

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Query

from intake_forms.errors import (
    ConfigurationError,
    InvalidSignatureError,
    InvalidTokenError,
    SessionNotFoundError,
)
from intake_forms.identity import (
    decode_identity_token,
    encode_identity_token,
    parse_user,
    verify_init_data,
)
from intake_forms.models.identity import TelegramUser
from intake_forms.tokens import InMemoryTokenStore

from intake_server.config import ServerSettings
from intake_server.dependencies import get_settings, get_token_store
from intake_server.schemas import ConfirmRequest, ConfirmResponse, SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _login_url(settings: ServerSettings, session_id: str) -> str | None:
    """Deep link that opens the bot's Web App with the session id as start param."""
    if not settings.bot_name:
        return None
    return f"https://t.me/{settings.bot_name}/app?startapp={session_id}"


def _return_url(settings: ServerSettings, token: str) -> str | None:
    """Site URL with ``auth_token`` appended to any query it already has."""
    if not settings.site_url:
        return None
    parts = urlsplit(settings.site_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("auth_token", token))
    return urlunsplit(parts._replace(path=parts.path.rstrip("/"), query=urlencode(query)))


def _check_signature(
    settings: ServerSettings,
    user: TelegramUser,
    init_data: str | None,
) -> None:
    """Verify ``initData`` against the bot token and bind it to *user*."""
    if not settings.bot_token:
        raise ConfigurationError("Signature check requested but TELEGRAM_BOT_TOKEN is unset")
    fields = verify_init_data(init_data or "", settings.bot_token)
    signed_user = fields.get("user")
    if not isinstance(signed_user, dict):
        raise InvalidSignatureError("initData carries no user object")
    if signed_user.get("id") != user.id:
        raise InvalidSignatureError("initData user does not match the confirmed identity")


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/session")
def create_session(
    settings: ServerSettings = Depends(get_settings),
    tokens: InMemoryTokenStore = Depends(get_token_store),
) -> SessionResponse:
    """Start a login attempt; the session lives for five minutes."""
    session = tokens.create_session()
    return SessionResponse(
        session_id=session.id,
        expires_at=session.expires_at,
        login_url=_login_url(settings, session.id),
    )


@router.post("/confirm")
def confirm(
    body: ConfirmRequest,
    settings: ServerSettings = Depends(get_settings),
    tokens: InMemoryTokenStore = Depends(get_token_store),
) -> ConfirmResponse:
    """Attach a confirmed identity to a live session and mint the auth token.

    Raises 400 for invalid user data, a failed ``initData`` check, or a
    missing/expired session.  The session is consumed either way once a
    token is issued.
    """
    user = parse_user(body.user)
    if body.init_data or settings.require_signature:
        _check_signature(settings, user, body.init_data)

    if settings.token_mode == "stateless":
        if not tokens.consume_session(body.session_id):
            raise SessionNotFoundError("Session not found or expired")
        token = encode_identity_token(user)
    else:
        if not tokens.confirm_session(body.session_id):
            raise SessionNotFoundError("Session not found or expired")
        token = tokens.mint_user_token(user, body.session_id)

    logger.info("Login confirmed for telegram id=%d (%s mode)", user.id, settings.token_mode)
    return ConfirmResponse(auth_token=token, return_url=_return_url(settings, token))


@router.get("/redeem")
def redeem(
    token: str = Query("", description="Auth token from the return URL"),
    settings: ServerSettings = Depends(get_settings),
    tokens: InMemoryTokenStore = Depends(get_token_store),
) -> dict:
    """Exchange the auth token for the identity, exactly once.

    Unknown, expired and already-used tokens all produce the same 400.
    """
    if not token:
        raise InvalidTokenError("Missing auth token")

    user = tokens.redeem_user_token(token)
    if user is None and settings.token_mode == "stateless":
        user = decode_identity_token(token)
    if user is None:
        raise InvalidTokenError("Unknown, expired or already used token")

    return {"user": user.model_dump(exclude_none=True)}
