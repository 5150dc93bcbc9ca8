"""Identity transport and verification for the Telegram login flow.

Two concerns live here:

  - **Stateless identity tokens** — the user payload as base64url-encoded
    JSON, stamped with ``auth_date`` and valid for 24 hours.  This bypasses
    the token store entirely and is used when the server runs with
    ``AUTH_TOKEN_MODE=stateless``.
  - **initData verification** — the Telegram Web App signature check::

        secret   = HMAC_SHA256(key="WebAppData", msg=bot_token)
        expected = hex(HMAC_SHA256(key=secret, msg=data_check_string))

    where ``data_check_string`` is every ``key=value`` pair except ``hash``,
    sorted by key and joined with ``\\n``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Any
from urllib.parse import parse_qsl

from pydantic import ValidationError

from intake_forms.constants import AUTH_MAX_AGE_SECONDS
from intake_forms.errors import (
    ExpiredTokenError,
    InvalidIdentityError,
    InvalidSignatureError,
    InvalidTokenError,
)
from intake_forms.models.identity import TelegramUser

logger = logging.getLogger(__name__)

_WEBAPP_KEY = b"WebAppData"


# ---------------------------------------------------------------------------
# Identity payload parsing
# ---------------------------------------------------------------------------

def parse_user(raw: Any) -> TelegramUser:
    """Validate a raw identity dict into a ``TelegramUser``.

    Raises:
        InvalidIdentityError: if ``id`` or ``first_name`` is missing or invalid.
    """
    if isinstance(raw, TelegramUser):
        return raw
    if not isinstance(raw, dict):
        raise InvalidIdentityError("Identity payload must be an object")
    try:
        return TelegramUser.model_validate(raw)
    except ValidationError as exc:
        raise InvalidIdentityError(f"Invalid user data: {exc.error_count()} error(s)") from exc


# ---------------------------------------------------------------------------
# Stateless base64url identity tokens
# ---------------------------------------------------------------------------

def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def encode_identity_token(user: TelegramUser, now: float | None = None) -> str:
    """Encode *user* as a URL-safe token stamped with the current ``auth_date``."""
    issued_at = int(now if now is not None else time.time())
    payload = user.model_dump(exclude_none=True)
    payload["auth_date"] = issued_at
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return _b64url_encode(raw.encode("utf-8"))


def decode_identity_token(
    token: str,
    now: float | None = None,
    max_age: int = AUTH_MAX_AGE_SECONDS,
) -> TelegramUser:
    """Decode a stateless identity token.

    Raises:
        InvalidTokenError: malformed base64/JSON or missing identity fields.
        ExpiredTokenError: ``auth_date`` missing or older than *max_age*.
    """
    if not token:
        raise InvalidTokenError("Missing auth token")
    try:
        payload = json.loads(_b64url_decode(token).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise InvalidTokenError("Invalid token format") from exc
    if not isinstance(payload, dict):
        raise InvalidTokenError("Invalid token format")

    current = now if now is not None else time.time()
    auth_date = payload.get("auth_date")
    if not isinstance(auth_date, (int, float)) or current - auth_date > max_age:
        raise ExpiredTokenError("Token expired")

    try:
        return parse_user(payload)
    except InvalidIdentityError as exc:
        raise InvalidTokenError("Invalid user data") from exc


# ---------------------------------------------------------------------------
# Telegram Web App initData verification
# ---------------------------------------------------------------------------

def data_check_string(fields: dict[str, str]) -> str:
    """Sorted ``key=value`` lines of every field except ``hash``."""
    return "\n".join(
        f"{key}={fields[key]}" for key in sorted(fields) if key != "hash"
    )


def sign_init_data(fields: dict[str, str], bot_token: str) -> str:
    """Hex signature Telegram would attach to *fields* for this bot."""
    secret = hmac.new(_WEBAPP_KEY, bot_token.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(
        secret, data_check_string(fields).encode("utf-8"), hashlib.sha256,
    ).hexdigest()


def verify_init_data(
    init_data: str,
    bot_token: str,
    now: float | None = None,
    max_age: int = AUTH_MAX_AGE_SECONDS,
) -> dict[str, Any]:
    """Check the signature and freshness of a Web App ``initData`` string.

    Returns the parsed fields, with ``user`` JSON-decoded when present.

    Raises:
        InvalidSignatureError: missing/mismatched hash, missing or stale
            ``auth_date``, or an unparseable ``user`` field.
    """
    if not init_data or not bot_token:
        raise InvalidSignatureError("initData and bot token are required")

    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    received = fields.get("hash")
    if not received:
        raise InvalidSignatureError("initData has no hash")

    expected = sign_init_data(fields, bot_token)
    # Constant-time comparison
    if not hmac.compare_digest(expected, received):
        logger.warning("initData signature mismatch")
        raise InvalidSignatureError("initData signature mismatch")

    try:
        auth_date = int(fields["auth_date"])
    except (KeyError, ValueError) as exc:
        raise InvalidSignatureError("initData has no valid auth_date") from exc
    current = now if now is not None else time.time()
    if current - auth_date > max_age:
        raise InvalidSignatureError("initData is too old")

    parsed: dict[str, Any] = {k: v for k, v in fields.items() if k != "hash"}
    if "user" in parsed:
        try:
            parsed["user"] = json.loads(parsed["user"])
        except ValueError as exc:
            raise InvalidSignatureError("initData user field is not JSON") from exc
    return parsed
