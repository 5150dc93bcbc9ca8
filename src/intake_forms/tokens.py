"""InMemoryTokenStore — process-local login sessions and one-time user tokens.

Two maps, both guarded by one lock:

  - sessions:    session id → Session        (TTL 5 minutes)
  - user tokens: token      → UserDataRecord (TTL 24 hours, single use)

Expired entries are treated as absent the moment they expire; the sweep
that physically removes them runs opportunistically on every mutating call.
Sync FastAPI handlers run on a thread pool, so check-and-mark in
``redeem_user_token`` happens under the lock.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Callable

from intake_forms.constants import (
    SESSION_ID_LENGTH,
    SESSION_TTL_SECONDS,
    TOKEN_ALPHABET,
    USER_TOKEN_LENGTH,
    USER_TOKEN_TTL_SECONDS,
)
from intake_forms.errors import SessionNotFoundError
from intake_forms.interfaces import TokenStore
from intake_forms.models.identity import TelegramUser
from intake_forms.models.session import Session, UserDataRecord

logger = logging.getLogger(__name__)


def generate_token(length: int = USER_TOKEN_LENGTH) -> str:
    """Random alphanumeric string from a cryptographically secure source."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


class InMemoryTokenStore(TokenStore):
    """Unbounded in-memory ``TokenStore`` with lazy TTL eviction.

    Args:
        session_ttl: seconds a login session stays valid.
        user_token_ttl: seconds a minted user token stays redeemable.
        clock: returns the current unix time; injectable for tests.
    """

    def __init__(
        self,
        session_ttl: float = SESSION_TTL_SECONDS,
        user_token_ttl: float = USER_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session_ttl = session_ttl
        self._user_token_ttl = user_token_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._user_data: dict[str, UserDataRecord] = {}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self) -> Session:
        now = self._clock()
        with self._lock:
            session_id = generate_token(SESSION_ID_LENGTH)
            # Ids stay unique among live sessions
            while session_id in self._sessions:
                session_id = generate_token(SESSION_ID_LENGTH)
            session = Session(
                id=session_id,
                created_at=now,
                expires_at=now + self._session_ttl,
            )
            self._sessions[session_id] = session
            self._sweep(now)
        logger.debug("Session created, expires_at=%.0f", session.expires_at)
        return session.model_copy()

    def get_session(self, session_id: str) -> Session | None:
        now = self._clock()
        with self._lock:
            session = self._live_session(session_id, now)
            return session.model_copy() if session is not None else None

    def confirm_session(self, session_id: str) -> bool:
        """Mark a live session as confirmed; False if it is gone."""
        now = self._clock()
        with self._lock:
            session = self._live_session(session_id, now)
            if session is None:
                return False
            session.status = "confirmed"
            return True

    def consume_session(self, session_id: str) -> bool:
        """Delete a live session without minting a token; False if it is gone.

        Used in stateless mode, where the identity travels in the token
        itself but a session may still be used only once.
        """
        now = self._clock()
        with self._lock:
            if self._live_session(session_id, now) is None:
                return False
            del self._sessions[session_id]
            self._sweep(now)
            return True

    # ------------------------------------------------------------------
    # User tokens
    # ------------------------------------------------------------------

    def mint_user_token(self, user: TelegramUser, session_id: str) -> str:
        now = self._clock()
        with self._lock:
            if self._live_session(session_id, now) is None:
                raise SessionNotFoundError("Session not found or expired")

            token = generate_token(USER_TOKEN_LENGTH)
            while token in self._user_data:
                token = generate_token(USER_TOKEN_LENGTH)
            self._user_data[token] = UserDataRecord(
                user=user,
                token=token,
                created_at=now,
                expires_at=now + self._user_token_ttl,
            )
            # One session yields at most one token
            del self._sessions[session_id]
            self._sweep(now)
        logger.info("User token minted for telegram id=%d", user.id)
        return token

    def redeem_user_token(self, token: str) -> TelegramUser | None:
        now = self._clock()
        with self._lock:
            record = self._user_data.get(token)
            if record is None:
                return None
            if record.used or record.is_expired(now):
                del self._user_data[token]
                return None
            record.used = True
            self._sweep(now)
            return record.user.model_copy()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Counts of live sessions and redeemable tokens."""
        now = self._clock()
        with self._lock:
            self._sweep(now)
            return {
                "sessions": len(self._sessions),
                "user_tokens": len(self._user_data),
            }

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _live_session(self, session_id: str, now: float) -> Session | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.is_expired(now):
            del self._sessions[session_id]
            return None
        return session

    def _sweep(self, now: float) -> None:
        """Drop expired sessions and expired or used user records."""
        stale_sessions = [k for k, s in self._sessions.items() if s.is_expired(now)]
        for key in stale_sessions:
            del self._sessions[key]

        stale_tokens = [
            k for k, r in self._user_data.items() if r.used or r.is_expired(now)
        ]
        for key in stale_tokens:
            del self._user_data[key]

        if stale_sessions or stale_tokens:
            logger.debug(
                "Swept %d session(s), %d user token(s)",
                len(stale_sessions),
                len(stale_tokens),
            )
