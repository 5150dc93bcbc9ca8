"""Abstract interfaces for the pluggable parts of the intake flow.

The SDK ships one concrete implementation of each:

    TokenStore       → ``intake_forms.tokens.InMemoryTokenStore``
    DeliveryChannel  → ``intake_forms.delivery.TelegramBotClient``

A persistent or shared backend (e.g. a key-value store with native TTL)
only has to implement ``TokenStore``; the HTTP layer depends on nothing
else.

Typical flow::

    store: TokenStore = InMemoryTokenStore()
    session = store.create_session()
    # ... user confirms in the Telegram Web App ...
    token = store.mint_user_token(user, session.id)
    # ... browser comes back with ?auth_token=... ...
    user = store.redeem_user_token(token)   # None on every later call
"""

from abc import ABC, abstractmethod

from intake_forms.models.identity import TelegramUser
from intake_forms.models.session import Attachment, DeliveryReport, Session


class TokenStore(ABC):
    """Short-lived, single-purpose login handles.

    Not-found, expired and already-used are indistinguishable
    to callers: every negative outcome is ``None`` (or
    ``SessionNotFoundError`` for minting).
    """

    @abstractmethod
    def create_session(self) -> Session:
        """Create a pending login session with a fresh random id."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Session | None:
        """Return the session if it exists and has not expired."""
        ...

    @abstractmethod
    def mint_user_token(self, user: TelegramUser, session_id: str) -> str:
        """Bind *user* to a new one-time token and consume the session.

        Raises:
            SessionNotFoundError: if the session is not live.
        """
        ...

    @abstractmethod
    def redeem_user_token(self, token: str) -> TelegramUser | None:
        """Return the bound identity exactly once; ``None`` afterwards."""
        ...


class DeliveryChannel(ABC):
    """Relays a finished submission to the operators."""

    @abstractmethod
    async def send_message(self, text: str) -> int:
        """Send the text message and return its id.

        Raises:
            DeliveryError: if the message was not accepted.
        """
        ...

    @abstractmethod
    async def send_document(self, attachment: Attachment, caption: str) -> bool:
        """Send one file; return False instead of raising on failure."""
        ...

    @abstractmethod
    async def deliver(
        self,
        text: str,
        attachments: list[Attachment],
        caption: str,
    ) -> DeliveryReport:
        """Send the message, then every attachment; report success counts."""
        ...
