"""FastAPI dependency injection — provides settings, stores, renderer and delivery.

Long-lived objects (questionnaire store, token store, renderer) are built
once in the lifespan handler and stashed on ``app.state``.  The delivery
client factory is built per request from settings; a missing credential
surfaces as ``ConfigurationError`` (500) on the submit endpoint only,
and only after the submission body passes its checks.
"""

from typing import Callable

from fastapi import Request

from intake_forms.delivery import TelegramBotClient
from intake_forms.interfaces import DeliveryChannel
from intake_forms.message import MessageRenderer
from intake_forms.questionnaire import QuestionnaireStore
from intake_forms.tokens import InMemoryTokenStore

from intake_server.config import ServerSettings


# ------------------------------------------------------------------
# Singletons — stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_settings(request: Request) -> ServerSettings:
    """Return the settings the app was created with."""
    return request.app.state.settings


def get_store(request: Request) -> QuestionnaireStore:
    """Return the QuestionnaireStore singleton from ``app.state``."""
    return request.app.state.store


def get_token_store(request: Request) -> InMemoryTokenStore:
    """Return the process-wide token store from ``app.state``."""
    return request.app.state.tokens


def get_renderer(request: Request) -> MessageRenderer:
    """Return the MessageRenderer singleton from ``app.state``."""
    return request.app.state.renderer


# ------------------------------------------------------------------
# Delivery — built on demand from settings
# ------------------------------------------------------------------

def get_delivery(request: Request) -> Callable[[], DeliveryChannel]:
    """Return a factory for the Telegram client.

    The route calls it only once the submission body has been accepted,
    so a malformed body is still a 400 on a server without credentials.
    The factory raises ``ConfigurationError`` (mapped to 500) when the
    bot token or chat id is not configured.
    """
    settings: ServerSettings = request.app.state.settings

    def build() -> DeliveryChannel:
        return TelegramBotClient(
            settings.bot_token,
            settings.chat_id,
            api_base=settings.api_base,
            timeout=settings.delivery_timeout,
        )

    return build
