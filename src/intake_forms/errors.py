"""Exceptions raised by the intake SDK.

Client-input failures subclass ``ValueError`` so callers that only care
about "bad input" can catch that.  The server maps each class to an HTTP
status in ``intake_server.errors``.
"""


class IntakeError(Exception):
    """Base class for every SDK error."""


class SessionNotFoundError(IntakeError, ValueError):
    """The login session does not exist or has expired."""


class InvalidTokenError(IntakeError, ValueError):
    """An auth token is unknown, malformed, used, or otherwise unusable."""


class ExpiredTokenError(InvalidTokenError):
    """An identity token's ``auth_date`` is missing or too old."""


class InvalidSignatureError(IntakeError, ValueError):
    """The login payload failed the Telegram HMAC check."""


class InvalidIdentityError(IntakeError, ValueError):
    """The identity payload lacks required fields."""


class ValidationFailedError(IntakeError, ValueError):
    """Required questions are unanswered.

    ``errors`` maps question id to a user-facing message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(f"{len(errors)} required question(s) unanswered")
        self.errors = errors


class ConfigurationError(IntakeError):
    """A required credential (bot token, chat id) is not configured."""


class DeliveryError(IntakeError):
    """The bot API refused or failed to accept the text message.

    ``description`` carries the upstream explanation for operator logs.
    """

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description
