"""Token-store records and delivery results.

These are the contract between the SDK and API callers.  Times are unix
seconds (floats) so the store can run off an injectable clock.
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from intake_forms.models.identity import TelegramUser


class Session(BaseModel):
    """A pending login attempt, linking the browser tab to the login surface."""

    id: str
    created_at: float
    expires_at: float
    status: Literal["pending", "confirmed"] = "pending"

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class UserDataRecord(BaseModel):
    """A confirmed identity waiting to be redeemed once by the browser."""

    user: TelegramUser
    token: str
    created_at: float
    expires_at: float
    used: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Attachment:
    """One uploaded file to relay to the operator chat."""

    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


class DeliveryReport(BaseModel):
    """Outcome of relaying one submission."""

    message_id: int
    files_total: int = 0
    files_success: int = 0
