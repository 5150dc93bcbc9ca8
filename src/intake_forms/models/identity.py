"""Telegram identity payload carried from the login surface to the browser."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class TelegramUser(BaseModel):
    """The authenticated Telegram user as reported by the Web App.

    Only ``id`` and ``first_name`` are required; unknown keys sent by newer
    Telegram clients are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    photo_url: Optional[str] = None
    is_premium: Optional[bool] = None
    language_code: Optional[str] = None
    # Unix seconds; stamped when a stateless identity token is issued
    auth_date: Optional[int] = None

    @field_validator("first_name")
    @classmethod
    def _first_name_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("first_name must not be empty")
        return value

    @field_validator("id")
    @classmethod
    def _positive_id(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("id must be positive")
        return value

    @property
    def display_name(self) -> str:
        """First and last name joined, as shown to operators."""
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def handle(self) -> Optional[str]:
        """``@username`` or None when the user has no public username."""
        return f"@{self.username}" if self.username else None
