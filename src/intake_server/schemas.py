"""Request and response bodies for the HTTP API.

The browser client speaks camelCase JSON; models here accept either the
camelCase alias or the Python field name and always serialize by alias.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from intake_forms.constants import DEFAULT_LANGUAGE, Language


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------
# Auth
# ------------------------------------------------------------------

class SessionResponse(CamelModel):
    """Body of POST /auth/session."""
    session_id: str
    expires_at: float
    login_url: Optional[str] = None


class ConfirmRequest(CamelModel):
    """Body for POST /auth/confirm.

    ``user`` is kept as a raw dict so that a missing ``id`` or
    ``first_name`` maps to the SDK's ``InvalidIdentityError`` and its
    "Invalid user data" message.
    """
    session_id: str
    user: dict[str, Any]
    init_data: Optional[str] = None


class ConfirmResponse(CamelModel):
    auth_token: str
    return_url: Optional[str] = None


# ------------------------------------------------------------------
# Submission
# ------------------------------------------------------------------

class SubmitRequest(CamelModel):
    """JSON body for POST /submit.

    Either ``message`` (client-composed text) or ``answers`` (formatted
    server-side against the ``type`` questionnaire) must be present.
    """
    message: Optional[str] = None
    user_id: Optional[int | str] = None
    username: Optional[str] = None
    type: Optional[str] = None
    user: Optional[dict[str, Any]] = None
    answers: Optional[dict[str, Any]] = None
    additional: dict[str, str] = Field(default_factory=dict)
    lang: Language = DEFAULT_LANGUAGE


class SubmitResponse(CamelModel):
    message_id: int
    files_total: int
    files_success: int


# ------------------------------------------------------------------
# Questionnaires
# ------------------------------------------------------------------

class QuestionnaireSummary(CamelModel):
    category: str
    title: str
    sections: int
    questions: int


class ValidateRequest(CamelModel):
    """Body for POST /questionnaires/{category}/validate."""
    answers: dict[str, Any] = Field(default_factory=dict)
    section_id: Optional[str] = None
    lang: Language = DEFAULT_LANGUAGE


class ValidateResponse(CamelModel):
    valid: bool
    errors: dict[str, str]
    visible: list[str]


class PreviewResponse(CamelModel):
    text: str
