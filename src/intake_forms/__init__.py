"""intake_forms — Telegram-authenticated medical intake questionnaires.

Public API:
    QuestionnaireStore — loads per-category YAML schemas into typed models
    InMemoryTokenStore — login sessions and one-time user tokens
    TelegramBotClient  — relays submissions to the operator chat
    MessageRenderer    — Jinja2 rendering of operator messages

Evaluator (pure functions over a schema and an answer mapping):
    is_visible, validate_required, format_answer, format_submission,
    toggle_option, needs_additional

Interfaces:
    TokenStore         — ABC for session/token backends
    DeliveryChannel    — ABC for submission relays
"""

from intake_forms.delivery import TelegramBotClient
from intake_forms.evaluator import (
    format_answer,
    format_submission,
    is_visible,
    needs_additional,
    toggle_option,
    validate_required,
)
from intake_forms.interfaces import DeliveryChannel, TokenStore
from intake_forms.message import MessageRenderer
from intake_forms.models.answer import AnswerSet
from intake_forms.models.identity import TelegramUser
from intake_forms.models.question import Question, Questionnaire, Section
from intake_forms.models.session import Attachment, DeliveryReport, Session
from intake_forms.questionnaire import QuestionnaireStore
from intake_forms.tokens import InMemoryTokenStore

__all__ = [
    # Stores & clients
    "QuestionnaireStore",
    "InMemoryTokenStore",
    "TelegramBotClient",
    "MessageRenderer",
    # Interfaces
    "TokenStore",
    "DeliveryChannel",
    # Evaluator
    "format_answer",
    "format_submission",
    "is_visible",
    "needs_additional",
    "toggle_option",
    "validate_required",
    # Models
    "AnswerSet",
    "Attachment",
    "DeliveryReport",
    "Question",
    "Questionnaire",
    "Section",
    "Session",
    "TelegramUser",
]
