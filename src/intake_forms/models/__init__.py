"""Public model re-exports for intake_forms.

Consumers should import from ``intake_forms.models`` rather than
reaching into sub-modules directly.
"""

# --- Answers ---
from intake_forms.models.answer import (
    Answer,
    AnswerSet,
    MultiAnswer,
    RawAnswer,
    SingleAnswer,
    coerce_answer,
)

# --- Identity ---
from intake_forms.models.identity import TelegramUser

# --- Questions ---
from intake_forms.models.question import (
    LocalizedText,
    Option,
    Question,
    Questionnaire,
    Section,
    VisibilityRule,
)

# --- Token store / delivery ---
from intake_forms.models.session import (
    Attachment,
    DeliveryReport,
    Session,
    UserDataRecord,
)

__all__ = [
    # Answers
    "Answer",
    "AnswerSet",
    "MultiAnswer",
    "RawAnswer",
    "SingleAnswer",
    "coerce_answer",
    # Identity
    "TelegramUser",
    # Questions
    "LocalizedText",
    "Option",
    "Question",
    "Questionnaire",
    "Section",
    "VisibilityRule",
    # Token store / delivery
    "Attachment",
    "DeliveryReport",
    "Session",
    "UserDataRecord",
]
