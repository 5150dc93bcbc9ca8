"""Intake constants shared across the SDK.

Several values can be overridden via environment variables so that
deployments can adjust token lifetimes without code changes.
"""

import os
from typing import Literal

# Supported label languages; Russian is the fallback for missing translations.
Language = Literal["ru", "en", "de"]
LANGUAGES: tuple[str, ...] = ("ru", "en", "de")
DEFAULT_LANGUAGE: Language = "ru"

# Patient categories, in the order they are offered on the landing page.
CATEGORIES: tuple[str, ...] = ("infant", "child", "woman", "man")

# Token alphabet (62 symbols) and lengths.
TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
SESSION_ID_LENGTH = 24
USER_TOKEN_LENGTH = 32

# Lifetimes in seconds.
# Overridable via SESSION_TTL_SECONDS / USER_TOKEN_TTL_SECONDS env vars.
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(5 * 60)))
USER_TOKEN_TTL_SECONDS = int(os.getenv("USER_TOKEN_TTL_SECONDS", str(24 * 60 * 60)))

# Login payloads (initData, stateless identity tokens) older than this are rejected.
AUTH_MAX_AGE_SECONDS = 24 * 60 * 60

# Checkbox option that is mutually exclusive with every other option.
EXCLUSIVE_OPTION = "no_issues"

# Question ids whose elaboration value is rendered in parentheses.
WEIGHT_GOAL_QID = "weight_goal"
MEDICATIONS_QID = "regular_medications"

REQUIRED_MESSAGES: dict[str, str] = {
    "ru": "Это поле обязательно",
    "en": "This field is required",
    "de": "Dieses Feld ist erforderlich",
}

ANSWERS_HEADERS: dict[str, str] = {
    "ru": "📝 Ответы на вопросы анкеты:",
    "en": "📝 Questionnaire Answers:",
    "de": "📝 Fragebogen-Antworten:",
}
