"""Schema evaluator — visibility, validation and answer formatting.

Every function here is pure: it reads a static questionnaire schema and the
caller's current answers and never mutates either.  The same functions back
the server-side ``/validate`` and ``/preview`` endpoints and the submission
formatter, so the browser and the operator message always agree on what was
visible.

Answers are plain ``{qid: str | list[str]}`` mappings as posted by the form;
they are coerced to the ``Answer`` union on read.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from intake_forms.constants import (
    ANSWERS_HEADERS,
    DEFAULT_LANGUAGE,
    EXCLUSIVE_OPTION,
    MEDICATIONS_QID,
    REQUIRED_MESSAGES,
    WEIGHT_GOAL_QID,
    Language,
)
from intake_forms.models.answer import MultiAnswer, SingleAnswer, coerce_answer
from intake_forms.models.question import Question, Section, VisibilityRule

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Visibility
# ------------------------------------------------------------------

def _rule_matches(rule: VisibilityRule, current: frozenset[str]) -> bool:
    """Apply a rule's operator to the referenced answer's value set."""
    targets = rule.targets
    op = rule.operator
    if op == "equals":
        return not current.isdisjoint(targets)
    if op == "notEquals":
        return current.isdisjoint(targets)
    if op == "includes":
        return targets <= current
    if op == "notIncludes":
        # Shipped schemas rely on this matching notEquals, not "not a superset"
        return current.isdisjoint(targets)
    logger.warning("Unknown visibility operator: %s", op)
    return True


def is_visible(
    question: Question,
    answers: Mapping[str, Any],
    questions: Mapping[str, Question] | None = None,
) -> bool:
    """Decide whether *question* is shown given the current *answers*.

    A question without ``show_if`` is always visible.  If the referenced
    question has no answer yet, the dependent question is hidden.

    When *questions* (qid → Question) is given, the dependency chain is
    followed: a question whose dependency is itself hidden is hidden too.
    A cycle in the chain hides every question on it.
    """
    seen: set[str] = set()
    current_q: Question | None = question
    while current_q is not None and current_q.show_if is not None:
        if current_q.id in seen:
            logger.warning("Visibility cycle through question %s", current_q.id)
            return False
        seen.add(current_q.id)

        rule = current_q.show_if
        answer = coerce_answer(answers.get(rule.question_id))
        if answer is None or not _rule_matches(rule, answer.as_set()):
            return False

        # Without the index we only evaluate one hop
        current_q = questions.get(rule.question_id) if questions is not None else None
    return True


def visible_questions(
    section: Section,
    answers: Mapping[str, Any],
    questions: Mapping[str, Question] | None = None,
) -> list[Question]:
    """Questions of *section* that are currently shown, in schema order."""
    return [q for q in section.questions if is_visible(q, answers, questions)]


# ------------------------------------------------------------------
# Answer helpers
# ------------------------------------------------------------------

def has_answer(value: Any) -> bool:
    """True unless the value is absent, blank text, or an empty selection."""
    answer = coerce_answer(value)
    return answer is not None and not answer.is_blank()


def toggle_option(
    current: Iterable[str] | None,
    option: str,
    checked: bool,
    exclusive: str = EXCLUSIVE_OPTION,
) -> list[str]:
    """Apply one checkbox click to a selection and return the new selection.

    Selecting the exclusive option (``no_issues``) replaces the selection;
    selecting anything else drops it.  Unchecking removes the option.
    """
    values = list(current or [])
    if option == exclusive:
        return [exclusive] if checked else []
    if checked:
        kept = [v for v in values if v != exclusive and v != option]
        return kept + [option]
    return [v for v in values if v != option]


def needs_additional(question: Question, value: Any) -> bool:
    """Whether the elaboration field under *question* should be shown."""
    if not question.has_additional:
        return False
    answer = coerce_answer(value)
    if answer is None:
        return False
    if question.id == WEIGHT_GOAL_QID:
        return isinstance(answer, SingleAnswer) and answer.value in ("lose", "gain")
    if question.type == "checkbox":
        return "other" in answer.as_set()
    if question.type == "radio":
        return isinstance(answer, SingleAnswer) and answer.value == "yes"
    return False


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

def validate_required(
    questions: Iterable[Question],
    answers: Mapping[str, Any],
    lang: Language = DEFAULT_LANGUAGE,
    index: Mapping[str, Question] | None = None,
) -> dict[str, str]:
    """Return ``{qid: message}`` for every visible required question left empty.

    The form may advance (or submit) only when the result is empty.
    """
    message = REQUIRED_MESSAGES.get(lang, REQUIRED_MESSAGES[DEFAULT_LANGUAGE])
    errors: dict[str, str] = {}
    for q in questions:
        if not q.required or not is_visible(q, answers, index):
            continue
        if not has_answer(answers.get(q.id)):
            errors[q.id] = message
    return errors


# ------------------------------------------------------------------
# Formatting
# ------------------------------------------------------------------

def format_answer(question: Question, value: Any, lang: Language = DEFAULT_LANGUAGE) -> str:
    """Render a stored answer as display text.

    Choice answers are mapped through the option labels (unknown values are
    shown raw) and multi-choice labels are joined with ``", "``.  Free-form
    answers are returned unchanged.
    """
    answer = coerce_answer(value)
    if answer is None:
        return ""
    if isinstance(answer, MultiAnswer):
        if not question.options:
            return ", ".join(answer.values)
        return ", ".join(question.option_label(v, lang) for v in answer.values)
    if question.options:
        return question.option_label(answer.value, lang)
    return answer.value


def _additional_suffix(qid: str, additional: str) -> str:
    if qid == WEIGHT_GOAL_QID:
        return f" ({additional} кг)"
    if qid == MEDICATIONS_QID:
        return f" ({additional})"
    return f" — {additional}"


def format_submission(
    sections: Iterable[Section],
    answers: Mapping[str, Any],
    additional: Mapping[str, str] | None = None,
    lang: Language = DEFAULT_LANGUAGE,
) -> str:
    """Serialize a full answer set into the operator-facing message body.

    Sections and questions follow schema order.  A section with no question
    that is both visible and answered is omitted entirely.
    """
    additional = additional or {}
    sections = list(sections)
    index = {q.id: q for s in sections for q in s.questions}

    lines: list[str] = [
        ANSWERS_HEADERS.get(lang, ANSWERS_HEADERS[DEFAULT_LANGUAGE]),
        "",
    ]
    for section in sections:
        shown = [
            q for q in visible_questions(section, answers, index)
            if has_answer(answers.get(q.id))
        ]
        if not shown:
            continue

        lines.append(f"📋 {section.title.get(lang)}:")
        for q in shown:
            line = f"• {q.label.get(lang)}: {format_answer(q, answers[q.id], lang)}"
            extra = (additional.get(q.id) or "").strip()
            if extra:
                line += _additional_suffix(q.id, extra)
            lines.append(line)
        lines.append("")

    return "\n".join(lines)
