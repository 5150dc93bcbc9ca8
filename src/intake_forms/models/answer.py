"""Answer models — the values a respondent has entered so far.

Raw answers arrive from the browser as either a string (text, number,
textarea, radio) or a list of strings (checkbox).  ``coerce_answer`` turns
them into the tagged ``Answer`` union so the evaluator can branch on
``kind`` instead of sniffing types.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from intake_forms.constants import DEFAULT_LANGUAGE, Language

# What the browser sends for one question.
RawAnswer = Union[str, int, float, List[str]]


class SingleAnswer(BaseModel):
    """One string value (text, number, textarea, radio)."""

    kind: Literal["single"] = "single"
    value: str

    def as_set(self) -> frozenset[str]:
        return frozenset([self.value])

    def is_blank(self) -> bool:
        return not self.value.strip()


class MultiAnswer(BaseModel):
    """An ordered selection of option values (checkbox)."""

    kind: Literal["multi"] = "multi"
    values: Tuple[str, ...]

    def as_set(self) -> frozenset[str]:
        return frozenset(self.values)

    def is_blank(self) -> bool:
        return len(self.values) == 0


Answer = Annotated[Union[SingleAnswer, MultiAnswer], Field(discriminator="kind")]


def coerce_answer(raw: Any) -> SingleAnswer | MultiAnswer | None:
    """Convert a raw browser value into the ``Answer`` union.

    ``None`` stays ``None`` (unanswered).  Lists and tuples become
    ``MultiAnswer``; numbers and booleans are stringified into
    ``SingleAnswer`` since numeric inputs post their text value.
    """
    if raw is None:
        return None
    if isinstance(raw, (SingleAnswer, MultiAnswer)):
        return raw
    if isinstance(raw, (list, tuple, set, frozenset)):
        return MultiAnswer(values=tuple(str(v) for v in raw))
    if isinstance(raw, bool):
        return SingleAnswer(value="yes" if raw else "no")
    return SingleAnswer(value=str(raw))


class AnswerSet(BaseModel):
    """A respondent's answers plus free-text elaborations, keyed by question id.

    ``additional`` accepts both ``<qid>`` and the form's ``<qid>_additional``
    keys; the suffix is stripped on validation.
    """

    answers: Dict[str, RawAnswer] = Field(default_factory=dict)
    additional: Dict[str, str] = Field(default_factory=dict)
    lang: Language = DEFAULT_LANGUAGE

    @field_validator("additional")
    @classmethod
    def _strip_suffix(cls, value: Dict[str, str]) -> Dict[str, str]:
        normalised: Dict[str, str] = {}
        for key, text in value.items():
            if key.endswith("_additional"):
                key = key[: -len("_additional")]
            normalised[key] = text
        return normalised

    def get(self, qid: str) -> Optional[SingleAnswer | MultiAnswer]:
        return coerce_answer(self.answers.get(qid))
