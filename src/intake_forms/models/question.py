"""Question and section models for intake questionnaires.

Each question type maps to a specific form control:

    - text: single-line text input
    - number: numeric input with optional min/max
    - textarea: multi-line free text
    - radio: pick exactly one option
    - checkbox: pick one or more options

A question may carry a ``show_if`` visibility rule that references another
question of the same questionnaire.  The evaluator decides visibility from
the caller's current answers; the models only describe the schema.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from intake_forms.constants import DEFAULT_LANGUAGE, Language


class LocalizedText(BaseModel):
    """A label in every supported language; ``ru`` is the fallback."""

    ru: str
    en: str = ""
    de: str = ""

    def get(self, lang: Language = DEFAULT_LANGUAGE) -> str:
        """Return the text for *lang*, falling back to Russian when blank."""
        text = getattr(self, lang, "") or ""
        return text or self.ru


class Option(BaseModel):
    """A selectable option with a stable value and a localized label."""

    value: str
    label: LocalizedText


# --- Visibility rule ---

VisibilityOperator = Literal["equals", "notEquals", "includes", "notIncludes"]


class VisibilityRule(BaseModel):
    """Show the owning question only when another question's answer matches.

    Operators (the referenced answer is coerced to a set):
      - equals: answer intersects the targets
      - notEquals: answer does not intersect the targets
      - includes: answer contains every target
      - notIncludes: same as notEquals (kept as shipped in the schemas)
    """

    question_id: str
    operator: VisibilityOperator = "equals"
    value: Union[str, List[str]]

    @property
    def targets(self) -> frozenset[str]:
        """Target values as a set, whether declared as one string or a list."""
        if isinstance(self.value, str):
            return frozenset([self.value])
        return frozenset(self.value)


QuestionType = Literal["text", "number", "textarea", "radio", "checkbox"]

CHOICE_TYPES: frozenset[str] = frozenset({"radio", "checkbox"})


class Question(BaseModel):
    """A single questionnaire field."""

    id: str
    type: QuestionType
    label: LocalizedText
    icon: str = ""
    # Display ordinal such as 3 or 3.1; cosmetic, the label already carries it
    number: Optional[float] = None
    options: List[Option] = Field(default_factory=list)
    required: bool = False
    has_additional: bool = False
    show_if: Optional[VisibilityRule] = None
    placeholder: Optional[LocalizedText] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_choice(self) -> bool:
        return self.type in CHOICE_TYPES

    @property
    def is_multi(self) -> bool:
        return self.type == "checkbox"

    def option_label(self, value: str, lang: Language = DEFAULT_LANGUAGE) -> str:
        """Localized label for an option value, or the raw value if unknown."""
        for opt in self.options:
            if opt.value == value:
                return opt.label.get(lang)
        return value

    @model_validator(mode="after")
    def _chk(self):
        if self.is_choice and not self.options:
            raise ValueError(f"choice question '{self.id}' must declare options")
        values = [opt.value for opt in self.options]
        if len(values) != len(set(values)):
            raise ValueError(f"question '{self.id}' has duplicate option values")
        if self.show_if is not None and self.show_if.question_id == self.id:
            raise ValueError(f"question '{self.id}' cannot depend on itself")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"question '{self.id}': min must be <= max")
        return self


class Section(BaseModel):
    """An ordered group of questions shown as one form page."""

    id: str
    title: LocalizedText
    icon: str = ""
    questions: List[Question]


class Questionnaire(BaseModel):
    """All sections for one patient category, in display order."""

    category: str
    title: LocalizedText
    sections: List[Section]

    @field_validator("sections")
    @classmethod
    def _non_empty(cls, sections: List[Section]) -> List[Section]:
        if not sections:
            raise ValueError("questionnaire must have at least one section")
        return sections

    @model_validator(mode="after")
    def _check_references(self):
        """Question ids are unique and every ``show_if`` points at a known id."""
        seen: set[str] = set()
        for q in self.questions():
            if q.id in seen:
                raise ValueError(
                    f"duplicate question id '{q.id}' in questionnaire '{self.category}'"
                )
            seen.add(q.id)
        for q in self.questions():
            if q.show_if is not None and q.show_if.question_id not in seen:
                raise ValueError(
                    f"question '{q.id}' depends on unknown question "
                    f"'{q.show_if.question_id}'"
                )
        return self

    def questions(self) -> list[Question]:
        """All questions flattened in schema order."""
        return [q for section in self.sections for q in section.questions]

    def question_index(self) -> dict[str, Question]:
        """Lookup table of question id to Question."""
        return {q.id: q for q in self.questions()}

    def get_section(self, section_id: str) -> Section:
        """Return a section by id.

        Raises:
            KeyError: if no section has that id.
        """
        for section in self.sections:
            if section.id == section_id:
                return section
        raise KeyError(section_id)
