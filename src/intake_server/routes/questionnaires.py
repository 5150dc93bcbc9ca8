"""Questionnaire endpoints — schema lookup, server-side validation and preview.

The schemas are public, read-only data loaded from ``v1/questionnaires/``.
``validate`` and ``preview`` run the same evaluator the submit endpoint
uses, so a client can check a section before advancing and show the
respondent exactly what the operator will receive.
"""

from fastapi import APIRouter, Depends, Query

from intake_forms.constants import DEFAULT_LANGUAGE, Language
from intake_forms.evaluator import format_submission, validate_required, visible_questions
from intake_forms.models.answer import AnswerSet
from intake_forms.models.question import Questionnaire
from intake_forms.questionnaire import QuestionnaireStore

from intake_server.dependencies import get_store
from intake_server.schemas import (
    PreviewResponse,
    QuestionnaireSummary,
    ValidateRequest,
    ValidateResponse,
)

router = APIRouter(prefix="/questionnaires", tags=["questionnaires"])


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("")
def list_questionnaires(
    lang: Language = Query(DEFAULT_LANGUAGE),
    store: QuestionnaireStore = Depends(get_store),
) -> list[QuestionnaireSummary]:
    """Return every patient category with its localized title."""
    return [
        QuestionnaireSummary(
            category=category,
            title=store.title(category, lang),
            sections=len(store.get(category).sections),
            questions=len(store.get(category).questions()),
        )
        for category in store.categories()
    ]


@router.get("/{category}")
def get_questionnaire(
    category: str,
    store: QuestionnaireStore = Depends(get_store),
) -> Questionnaire:
    """Return the full schema for a category.  Unknown category → 404."""
    return store.get(category)


@router.post("/{category}/validate")
def validate_answers(
    category: str,
    body: ValidateRequest,
    store: QuestionnaireStore = Depends(get_store),
) -> ValidateResponse:
    """Check required answers for one section (``sectionId``) or the whole form.

    ``visible`` lists the ids of questions currently shown, in schema order.
    """
    questionnaire = store.get(category)
    index = questionnaire.question_index()
    if body.section_id is not None:
        sections = [questionnaire.get_section(body.section_id)]
    else:
        sections = questionnaire.sections

    questions = [q for s in sections for q in s.questions]
    errors = validate_required(questions, body.answers, body.lang, index)
    visible = [
        q.id for s in sections for q in visible_questions(s, body.answers, index)
    ]
    return ValidateResponse(valid=not errors, errors=errors, visible=visible)


@router.post("/{category}/preview")
def preview_answers(
    category: str,
    body: AnswerSet,
    store: QuestionnaireStore = Depends(get_store),
) -> PreviewResponse:
    """Render the answers block exactly as it will appear in the operator chat.

    Elaborations may be keyed ``<qid>`` or ``<qid>_additional``.
    """
    questionnaire = store.get(category)
    text = format_submission(
        questionnaire.sections, body.answers, body.additional, body.lang,
    )
    return PreviewResponse(text=text)
