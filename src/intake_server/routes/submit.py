"""Submission endpoint — relays a finished questionnaire to the operator chat.

Accepts either body shape:

  - ``application/json`` — no files
  - ``multipart/form-data`` — the same fields as form parts, plus any number
    of ``file_*`` parts; ``answers``, ``additional`` and ``user`` parts carry
    JSON strings

and either message source:

  - ``message`` + ``userId`` — text composed by the client, sent as-is
    (HTML-escaped)
  - ``answers`` + ``user`` + ``type`` — validated and formatted server-side
    against the category's questionnaire
"""

import json
import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.datastructures import UploadFile

from intake_forms.errors import ValidationFailedError
from intake_forms.evaluator import format_submission, validate_required
from intake_forms.identity import parse_user
from intake_forms.interfaces import DeliveryChannel
from intake_forms.message import MessageRenderer
from intake_forms.models.answer import AnswerSet
from intake_forms.models.session import Attachment
from intake_forms.questionnaire import QuestionnaireStore

from intake_server.dependencies import get_delivery, get_renderer, get_store
from intake_server.schemas import SubmitRequest, SubmitResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submit"])

# Multipart parts that hold JSON rather than plain text
_JSON_PARTS = ("answers", "additional", "user")


# ------------------------------------------------------------------
# Body parsing
# ------------------------------------------------------------------

async def _read_body(request: Request) -> tuple[SubmitRequest, list[Attachment]]:
    """Parse a JSON or multipart submission into a request model and files."""
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        return SubmitRequest.model_validate(await request.json()), []

    fields: dict = {}
    attachments: list[Attachment] = []
    async with request.form() as form:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key.startswith("file_"):
                    attachments.append(Attachment(
                        filename=value.filename or key,
                        content=await value.read(),
                        mime_type=value.content_type or "application/octet-stream",
                    ))
                continue
            fields[key] = value

    for key in _JSON_PARTS:
        if fields.get(key):
            fields[key] = json.loads(fields[key])
        else:
            fields.pop(key, None)
    return SubmitRequest.model_validate(fields), attachments


# ------------------------------------------------------------------
# Endpoint
# ------------------------------------------------------------------

@router.post("/submit")
async def submit(
    request: Request,
    store: QuestionnaireStore = Depends(get_store),
    renderer: MessageRenderer = Depends(get_renderer),
    delivery_factory: Callable[[], DeliveryChannel] = Depends(get_delivery),
) -> SubmitResponse:
    """Send the submission text, then every attached file.

    Returns 400 for missing fields or unanswered required questions,
    404 for an unknown questionnaire type, 500 when the bot is not
    configured or the text message is rejected.  Individual file
    failures only lower ``filesSuccess``.
    """
    body, attachments = await _read_body(request)

    if body.answers is not None:
        if body.user is None or not body.type:
            raise HTTPException(status_code=400, detail="Missing required fields")
        user = parse_user(body.user)
        answer_set = AnswerSet(answers=body.answers, additional=body.additional, lang=body.lang)
        questionnaire = store.get(body.type)
        errors = validate_required(
            questionnaire.questions(), answer_set.answers, body.lang,
            questionnaire.question_index(),
        )
        if errors:
            raise ValidationFailedError(errors)

        answers_text = format_submission(
            questionnaire.sections, answer_set.answers, answer_set.additional, body.lang,
        )
        text = renderer.render_submission(
            user, questionnaire.title.get(body.lang), answers_text, body.lang,
        )
        user_id, username = user.id, user.username
    else:
        if not body.message or not body.user_id:
            raise HTTPException(status_code=400, detail="Missing required fields")
        text = renderer.render_message(body.message)
        user_id, username = body.user_id, body.username

    caption = renderer.render_caption(user_id, username, body.type or "", body.lang)
    delivery = delivery_factory()
    report = await delivery.deliver(text, attachments, caption)

    logger.info(
        "Submission relayed: type=%s, telegram id=%s, files %d/%d",
        body.type,
        user_id,
        report.files_success,
        report.files_total,
    )
    return SubmitResponse(
        message_id=report.message_id,
        files_total=report.files_total,
        files_success=report.files_success,
    )
