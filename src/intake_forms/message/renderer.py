"""MessageRenderer — Jinja2 templates for operator-facing Telegram text.

Loads templates from the ``template/`` directory and renders:

  - the submission envelope (heading, questionnaire type, who sent it,
    then the formatted answers)
  - the caption attached to every relayed file
  - a client-composed message, escaped for ``parse_mode=HTML``

The environment autoescapes, so anything a respondent typed reaches
Telegram as literal text rather than markup.
"""

from __future__ import annotations

from pathlib import Path

import jinja2

from intake_forms.constants import DEFAULT_LANGUAGE, Language
from intake_forms.models.identity import TelegramUser

# --- Fixed strings per language ---
_LABELS: dict[str, dict[str, str]] = {
    "ru": {
        "heading": "Новая анкета!",
        "type": "Тип",
        "name": "Имя",
        "not_set": "не указан",
        "file_from": "Файл от пользователя",
        "category": "Тип анкеты",
    },
    "en": {
        "heading": "New questionnaire!",
        "type": "Type",
        "name": "Name",
        "not_set": "not set",
        "file_from": "File from user",
        "category": "Questionnaire type",
    },
    "de": {
        "heading": "Neuer Fragebogen!",
        "type": "Typ",
        "name": "Name",
        "not_set": "nicht angegeben",
        "file_from": "Datei von Benutzer",
        "category": "Fragebogentyp",
    },
}


class MessageRenderer:
    """Jinja2-based renderer for messages sent to the operator chat.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @staticmethod
    def labels(lang: Language = DEFAULT_LANGUAGE) -> dict[str, str]:
        return _LABELS.get(lang, _LABELS[DEFAULT_LANGUAGE])

    def render(self, template_name: str, **context) -> str:
        """Render a named template with arbitrary context."""
        template = self._env.get_template(template_name)
        return template.render(**context)

    def render_submission(
        self,
        user: TelegramUser,
        title: str,
        answers_text: str,
        lang: Language = DEFAULT_LANGUAGE,
    ) -> str:
        """Full operator message for a server-formatted submission."""
        return self.render(
            "submission.jinja2",
            labels=self.labels(lang),
            user=user,
            title=title,
            answers=answers_text,
        )

    def render_caption(
        self,
        user_id: int | str,
        username: str | None,
        category: str,
        lang: Language = DEFAULT_LANGUAGE,
    ) -> str:
        """Caption attached to each relayed file."""
        return self.render(
            "caption.jinja2",
            labels=self.labels(lang),
            user_id=user_id,
            username=username,
            category=category,
        )

    def render_message(self, text: str) -> str:
        """A client-composed message, HTML-escaped."""
        return self.render("message.jinja2", text=text)
