"""QuestionnaireStore — loads the per-category YAML schemas into typed models.

This is the single source of truth for questionnaire data at runtime.  The
store is loaded once at startup and provides lookup by patient category.

Usage::

    store = QuestionnaireStore()        # defaults to v1/ relative to repo root
    store.load()                        # parse all YAML files

    woman = store.get("woman")
    title = store.title("woman", "en")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from intake_forms.constants import CATEGORIES, DEFAULT_LANGUAGE, Language
from intake_forms.models.question import Questionnaire

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# QuestionnaireStore
# ---------------------------------------------------------------------------

class QuestionnaireStore:
    """Loads ``v1/questionnaires/<category>.yaml`` and provides typed lookup.

    Each YAML file holds one questionnaire::

        title: {ru: ..., en: ..., de: ...}
        sections:
          - id: personal
            title: {...}
            questions:
              - id: name
                type: text
                ...

    Attributes populated after :meth:`load`:

        questionnaires — dict[category, Questionnaire] in ``CATEGORIES`` order
    """

    def __init__(
        self,
        questionnaire_dir: str | Path | None = None,
        categories: tuple[str, ...] = CATEGORIES,
    ) -> None:
        if questionnaire_dir is None:
            questionnaire_dir = find_repo_root() / "v1"
        self._base = Path(questionnaire_dir)
        self._categories = categories

        # Populated by load()
        self.questionnaires: dict[str, Questionnaire] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse every category's YAML into a ``Questionnaire``.

        Call this once at startup.  Raises ``FileNotFoundError`` if a
        category file is missing and ``pydantic.ValidationError`` if a
        schema is malformed (unknown type, dangling ``show_if``, etc.).
        """
        q_dir = self._base / "questionnaires"
        for category in self._categories:
            raw = load_yaml(q_dir / f"{category}.yaml")
            # Anchor definitions only; the sections already hold the expanded copies
            raw.pop("shared_options", None)
            questionnaire = Questionnaire(category=category, **raw)
            self.questionnaires[category] = questionnaire
            logger.debug(
                "Loaded questionnaire %s: %d sections, %d questions",
                category,
                len(questionnaire.sections),
                len(questionnaire.questions()),
            )
        logger.info(
            "QuestionnaireStore loaded: %d questionnaires from %s",
            len(self.questionnaires),
            q_dir,
        )

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def categories(self) -> list[str]:
        """Loaded categories in display order."""
        return list(self.questionnaires)

    def get(self, category: str) -> Questionnaire:
        """Return the questionnaire for a patient category.

        Raises:
            KeyError: if the category is unknown.
        """
        return self.questionnaires[category]

    def title(self, category: str, lang: Language = DEFAULT_LANGUAGE) -> str:
        """Localized questionnaire title, e.g. "Женская анкета"."""
        return self.get(category).title.get(lang)
