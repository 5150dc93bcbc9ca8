import json
from pathlib import Path

import httpx
import pytest

from intake_forms.questionnaire import QuestionnaireStore

V1_DIR = Path(__file__).resolve().parents[1] / "v1"


# =====================================================================
# Fakes
# =====================================================================

class FakeClock:
    """Manually advanced unix clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBotAPI:
    """In-process stand-in for the Telegram Bot API.

    Records every call.  ``fail_message`` makes sendMessage answer
    ``ok: false``; ``fail_files`` lists filenames whose sendDocument fails.
    """

    def __init__(self):
        self.messages: list[dict] = []
        self.documents: list[bytes] = []
        self.fail_message = False
        self.fail_files: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sendMessage"):
            self.messages.append(json.loads(request.content))
            if self.fail_message:
                return httpx.Response(
                    400, json={"ok": False, "description": "Bad Request: chat not found"},
                )
            return httpx.Response(
                200, json={"ok": True, "result": {"message_id": 100 + len(self.messages)}},
            )

        if request.url.path.endswith("/sendDocument"):
            body = request.content
            self.documents.append(body)
            for name in self.fail_files:
                if f'filename="{name}"'.encode() in body:
                    return httpx.Response(
                        400, json={"ok": False, "description": "Bad Request: file is empty"},
                    )
            return httpx.Response(
                200, json={"ok": True, "result": {"message_id": 500 + len(self.documents)}},
            )

        return httpx.Response(404, json={"ok": False, "description": "Not Found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# =====================================================================
# Fixtures
# =====================================================================

@pytest.fixture(scope="session")
def store():
    """Load the full QuestionnaireStore once for the entire test session."""
    s = QuestionnaireStore(V1_DIR)
    s.load()
    return s


@pytest.fixture
def clock():
    """Fresh FakeClock for each test."""
    return FakeClock()


@pytest.fixture
def bot_api():
    """Fresh FakeBotAPI for each test."""
    return FakeBotAPI()
