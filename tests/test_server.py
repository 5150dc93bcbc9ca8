"""HTTP API tests — login handshake, questionnaire endpoints and submission relay.

Each test builds its own app from explicit ``ServerSettings``; the Telegram
client is swapped for one talking to ``FakeBotAPI`` via dependency override.
"""

import dataclasses
import json
import time
from pathlib import Path
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from intake_forms.delivery import TelegramBotClient
from intake_forms.identity import encode_identity_token, sign_init_data
from intake_forms.models.identity import TelegramUser

from intake_server.app import create_app
from intake_server.config import ServerSettings
from intake_server.dependencies import get_delivery

V1_DIR = str(Path(__file__).resolve().parents[1] / "v1")
BOT_TOKEN = "123456:TEST-token"
ANA = {"id": 42, "first_name": "Ana"}


@pytest.fixture
def settings():
    return ServerSettings(
        questionnaire_dir=V1_DIR,
        bot_token=BOT_TOKEN,
        chat_id="-100500",
        bot_name="intake_bot",
        site_url="https://forms.example.org/",
    )


def _make_client(settings, bot_api=None):
    app = create_app(settings)
    if bot_api is not None:
        def fake_delivery():
            return lambda: TelegramBotClient(
                settings.bot_token, settings.chat_id, transport=bot_api.transport(),
            )

        app.dependency_overrides[get_delivery] = fake_delivery
    return TestClient(app)


@pytest.fixture
def client(settings, bot_api):
    with _make_client(settings, bot_api) as c:
        yield c


def _login(client, user=ANA) -> str:
    session_id = client.post("/api/v1/auth/session").json()["sessionId"]
    resp = client.post("/api/v1/auth/confirm", json={"sessionId": session_id, "user": user})
    assert resp.status_code == 200
    return resp.json()["authToken"]


def _init_data(user: dict, bot_token: str = BOT_TOKEN) -> str:
    fields = {"auth_date": str(int(time.time())), "user": json.dumps(user)}
    fields["hash"] = sign_init_data(fields, bot_token)
    return urlencode(fields)


def _fill(questionnaire: dict) -> dict:
    """Answer every question with its first option or a placeholder value."""
    answers = {}
    for section in questionnaire["sections"]:
        for q in section["questions"]:
            if q["type"] == "radio":
                answers[q["id"]] = q["options"][0]["value"]
            elif q["type"] == "checkbox":
                answers[q["id"]] = [q["options"][0]["value"]]
            elif q["type"] == "number":
                answers[q["id"]] = "5"
            else:
                answers[q["id"]] = "Ana"
    return answers


# =====================================================================
# Health
# =====================================================================


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body == {
            "status": "ok",
            "questionnaires": ["infant", "child", "woman", "man"],
            "sessions": 0,
            "user_tokens": 0,
        }


# =====================================================================
# Login handshake
# =====================================================================


class TestLoginHandshake:
    """session → confirm → redeem, store mode."""

    def test_happy_path(self, client):
        resp = client.post("/api/v1/auth/session")
        assert resp.status_code == 200
        session = resp.json()
        assert len(session["sessionId"]) == 24
        assert session["loginUrl"] == (
            f"https://t.me/intake_bot/app?startapp={session['sessionId']}"
        )

        resp = client.post(
            "/api/v1/auth/confirm", json={"sessionId": session["sessionId"], "user": ANA},
        )
        assert resp.status_code == 200
        token = resp.json()["authToken"]
        assert len(token) == 32
        assert resp.json()["returnUrl"] == f"https://forms.example.org?auth_token={token}"

        resp = client.get("/api/v1/auth/redeem", params={"token": token})
        assert resp.status_code == 200
        assert resp.json() == {"user": {"id": 42, "first_name": "Ana"}}

    def test_redeem_twice(self, client):
        token = _login(client)
        assert client.get("/api/v1/auth/redeem", params={"token": token}).status_code == 200
        resp = client.get("/api/v1/auth/redeem", params={"token": token})
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid or expired token"}

    def test_session_consumed_by_confirm(self, client):
        session_id = client.post("/api/v1/auth/session").json()["sessionId"]
        body = {"sessionId": session_id, "user": ANA}
        assert client.post("/api/v1/auth/confirm", json=body).status_code == 200
        resp = client.post("/api/v1/auth/confirm", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Session not found or expired"}

    def test_unknown_session(self, client):
        resp = client.post(
            "/api/v1/auth/confirm", json={"sessionId": "x" * 24, "user": ANA},
        )
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Session not found or expired"}

    def test_invalid_user(self, client):
        session_id = client.post("/api/v1/auth/session").json()["sessionId"]
        resp = client.post(
            "/api/v1/auth/confirm", json={"sessionId": session_id, "user": {"id": 42}},
        )
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid user data"}

    @pytest.mark.parametrize("params", [{}, {"token": ""}, {"token": "garbage"}])
    def test_redeem_bad_token(self, client, params):
        resp = client.get("/api/v1/auth/redeem", params=params)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid or expired token"}

    def test_no_bot_name_no_login_url(self, settings, bot_api):
        with _make_client(dataclasses.replace(settings, bot_name=None), bot_api) as c:
            assert c.post("/api/v1/auth/session").json()["loginUrl"] is None

    @pytest.mark.parametrize("body", [
        {"user": ANA},
        {"sessionId": "x" * 24, "user": None},
        {"sessionId": "x" * 24, "user": "Ana"},
    ])
    def test_malformed_confirm_body(self, client, body):
        """A body that fails the request model gets the generic 400, without its input."""
        resp = client.post("/api/v1/auth/confirm", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid request"}
        assert "Ana" not in resp.text

    def test_return_url_keeps_site_query(self, settings, bot_api):
        """auth_token is appended to a site URL that already has a query string."""
        site = dataclasses.replace(settings, site_url="https://x.org/form?lang=ru")
        with _make_client(site, bot_api) as c:
            session_id = c.post("/api/v1/auth/session").json()["sessionId"]
            resp = c.post("/api/v1/auth/confirm", json={"sessionId": session_id, "user": ANA})
        assert resp.status_code == 200
        token = resp.json()["authToken"]
        assert resp.json()["returnUrl"] == f"https://x.org/form?lang=ru&auth_token={token}"

    def test_health_counts(self, client):
        client.post("/api/v1/auth/session")
        _login(client)
        body = client.get("/health").json()
        assert (body["sessions"], body["user_tokens"]) == (1, 1)


class TestSignature:
    """initData verification on confirm."""

    def _confirm(self, client, **extra):
        session_id = client.post("/api/v1/auth/session").json()["sessionId"]
        return client.post(
            "/api/v1/auth/confirm", json={"sessionId": session_id, "user": ANA, **extra},
        )

    def test_valid_init_data(self, client):
        resp = self._confirm(client, initData=_init_data(ANA))
        assert resp.status_code == 200

    def test_forged_init_data(self, client):
        resp = self._confirm(client, initData=_init_data(ANA, bot_token="999:OTHER"))
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid signature"}

    def test_init_data_for_other_user(self, client):
        resp = self._confirm(client, initData=_init_data({"id": 7, "first_name": "Eve"}))
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid signature"}

    def test_init_data_without_user(self, client):
        """Signed initData that names no user cannot vouch for the confirmed one."""
        fields = {"auth_date": str(int(time.time())), "query_id": "AAHdF6IQAAAAAN0XohDhrOrc"}
        fields["hash"] = sign_init_data(fields, BOT_TOKEN)
        resp = self._confirm(client, initData=urlencode(fields))
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid signature"}

    def test_required_but_missing(self, settings, bot_api):
        with _make_client(dataclasses.replace(settings, require_signature=True), bot_api) as c:
            resp = self._confirm(c)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid signature"}


class TestStatelessMode:
    """AUTH_TOKEN_MODE=stateless: the token carries the identity."""

    @pytest.fixture
    def stateless(self, settings, bot_api):
        with _make_client(dataclasses.replace(settings, token_mode="stateless"), bot_api) as c:
            yield c

    def test_round_trip(self, stateless):
        token = _login(stateless)
        resp = stateless.get("/api/v1/auth/redeem", params={"token": token})
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert (user["id"], user["first_name"]) == (42, "Ana")
        assert "auth_date" in user

    def test_session_still_single_use(self, stateless):
        session_id = stateless.post("/api/v1/auth/session").json()["sessionId"]
        body = {"sessionId": session_id, "user": ANA}
        assert stateless.post("/api/v1/auth/confirm", json=body).status_code == 200
        assert stateless.post("/api/v1/auth/confirm", json=body).status_code == 400

    def test_stale_token(self, stateless):
        token = encode_identity_token(TelegramUser(**ANA), now=1_000_000)
        resp = stateless.get("/api/v1/auth/redeem", params={"token": token})
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid or expired token"}

    def test_store_mode_rejects_identity_tokens(self, client):
        token = encode_identity_token(TelegramUser(**ANA))
        assert client.get("/api/v1/auth/redeem", params={"token": token}).status_code == 400


# =====================================================================
# Questionnaire endpoints
# =====================================================================


class TestQuestionnaires:
    """Schema, validate and preview."""

    def test_list(self, client):
        resp = client.get("/api/v1/questionnaires", params={"lang": "en"})
        assert resp.status_code == 200
        summaries = resp.json()
        assert [s["category"] for s in summaries] == ["infant", "child", "woman", "man"]
        assert summaries[2]["title"] == "Woman Questionnaire"
        assert all(s["questions"] > 0 for s in summaries)

    def test_get(self, client):
        resp = client.get("/api/v1/questionnaires/woman")
        assert resp.status_code == 200
        body = resp.json()
        assert body["category"] == "woman"
        assert body["sections"][0]["id"] == "personal"

    def test_unknown_category(self, client):
        resp = client.get("/api/v1/questionnaires/robot")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Resource not found"}

    def test_validate_section(self, client):
        resp = client.post(
            "/api/v1/questionnaires/woman/validate",
            json={"sectionId": "personal", "answers": {"name": "Ana"}},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["valid"] is False
        assert set(body["errors"]) == {"last_name", "age", "weight"}
        assert body["visible"] == ["name", "last_name", "age", "weight"]

    def test_validate_visibility(self, client):
        resp = client.post(
            "/api/v1/questionnaires/woman/validate",
            json={"sectionId": "health", "answers": {"had_covid": "yes"}, "lang": "en"},
        )
        body = resp.json()
        assert "covid_times" in body["visible"]
        assert body["errors"]["covid_times"] == "This field is required"
        assert "weight_goal" not in body["visible"]

    def test_validate_unknown_section(self, client):
        resp = client.post(
            "/api/v1/questionnaires/woman/validate", json={"sectionId": "nope", "answers": {}},
        )
        assert resp.status_code == 404

    def test_validate_complete(self, client):
        questionnaire = client.get("/api/v1/questionnaires/child").json()
        resp = client.post(
            "/api/v1/questionnaires/child/validate", json={"answers": _fill(questionnaire)},
        )
        assert resp.json()["valid"] is True
        assert resp.json()["errors"] == {}

    def test_preview(self, client):
        resp = client.post(
            "/api/v1/questionnaires/woman/preview",
            json={
                "answers": {"name": "Ana", "weight_satisfaction": "not_satisfied", "weight_goal": "lose"},
                "additional": {"weight_goal_additional": "5"},
            },
        )
        assert resp.status_code == 200
        text = resp.json()["text"]
        assert text.startswith("📝 Ответы на вопросы анкеты:\n\n📋 Личные данные:\n• Имя: Ana\n")
        assert "Сбросить вес (5 кг)" in text


# =====================================================================
# Submission
# =====================================================================


class TestSubmit:
    """Relaying submissions to the operator chat."""

    def test_client_message(self, client, bot_api):
        resp = client.post(
            "/api/v1/submit",
            json={"message": "Hi <b>there</b>", "userId": 42, "username": "ana", "type": "woman"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"messageId": 101, "filesTotal": 0, "filesSuccess": 0}
        assert bot_api.messages == [{
            "chat_id": "-100500",
            "text": "Hi &lt;b&gt;there&lt;/b&gt;",
            "parse_mode": "HTML",
        }]
        assert bot_api.documents == []

    @pytest.mark.parametrize("body", [
        {"userId": 42},
        {"message": "hi"},
        {"answers": {"name": "Ana"}, "type": "woman"},
        {"answers": {"name": "Ana"}, "user": ANA},
    ])
    def test_missing_fields(self, client, bot_api, body):
        resp = client.post("/api/v1/submit", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Missing required fields"}
        assert bot_api.messages == []

    def test_multipart_with_failing_file(self, client, bot_api):
        bot_api.fail_files = {"b.pdf"}
        resp = client.post(
            "/api/v1/submit",
            data={"message": "see files", "userId": "42", "username": "ana", "type": "woman"},
            files=[
                ("file_0", ("a.pdf", b"%PDF a", "application/pdf")),
                ("file_1", ("b.pdf", b"%PDF b", "application/pdf")),
                ("file_2", ("c.jpg", b"\xff\xd8\xff", "image/jpeg")),
            ],
        )
        assert resp.status_code == 200
        assert resp.json() == {"messageId": 101, "filesTotal": 3, "filesSuccess": 2}
        assert len(bot_api.messages) == 1
        assert len(bot_api.documents) == 3
        caption = "📎 Файл от пользователя @ana\n📋 Тип анкеты: woman".encode()
        assert all(caption in body for body in bot_api.documents)

    def test_server_formatted(self, client, bot_api):
        questionnaire = client.get("/api/v1/questionnaires/infant").json()
        resp = client.post(
            "/api/v1/submit",
            json={
                "type": "infant",
                "user": {**ANA, "username": "ana"},
                "answers": _fill(questionnaire),
            },
        )
        assert resp.status_code == 200
        text = bot_api.messages[0]["text"]
        assert text.startswith("🔔 Новая анкета!\n\n📋 Тип: Анкета для младенца\n")
        assert "🆔 Telegram: @ana" in text
        assert "📝 Ответы на вопросы анкеты:" in text

    def test_server_formatted_multipart(self, client, bot_api):
        questionnaire = client.get("/api/v1/questionnaires/man").json()
        resp = client.post(
            "/api/v1/submit",
            data={
                "type": "man",
                "user": json.dumps(ANA),
                "answers": json.dumps(_fill(questionnaire)),
                "additional": json.dumps({"regular_medications_additional": "aspirin"}),
            },
            files=[("file_0", ("a.pdf", b"%PDF a", "application/pdf"))],
        )
        assert resp.status_code == 200
        assert resp.json()["filesSuccess"] == 1
        assert "(aspirin)" in bot_api.messages[0]["text"]

    def test_required_questions_enforced(self, client, bot_api):
        resp = client.post(
            "/api/v1/submit",
            json={"type": "woman", "user": ANA, "answers": {"name": "Ana"}},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["detail"] == "Validation failed"
        assert body["errors"]["last_name"] == "Это поле обязательно"
        assert "name" not in body["errors"]
        assert bot_api.messages == []

    def test_unknown_type(self, client):
        resp = client.post(
            "/api/v1/submit", json={"type": "robot", "user": ANA, "answers": {}},
        )
        assert resp.status_code == 404

    def test_upstream_failure(self, client, bot_api):
        bot_api.fail_message = True
        resp = client.post(
            "/api/v1/submit",
            data={"message": "hi", "userId": "42"},
            files=[("file_0", ("a.pdf", b"%PDF a", "application/pdf"))],
        )
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Failed to send message"}
        assert bot_api.documents == []

    def test_missing_credentials(self, settings):
        unconfigured = dataclasses.replace(settings, bot_token=None, chat_id=None)
        with _make_client(unconfigured) as c:
            resp = c.post("/api/v1/submit", json={"message": "hi", "userId": 42})
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Server configuration error"}

    @pytest.mark.parametrize("body", [{}, {"message": "hi"}])
    def test_missing_fields_without_credentials(self, settings, body):
        """Body checks run before the bot client is built."""
        unconfigured = dataclasses.replace(settings, bot_token=None, chat_id=None)
        with _make_client(unconfigured) as c:
            resp = c.post("/api/v1/submit", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Missing required fields"}
