"""Telegram Bot API client — relays submissions to the operator chat.

Two endpoints are used:

  - ``sendMessage``  — JSON body ``{chat_id, text, parse_mode}``
  - ``sendDocument`` — multipart body ``chat_id``, ``document``, ``caption``

Both answer with the envelope ``{ok, result?, description?}``.

Delivery rules:
  - the text message goes first; if it fails, nothing else is sent and
    ``DeliveryError`` propagates
  - attachments are then sent concurrently, one attempt each; a failed
    file is logged and counted, never retried and never fatal
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from intake_forms.errors import ConfigurationError, DeliveryError
from intake_forms.interfaces import DeliveryChannel
from intake_forms.models.session import Attachment, DeliveryReport

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"
DEFAULT_TIMEOUT = 20.0


class TelegramBotClient(DeliveryChannel):
    """Async wrapper around the two Bot API calls the intake flow needs.

    Args:
        bot_token: the bot's API token.
        chat_id: destination chat/channel id.
        api_base: Bot API origin (override for a local Bot API server).
        timeout: per-call timeout in seconds; a timeout counts as a failure.
        transport: optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        bot_token: str | None,
        chat_id: str | None,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not bot_token or not chat_id:
            raise ConfigurationError("Telegram bot token and chat id must be configured")
        self._chat_id = chat_id
        self._base_url = f"{api_base.rstrip('/')}/bot{bot_token}"
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    # ------------------------------------------------------------------
    # Envelope handling
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_envelope(resp: httpx.Response) -> dict[str, Any]:
        """Return the ``result`` of an ok envelope or raise ``DeliveryError``."""
        try:
            body = resp.json()
        except ValueError as exc:
            raise DeliveryError(f"HTTP {resp.status_code}: non-JSON response") from exc
        if not isinstance(body, dict) or not body.get("ok"):
            description = (
                body.get("description") if isinstance(body, dict) else None
            ) or f"HTTP {resp.status_code}"
            raise DeliveryError(description)
        result = body.get("result")
        return result if isinstance(result, dict) else {}

    # ------------------------------------------------------------------
    # Single calls
    # ------------------------------------------------------------------

    async def send_message(self, text: str, parse_mode: str | None = "HTML") -> int:
        """Send the submission text; return the Telegram message id."""
        payload: dict[str, Any] = {"chat_id": self._chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        async with self._client() as client:
            try:
                resp = await client.post("/sendMessage", json=payload)
            except httpx.TimeoutException as exc:
                logger.error("sendMessage timed out after %.0fs", self._timeout)
                raise DeliveryError("Request timed out") from exc
            except httpx.HTTPError as exc:
                logger.error("sendMessage request failed: %s", exc)
                raise DeliveryError(str(exc)) from exc

        try:
            result = self._parse_envelope(resp)
        except DeliveryError as exc:
            logger.error("Telegram API rejected sendMessage: %s", exc.description)
            raise
        message_id = int(result.get("message_id", 0))
        logger.info("Submission message delivered, message_id=%d", message_id)
        return message_id

    async def send_document(self, attachment: Attachment, caption: str) -> bool:
        """Send one file; any failure is logged and reported as False."""
        data = {"chat_id": self._chat_id, "caption": caption, "parse_mode": "HTML"}
        files = {
            "document": (attachment.filename, attachment.content, attachment.mime_type),
        }
        async with self._client() as client:
            try:
                resp = await client.post("/sendDocument", data=data, files=files)
                self._parse_envelope(resp)
            except DeliveryError as exc:
                logger.error(
                    "Telegram API rejected file %r: %s", attachment.filename, exc.description,
                )
                return False
            except httpx.HTTPError as exc:
                logger.error("Sending file %r failed: %s", attachment.filename, exc)
                return False
        return True

    # ------------------------------------------------------------------
    # Full submission
    # ------------------------------------------------------------------

    async def deliver(
        self,
        text: str,
        attachments: list[Attachment],
        caption: str,
    ) -> DeliveryReport:
        """Send the message, then all attachments concurrently.

        Raises:
            DeliveryError: if the text message was not accepted (no file is
                sent in that case).
        """
        message_id = await self.send_message(text)

        results: list[bool] = []
        if attachments:
            results = list(
                await asyncio.gather(
                    *(self.send_document(a, caption) for a in attachments)
                )
            )
        report = DeliveryReport(
            message_id=message_id,
            files_total=len(attachments),
            files_success=sum(1 for ok in results if ok),
        )
        if report.files_success < report.files_total:
            logger.warning(
                "Delivered %d/%d attachment(s) for message_id=%d",
                report.files_success,
                report.files_total,
                message_id,
            )
        return report
