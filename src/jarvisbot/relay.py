from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from .channel import Receiver
from .exceptions import RelayError
from .schema import ApiResponse, GetUpdatesRequest, SendMessageRequest, Update
from .terminal import Terminal

__all__ = ["DEFAULT_API_BASE_URL", "MAX_MESSAGE_LENGTH", "TelegramRelay", "split_text"]

DEFAULT_API_BASE_URL = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096

logger = logging.getLogger(__name__)


def split_text(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Cut ``text`` into pieces of at most ``limit`` characters."""
    return [text[start : start + limit] for start in range(0, len(text), limit)]


class TelegramRelay:
    """Connects a :class:`Terminal` to one Telegram chat.

    Text messages from ``chat_id`` become shell input; every chunk of shell
    output is sent back to the same chat.
    """

    def __init__(
        self,
        terminal: Terminal,
        output: Receiver[bytes],
        *,
        token: str,
        chat_id: int,
        base_url: str = DEFAULT_API_BASE_URL,
        poll_timeout: int = 30,
        retry_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._terminal = terminal
        self._output = output
        self._chat_id = chat_id
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay
        self._offset: int | None = None
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/bot{token}",
            timeout=poll_timeout + 10.0,
            transport=transport,
        )

    @property
    def offset(self) -> int | None:
        return self._offset

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> TelegramRelay:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def api(self, method: str, payload: BaseModel | None = None) -> Any:
        body = payload.model_dump(exclude_none=True) if payload is not None else {}
        try:
            response = await self._client.post(f"/{method}", json=body)
        except httpx.RequestError as exc:
            raise RelayError(method, f"request failed: {exc}") from exc
        try:
            envelope = ApiResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RelayError(method, f"unexpected response (HTTP {response.status_code})") from exc
        if not envelope.ok:
            raise RelayError(method, envelope.description or f"HTTP {response.status_code}")
        return envelope.result

    async def send_message(self, text: str) -> None:
        await self.api("sendMessage", SendMessageRequest(chat_id=self._chat_id, text=text))

    async def poll_once(self) -> list[Update]:
        """Fetch pending updates and move the offset past all of them."""
        request = GetUpdatesRequest(offset=self._offset, timeout=self._poll_timeout)
        result = await self.api("getUpdates", request)
        if not isinstance(result, list):
            raise RelayError("getUpdates", f"unexpected result {type(result).__name__}")
        updates: list[Update] = []
        for raw in result:
            update_id = raw.get("update_id") if isinstance(raw, dict) else None
            if isinstance(update_id, int) and (self._offset is None or update_id >= self._offset):
                self._offset = update_id + 1
            try:
                updates.append(Update.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed update %s", update_id)
        return updates

    def handle_update(self, update: Update) -> None:
        message = update.message
        if message is None:
            return
        if message.chat.id != self._chat_id:
            logger.warning("Received message from unknown chat: %s", message.chat.id)
            return
        if message.text is None:
            logger.warning("Received non-text message")
            return
        logger.debug("Received message %r", message.text)
        self._terminal.write(message.text)

    async def listen_updates(self) -> None:
        logger.info("Starting long-polling bot...")
        while True:
            try:
                updates = await self.poll_once()
            except RelayError as exc:
                logger.error("Failed to fetch updates: %s", exc)
                await asyncio.sleep(self._retry_delay)
                continue
            except Exception:
                logger.exception("Error polling for updates")
                await asyncio.sleep(self._retry_delay)
                continue
            for update in updates:
                self.handle_update(update)

    async def forward_output(self) -> None:
        """Send shell output to the chat until the terminal's output queue closes."""
        logger.info("Terminal forwarder started")
        async for chunk in self._output:
            logger.debug("Terminal output received: %d bytes", len(chunk))
            text = chunk.decode("utf-8", errors="replace")
            for part in split_text(text):
                # The Bot API rejects messages with no visible text.
                if not part.strip():
                    continue
                try:
                    await self.send_message(part)
                except RelayError as exc:
                    logger.error("Failed to send message: %s", exc)
        logger.info("Terminal output ended")

    async def run(self) -> None:
        """Relay in both directions; returns once the shell's output has ended."""
        listener = asyncio.create_task(self.listen_updates(), name="relay-updates")
        try:
            await self.forward_output()
        finally:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
