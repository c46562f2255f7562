from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from .config import Settings, load_settings
from .exceptions import BridgeError
from .log import configure_logging
from .relay import TelegramRelay
from .terminal import Terminal

logger = logging.getLogger("jarvisbot")


async def serve(settings: Settings) -> int:
    try:
        terminal, output = await Terminal.open(settings.SHELL_PATH)
    except BridgeError as exc:
        logger.error("Failed to open terminal: %s", exc)
        return 1

    try:
        async with TelegramRelay(
            terminal,
            output,
            token=settings.BOT_TOKEN,
            chat_id=settings.CHAT_ID,
            base_url=settings.API_BASE_URL,
            poll_timeout=settings.POLL_TIMEOUT,
        ) as relay:
            await relay.run()
    finally:
        await terminal.close(settings.SHUTDOWN_TIMEOUT)
    logger.info("Shell session ended")
    return 0


def main() -> int:
    try:
        settings = load_settings()
    except ValidationError as exc:
        configure_logging()
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(settings.LOG_LEVEL)
    try:
        return asyncio.run(serve(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
