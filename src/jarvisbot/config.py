from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .process import DEFAULT_SHELL

DEFAULT_ENV_FILE = Path.home() / ".jarvisbot.env"


class Settings(BaseSettings):
    # Telegram
    BOT_TOKEN: str
    CHAT_ID: int
    API_BASE_URL: str = "https://api.telegram.org"
    POLL_TIMEOUT: int = 30

    # Shell
    SHELL_PATH: str = DEFAULT_SHELL
    SHUTDOWN_TIMEOUT: float = 5.0

    # Logging
    LOG_LEVEL: str = "WARNING"

    model_config = SettingsConfigDict(env_file=DEFAULT_ENV_FILE, extra="ignore")


def load_settings(env_file: os.PathLike[str] | None = None) -> Settings:
    """Read settings from the environment and the bot's env file.

    ``JARVISBOT_ENV_FILE`` overrides the default ``~/.jarvisbot.env``. Values
    already present in the environment win over the file.
    """
    if env_file is None:
        env_file = Path(os.environ.get("JARVISBOT_ENV_FILE", DEFAULT_ENV_FILE))
    return Settings(_env_file=env_file)
