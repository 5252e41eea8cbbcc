import os
import logging
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 20

_TRUE_VALUES = {"1", "true", "yes", "on"}


class BotSettings(BaseModel):
    """Runtime settings of one bot process, read from the environment."""

    github_token: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1, description="Account the bot acts as")
    override_settings: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Single open-bot.yaml used for every repository instead of fetching it",
    )
    database_url: Optional[str] = None
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    isolate_issue_failures: bool = False


def load_override_settings(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Override settings in {path} are not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Override settings in {path} must be a mapping.")
    return data


def load_settings() -> BotSettings:
    """
    Loads settings from the environment (and a .env file, if present).

    Raises:
        KeyError: If GITHUB_TOKEN or OPEN_BOT_USER is not set.
    """
    load_dotenv()

    for name in ("GITHUB_TOKEN", "OPEN_BOT_USER"):
        if not os.getenv(name):
            raise KeyError(name)

    override_path = os.getenv("OPEN_BOT_SETTINGS")
    override_settings = load_override_settings(override_path) if override_path else None
    if override_settings is not None:
        logger.info(f"Using override settings from {override_path} for every repository.")

    return BotSettings(
        github_token=os.environ["GITHUB_TOKEN"],
        user=os.environ["OPEN_BOT_USER"],
        override_settings=override_settings,
        database_url=os.getenv("DATABASE_URL") or None,
        concurrency=int(os.getenv("OPEN_BOT_CONCURRENCY", DEFAULT_CONCURRENCY)),
        isolate_issue_failures=os.getenv("OPEN_BOT_ISOLATE_ISSUE_FAILURES", "").strip().lower() in _TRUE_VALUES,
    )
