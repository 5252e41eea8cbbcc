import base64
import binascii
import logging
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from open_bot.domain.exceptions import ConfigReadError
from open_bot.domain.models import RepoConfig, RuleEngine

logger = logging.getLogger(__name__)

SETTINGS_PATH = "/open-bot.yaml"


class ConfigLoader:
    """
    Resolves the RepoConfig of a repository.

    Either every repository shares ``override_settings`` (no forge access at all),
    or the settings file is fetched from the repository's default branch.
    """

    def __init__(self, github_client, override_settings: Optional[Dict[str, Any]] = None,
                 rule_engine: Optional[RuleEngine] = None):
        self.github_client = github_client
        self.override_settings = override_settings
        self.rule_engine = rule_engine

    async def get_config(self, owner: str, repo: str) -> RepoConfig:
        """
        Builds a fresh RepoConfig for ``owner/repo``.

        Raises:
            ConfigReadError: If the settings cannot be fetched, decoded, parsed or validated.
        """
        if self.override_settings is not None:
            settings = self.override_settings
        else:
            settings = await self._fetch_settings(owner, repo)

        try:
            return RepoConfig.from_settings(settings, self.rule_engine)
        except ValidationError as e:
            raise ConfigReadError(owner, repo, "validate", e) from e

    async def _fetch_settings(self, owner: str, repo: str) -> Dict[str, Any]:
        try:
            blob = await self.github_client.get_blob(owner, repo, SETTINGS_PATH)
        except Exception as e:
            raise ConfigReadError(owner, repo, "fetch", e) from e

        try:
            content = base64.b64decode(blob["content"]).decode("utf-8")
        except (KeyError, TypeError, binascii.Error, UnicodeDecodeError) as e:
            raise ConfigReadError(owner, repo, "decode", e) from e

        try:
            settings = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigReadError(owner, repo, "parse", e) from e

        if not isinstance(settings, dict):
            raise ConfigReadError(owner, repo, "parse", ValueError(f"{SETTINGS_PATH} is not a mapping"))

        logger.debug(f"Loaded {SETTINGS_PATH} of {owner}/{repo} (bot: {settings.get('bot')})")
        return settings
