"""
Configuration management for the bot runtime.
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli

import lib.utils as utils
from lib.tg_bot.options import DispatcherOptions, PollingOptions, WebhookOptions
from lib.tg_bot.session import IngestionMode

logger = logging.getLogger(__name__)

PLACEHOLDER_TOKENS = ("", "YOUR_BOT_TOKEN_HERE")


def replaceMatchToEnv(match: re.Match[str]) -> str:
    """Replace environment variable placeholders with actual values.

    Args:
        match: A regex match object containing the environment variable name.

    Returns:
        str: The value of the environment variable or the original placeholder
             if the variable is not set.
    """
    key = match.group(1)
    return os.getenv(key, match.group(0))


def substituteEnvVars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} placeholders in configuration values.

    Strings get placeholders replaced, dictionaries and lists are processed
    recursively, other values are returned unchanged.
    """
    if isinstance(value, str):
        return re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_-]*)\}", replaceMatchToEnv, value)
    elif isinstance(value, dict):
        return {k: substituteEnvVars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substituteEnvVars(item) for item in value]
    return value


class ConfigManager:
    """Manages configuration loading and validation for the bot runtime."""

    def __init__(
        self, configPath: str = "config.toml", configDirs: Optional[List[str]] = None, dotEnvFile: str = ".env"
    ):
        """Initialize ConfigManager with config file path and optional config directories."""
        self.config_path = configPath
        self.config_dirs = configDirs or []
        utils.load_dotenv(path=dotEnvFile)
        self.config = substituteEnvVars(self._loadConfig())

        rootDir = self.config.get("application", {}).get("root-dir", None)
        if rootDir is not None:
            os.chdir(rootDir)
            logger.info(f"Changed root directory to {rootDir}")

    def _findTomlFilesRecursive(self, directory: str) -> List[Path]:
        """Recursively find all .toml files in a directory, dood!"""
        dirPath = Path(directory)

        if not dirPath.exists():
            logger.warning(f"Config directory {directory} does not exist, skipping, dood!")
            return []

        if not dirPath.is_dir():
            logger.warning(f"Config path {directory} is not a directory, skipping, dood!")
            return []

        tomlFiles = [tomlFile for tomlFile in dirPath.rglob("*.toml") if tomlFile.is_file()]
        for tomlFile in tomlFiles:
            logger.debug(f"Found config file: {tomlFile}")

        return sorted(tomlFiles)  # Sort for consistent ordering

    def _mergeConfigs(self, baseConfig: Dict[str, Any], newConfig: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries, dood!"""
        merged = baseConfig.copy()

        for key, value in newConfig.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._mergeConfigs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def _loadConfig(self) -> Dict[str, Any]:
        """Load configuration from TOML file and optional config directories.

        Files found in config directories are merged over the main file in
        sorted order, a broken file there is logged and skipped.

        Raises:
            SystemExit: If there is neither a config file nor config directories,
                the main file is invalid, or ``bot.token`` is missing
        """
        configFile = Path(self.config_path)
        hasConfigFile = configFile.exists()
        if not hasConfigFile and not self.config_dirs:
            logger.error(f"Configuration file {self.config_path} not found!")
            sys.exit(1)

        config: Dict[str, Any] = {}
        if hasConfigFile:
            try:
                with open(configFile, "rb") as f:
                    config = tomli.load(f)
            except (OSError, tomli.TOMLDecodeError) as e:
                logger.error(f"Failed to load configuration from {self.config_path}: {e}")
                sys.exit(1)
            logger.info(f"Loaded main config from {self.config_path}")

        if self.config_dirs:
            logger.info(f"Scanning {len(self.config_dirs)} config directories for .toml files, dood!")

            for configDir in self.config_dirs:
                tomlFiles = self._findTomlFilesRecursive(configDir)
                logger.info(f"Found {len(tomlFiles)} .toml files in {configDir}")

                for tomlFile in tomlFiles:
                    try:
                        with open(tomlFile, "rb") as f:
                            dirConfig = tomli.load(f)
                    except (OSError, tomli.TOMLDecodeError) as e:
                        logger.error(f"Failed to load config file {tomlFile}: {e}")
                        # Continue with other files instead of exiting
                        continue

                    config = self._mergeConfigs(config, dirConfig)
                    logger.info(f"Merged config from {tomlFile}")

        # Validate required configuration
        if not config.get("bot", {}).get("token"):
            logger.error("Bot token not found in configuration!")
            sys.exit(1)

        logger.info("Configuration loaded and merged successfully, dood!")
        return config

    def get(self, key: str, default=None) -> Any:
        """Get configuration value by key."""
        return self.config.get(key, default)

    def getBotConfig(self) -> Dict[str, Any]:
        """Get bot-specific configuration (token, username, mode)."""
        return self.get("bot", {})

    def getLoggingConfig(self) -> Dict[str, Any]:
        """Get logging-specific configuration."""
        return self.get("logging", {})

    def getBotToken(self) -> str:
        """Get bot token from configuration."""
        token = self.getBotConfig().get("token", "")
        if token in PLACEHOLDER_TOKENS:
            logger.error("Please set your bot token in config.toml!")
            sys.exit(1)
        return token

    def getBotUsername(self) -> str:
        """Get bot username without leading '@'."""
        return str(self.getBotConfig().get("username", "")).lstrip("@")

    def getIngestionMode(self) -> IngestionMode:
        """Get ingestion mode, polling if not configured.

        Raises:
            ValueError: If the mode is neither "polling" nor "webhook"
        """
        return IngestionMode(str(self.getBotConfig().get("mode", IngestionMode.POLLING)).lower())

    def getPollingConfig(self) -> PollingOptions:
        """
        Get long polling configuration from the [polling] section

        Returns:
            Validated PollingOptions
        """
        return PollingOptions.fromDict(self.get("polling", {}))

    def getWebhookConfig(self) -> WebhookOptions:
        """
        Get webhook listener configuration from the [webhook] section

        Returns:
            Validated WebhookOptions
        """
        return WebhookOptions.fromDict(self.get("webhook", {}))

    def getDispatcherConfig(self) -> DispatcherOptions:
        """
        Get handler execution configuration from the [dispatcher] section

        Returns:
            Validated DispatcherOptions
        """
        return DispatcherOptions.fromDict(self.get("dispatcher", {}))
