"""
Telegram bot update runtime - runs a bot from a TOML configuration.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from internal.config.manager import ConfigManager
from lib.logging_utils import initLogging
from lib.tg_bot import Bot, FatalIngestionError, HandlerError, IngestionMode
from lib.tg_bot.models import Message, Update

# Configure basic logging first
logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO)
# set higher logging level for httpx to avoid all GET and POST requests being logged
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


class BotRunner:
    """Builds the bot from configuration and runs it until interrupted."""

    def __init__(self, configPath: str = "config.toml", configDirs: Optional[List[str]] = None):
        """Initialize bot with all components."""
        self.configManager = ConfigManager(configPath, configDirs)

        # Initialize logging with config
        initLogging(self.configManager.getLoggingConfig())

        username = self.configManager.getBotUsername()
        token = self.configManager.getBotToken()
        dispatcherOptions = self.configManager.getDispatcherConfig()
        self.mode = self.configManager.getIngestionMode()

        match self.mode:
            case IngestionMode.POLLING:
                self.bot = Bot.createPolling(
                    username,
                    token,
                    self.configManager.getPollingConfig(),
                    dispatcherOptions=dispatcherOptions,
                )
            case IngestionMode.WEBHOOK:
                self.bot = Bot.createWebhook(
                    username,
                    token,
                    self.configManager.getWebhookConfig(),
                    dispatcherOptions=dispatcherOptions,
                )

        self.setupHandlers()

    def setupHandlers(self) -> None:
        """Set up bot command and fallback handlers."""
        self.bot.onCommand("/ping", self.pingHandler)
        self.bot.onAnyUpdate(self.anyUpdateHandler)
        self.bot.addErrorHandler(self.errorHandler)

    async def pingHandler(self, message: Message, argument: Optional[str]) -> None:
        """Handle /ping command."""
        logger.info(f"Ping from chat #{message.chat.id} (message #{message.message_id}), argument: {argument!r}")

    async def anyUpdateHandler(self, update: Update) -> None:
        """Log every update no other handler took."""
        logger.debug(f"Unhandled Update#{update.update_id} of type {update.update_type}")

    async def errorHandler(self, error: HandlerError, update: Update) -> None:
        """Handle errors."""
        logger.error(f"Unhandled exception while handling Update#{update.update_id}: {error}")

    async def registerWebhook(self) -> None:
        """Point the platform at our listener (webhook) or make sure no webhook is set (polling)."""
        client = self.bot.client
        me = await client.getMe()
        if me.username and me.username.lower() != self.bot.username.lower():
            logger.warning(f"Configured username @{self.bot.username} differs from actual @{me.username}")

        if self.mode == IngestionMode.POLLING:
            # getUpdates is refused while a webhook is set
            await client.deleteWebhook()
            return

        options = self.configManager.getWebhookConfig()
        if options.externalUrl is None:
            logger.info("No webhook external-url configured, assuming it is registered already")
            return

        await client.setWebhook(
            options.externalUrl,
            certificate=options.certificate,
            maxConnections=options.maxConnections,
            allowedUpdates=options.allowedUpdates,
            secretToken=options.secretToken,
        )
        info = await client.getWebhookInfo()
        logger.info(f"Webhook set to {info.get('url', '')}, pending updates: {info.get('pending_update_count', 0)}")

    async def runAsync(self) -> None:
        try:
            await self.registerWebhook()
        except Exception:
            await self.bot.client.aclose()
            raise
        await self.bot.runAsync()

    def run(self) -> None:
        """Start the bot."""
        logger.info(f"Starting @{self.bot.username} in {self.mode} mode, dood!")
        asyncio.run(self.runAsync())


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Telegram bot update runtime, dood!")
    parser.add_argument(
        "-c",
        "--config",
        default="config.toml",
        help="Path to configuration file (default: config.toml)",
    )
    parser.add_argument(
        "--config-dir",
        action="append",
        help="Directory to search for .toml config files recursively (can be specified multiple times), dood!",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Pretty-print loaded configuration and exit, dood!",
    )
    args = parser.parse_args()
    args.config = os.path.abspath(args.config)

    # Convert config directories to absolute paths
    if args.config_dir:
        args.config_dir = [os.path.abspath(dirPath) for dirPath in args.config_dir]

    return args


def prettyPrintConfig(configManager: ConfigManager):
    """Pretty-print the loaded configuration, dood!"""
    config = dict(configManager.config)
    # Never print the token
    if "token" in config.get("bot", {}):
        config["bot"] = {**config["bot"], "token": "***"}

    print("=== Bot Configuration ===")
    print()
    print(json.dumps(config, indent=2, ensure_ascii=False, sort_keys=True, default=str))
    print()
    print("=== Configuration loaded successfully, dood! ===")


def main():
    """Main entry point."""
    args = parse_arguments()

    try:
        # Handle --print-config argument first
        if args.print_config:
            prettyPrintConfig(ConfigManager(args.config, args.config_dir))
            sys.exit(0)

        runner = BotRunner(configPath=args.config, configDirs=args.config_dir)
        runner.run()
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except FatalIngestionError as e:
        logger.error(f"Bot stopped: {e}")
        sys.exit(2)
    except Exception as e:
        logger.error(f"Bot crashed: {e}")
        logger.exception(e)
        sys.exit(1)


if __name__ == "__main__":
    main()
