"""
Tests for the Configuration Manager.

This module covers configuration loading, merging of config directories,
environment substitution, validation and the typed section accessors.
"""

import tempfile
from pathlib import Path

import pytest

from internal.config.manager import ConfigManager, substituteEnvVars
from lib.tg_bot.options import DispatcherOptions, PollingOptions, WebhookOptions
from lib.tg_bot.session import IngestionMode

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def tempDir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def noDotEnv(tempDir):
    """Path of a dotenv file which does not exist."""
    return str(tempDir / "missing.env")


@pytest.fixture
def sampleConfigToml():
    """Provide sample valid TOML configuration."""
    return """
[bot]
token = "test_bot_token_123"
username = "TestBot"
mode = "polling"

[polling]
timeout = 25
limit = 50
allowed-updates = ["message", "callback_query"]
retry-initial = 0.5
retry-max = 30.0

[dispatcher]
workers = 4
handler-timeout = 120

[logging]
level = "INFO"
"""


@pytest.fixture
def webhookConfigToml():
    """Provide webhook mode configuration."""
    return """
[bot]
token = "webhook_token"
username = "@HookBot"
mode = "Webhook"

[webhook]
listen-host = "127.0.0.1"
listen-port = 8080
path = "/tg/updates"
external-url = "https://example.com/tg/updates"
secret-token = "s3cret"
max-connections = 10
"""


@pytest.fixture
def overrideToml():
    """Provide override configuration TOML."""
    return """
[bot]
token = "override_token"

[polling]
timeout = 10

[logging]
level = "DEBUG"
"""


@pytest.fixture
def invalidSyntaxToml():
    """Provide invalid TOML syntax."""
    return """
[bot
token = "missing_bracket"
"""


# ============================================================================
# Helper Functions
# ============================================================================


def createConfigFile(directory: Path, filename: str, content: str) -> Path:
    """Create a TOML config file in the specified directory."""
    filePath = directory / filename
    filePath.write_text(content)
    return filePath


def createConfigDir(baseDir: Path, dirName: str, files: dict) -> Path:
    """Create a config directory with multiple TOML files."""
    configDir = baseDir / dirName
    configDir.mkdir(parents=True, exist_ok=True)

    for filename, content in files.items():
        createConfigFile(configDir, filename, content)

    return configDir


# ============================================================================
# Loading Tests
# ============================================================================


class TestConfigurationLoading:
    """Test configuration loading from TOML files."""

    def testLoadSingleConfigFile(self, tempDir, sampleConfigToml, noDotEnv):
        """Test loading configuration from single TOML file."""
        configPath = createConfigFile(tempDir, "config.toml", sampleConfigToml)

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        assert manager.config_path == str(configPath)
        assert manager.config["bot"]["token"] == "test_bot_token_123"
        assert manager.getLoggingConfig() == {"level": "INFO"}

    def testLoadWithoutMainFileButWithDirs(self, tempDir, sampleConfigToml, noDotEnv):
        """Config directories alone are enough if they provide the token."""
        configDir = createConfigDir(tempDir, "conf.d", {"bot.toml": sampleConfigToml})

        manager = ConfigManager(str(tempDir / "nonexistent.toml"), configDirs=[str(configDir)], dotEnvFile=noDotEnv)

        assert manager.getBotToken() == "test_bot_token_123"

    def testNoConfigAtAllExits(self, tempDir, noDotEnv):
        """Missing config file without config directories exits."""
        with pytest.raises(SystemExit):
            ConfigManager(str(tempDir / "nonexistent.toml"), dotEnvFile=noDotEnv)

    def testMergeOrderAndOverride(self, tempDir, sampleConfigToml, overrideToml, noDotEnv):
        """Files from config dirs are merged over the main file in sorted order."""
        configPath = createConfigFile(tempDir, "config.toml", sampleConfigToml)
        configDir = createConfigDir(
            tempDir,
            "configs",
            {
                "01-override.toml": overrideToml,
                "00-base.toml": '[polling]\ntimeout = 40\nlimit = 7\n',
            },
        )

        manager = ConfigManager(str(configPath), configDirs=[str(configDir)], dotEnvFile=noDotEnv)

        assert manager.getBotToken() == "override_token"
        # 01-override wins over 00-base
        assert manager.config["polling"]["timeout"] == 10
        # 00-base wins over main config
        assert manager.config["polling"]["limit"] == 7
        # Untouched values from the main file survive the merge
        assert manager.config["bot"]["username"] == "TestBot"
        assert manager.config["polling"]["allowed-updates"] == ["message", "callback_query"]

    def testRecursiveConfigDiscovery(self, tempDir, sampleConfigToml, noDotEnv):
        """Nested directories are scanned too."""
        configPath = createConfigFile(tempDir, "config.toml", sampleConfigToml)
        nested = tempDir / "conf.d" / "nested" / "deeper"
        nested.mkdir(parents=True)
        createConfigFile(nested, "extra.toml", '[dispatcher]\nworkers = 2\n')

        manager = ConfigManager(str(configPath), configDirs=[str(tempDir / "conf.d")], dotEnvFile=noDotEnv)

        assert manager.getDispatcherConfig().workers == 2


# ============================================================================
# Validation and Error Handling Tests
# ============================================================================


class TestConfigurationValidation:
    """Test configuration validation and error handling."""

    def testMissingBotTokenExits(self, tempDir, noDotEnv):
        """A config without bot.token is rejected."""
        configPath = createConfigFile(tempDir, "config.toml", '[logging]\nlevel = "INFO"\n')

        with pytest.raises(SystemExit):
            ConfigManager(str(configPath), dotEnvFile=noDotEnv)

    def testPlaceholderTokenExits(self, tempDir, noDotEnv):
        """The sample placeholder token is refused by getBotToken."""
        configPath = createConfigFile(tempDir, "config.toml", '[bot]\ntoken = "YOUR_BOT_TOKEN_HERE"\n')

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        with pytest.raises(SystemExit):
            manager.getBotToken()

    def testInvalidMainFileExits(self, tempDir, invalidSyntaxToml, noDotEnv):
        """Broken main config file exits."""
        configPath = createConfigFile(tempDir, "config.toml", invalidSyntaxToml)

        with pytest.raises(SystemExit):
            ConfigManager(str(configPath), dotEnvFile=noDotEnv)

    def testInvalidFileInConfigDirIsSkipped(self, tempDir, sampleConfigToml, invalidSyntaxToml, noDotEnv):
        """Broken file in a config dir is skipped, others are still merged."""
        configPath = createConfigFile(tempDir, "config.toml", sampleConfigToml)
        configDir = createConfigDir(
            tempDir,
            "configs",
            {"00-broken.toml": invalidSyntaxToml, "01-good.toml": '[dispatcher]\nworkers = 3\n'},
        )

        manager = ConfigManager(str(configPath), configDirs=[str(configDir)], dotEnvFile=noDotEnv)

        assert manager.getDispatcherConfig().workers == 3

    def testNonExistentConfigDirIsSkipped(self, tempDir, sampleConfigToml, noDotEnv):
        """Missing config directory is only a warning."""
        configPath = createConfigFile(tempDir, "config.toml", sampleConfigToml)

        manager = ConfigManager(str(configPath), configDirs=[str(tempDir / "nope")], dotEnvFile=noDotEnv)

        assert manager.getBotToken() == "test_bot_token_123"

    def testInvalidPollingSectionRaises(self, tempDir, noDotEnv):
        """Out of range options are reported when the section is read."""
        configPath = createConfigFile(tempDir, "config.toml", '[bot]\ntoken = "t"\n[polling]\nlimit = 500\n')

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        with pytest.raises(ValueError):
            manager.getPollingConfig()


# ============================================================================
# Environment Substitution Tests
# ============================================================================


class TestEnvironmentSubstitution:
    """Test ${VAR} placeholders and dotenv loading."""

    def testSubstituteNestedValues(self, monkeypatch):
        """Placeholders are replaced in strings inside dicts and lists."""
        monkeypatch.setenv("TG_TEST_VALUE", "replaced")

        result = substituteEnvVars({"a": "${TG_TEST_VALUE}", "b": ["x-${TG_TEST_VALUE}", 5], "c": True})

        assert result == {"a": "replaced", "b": ["x-replaced", 5], "c": True}

    def testUnknownVariableIsKept(self, monkeypatch):
        """Unset variables leave the placeholder untouched."""
        monkeypatch.delenv("TG_TEST_UNSET", raising=False)

        assert substituteEnvVars("${TG_TEST_UNSET}") == "${TG_TEST_UNSET}"

    def testTokenFromDotEnv(self, tempDir, monkeypatch):
        """Token placeholder is resolved from the dotenv file."""
        # Registered with monkeypatch so the value written by load_dotenv is undone
        monkeypatch.setenv("TG_TEST_TOKEN", "unset")
        dotEnv = tempDir / ".env"
        dotEnv.write_text('# comment\nTG_TEST_TOKEN="123:from-dotenv"\n')
        configPath = createConfigFile(tempDir, "config.toml", '[bot]\ntoken = "${TG_TEST_TOKEN}"\n')

        manager = ConfigManager(str(configPath), dotEnvFile=str(dotEnv))

        assert manager.getBotToken() == "123:from-dotenv"


# ============================================================================
# Accessor Tests
# ============================================================================


class TestGetterMethods:
    """Test typed section accessors."""

    def testPollingMode(self, tempDir, sampleConfigToml, noDotEnv):
        """Polling sections are converted into options."""
        configPath = createConfigFile(tempDir, "config.toml", sampleConfigToml)

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        assert manager.getIngestionMode() == IngestionMode.POLLING
        assert manager.getBotUsername() == "TestBot"

        polling = manager.getPollingConfig()
        assert isinstance(polling, PollingOptions)
        assert polling.timeout == 25
        assert polling.limit == 50
        assert polling.allowedUpdates == ["message", "callback_query"]
        assert polling.retryBackoff.initial == 0.5
        assert polling.retryBackoff.maximum == 30.0

        dispatcher = manager.getDispatcherConfig()
        assert isinstance(dispatcher, DispatcherOptions)
        assert dispatcher.workers == 4
        assert dispatcher.handlerTimeout == 120.0

    def testWebhookMode(self, tempDir, webhookConfigToml, noDotEnv):
        """Webhook sections are converted into options, mode is case-insensitive."""
        configPath = createConfigFile(tempDir, "config.toml", webhookConfigToml)

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        assert manager.getIngestionMode() == IngestionMode.WEBHOOK
        assert manager.getBotUsername() == "HookBot"

        webhook = manager.getWebhookConfig()
        assert isinstance(webhook, WebhookOptions)
        assert webhook.listenHost == "127.0.0.1"
        assert webhook.listenPort == 8080
        assert webhook.path == "/tg/updates"
        assert webhook.externalUrl == "https://example.com/tg/updates"
        assert webhook.secretToken == "s3cret"
        assert webhook.maxConnections == 10

    def testDefaultsForMissingSections(self, tempDir, noDotEnv):
        """Missing sections give default options."""
        configPath = createConfigFile(tempDir, "config.toml", '[bot]\ntoken = "t"\n')

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        assert manager.getIngestionMode() == IngestionMode.POLLING
        assert manager.getPollingConfig() == PollingOptions()
        assert manager.getWebhookConfig() == WebhookOptions()
        assert manager.getDispatcherConfig() == DispatcherOptions()
        assert manager.getLoggingConfig() == {}

    def testInvalidModeRaises(self, tempDir, noDotEnv):
        """Unknown ingestion mode is a ValueError."""
        configPath = createConfigFile(tempDir, "config.toml", '[bot]\ntoken = "t"\nmode = "carrier-pigeon"\n')

        manager = ConfigManager(str(configPath), dotEnvFile=noDotEnv)

        with pytest.raises(ValueError):
            manager.getIngestionMode()
