"""
Logging setup for the bot runtime from the ``[logging]`` config section.

Keys understood in ``[logging]`` and in every ``[logging.logger."<name>"]``
subsection:
    level, format, propagate (subsections only),
    console, console-level,
    file, file-level, rotate, backup-count
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_BACKUP_COUNT = 7

# httpx logs every request URL at INFO, and the URL contains the bot token
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.error", "uvicorn.access")


def getLogLevelByStr(levelStr: Any, default: Optional[int] = None) -> Optional[int]:
    """Get log level by name ("debug", "INFO", ...), or default if unknown."""
    if isinstance(levelStr, int) and not isinstance(levelStr, bool):
        return levelStr
    level = getattr(logging, str(levelStr).upper(), None)
    if not isinstance(level, int):
        logger.error(f"Invalid log level '{levelStr}'")
        return default
    return level


def createConsoleHandler(config: Dict[str, Any], level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(getLogLevelByStr(config.get("console-level", level), level))
    handler.setFormatter(formatter)
    return handler


def createFileHandler(
    config: Dict[str, Any], level: int, formatter: logging.Formatter
) -> Optional[logging.Handler]:
    """Create (rotating) file handler for ``config["file"]``.

    Returns:
        The handler, or None if the log file cannot be opened
    """
    logFile = Path(config["file"])
    try:
        logFile.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler
        if config.get("rotate", False):
            handler = TimedRotatingFileHandler(
                filename=logFile,
                when="midnight",
                interval=1,
                backupCount=int(config.get("backup-count", DEFAULT_BACKUP_COUNT)),
                encoding="utf-8",
            )
        else:
            handler = logging.FileHandler(logFile, encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to open log file {logFile}: {e}")
        return None

    handler.setLevel(getLogLevelByStr(config.get("file-level", level), level))
    handler.setFormatter(formatter)
    return handler


def configureLogger(localLogger: logging.Logger, config: Dict[str, Any]) -> List[logging.Handler]:
    """Apply one config section to a logger, replacing its handlers.

    Returns:
        Handlers attached to the logger
    """
    if "propagate" in config:
        localLogger.propagate = bool(config["propagate"])

    if "level" in config:
        logLevel = getLogLevelByStr(config["level"])
        if logLevel is not None:
            localLogger.setLevel(logLevel)
    level = localLogger.getEffectiveLevel()

    for handler in localLogger.handlers[:]:
        localLogger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.get("format", DEFAULT_FORMAT))
    handlers: List[logging.Handler] = []
    if config.get("console", False):
        handlers.append(createConsoleHandler(config, level, formatter))
    if "file" in config:
        fileHandler = createFileHandler(config, level, formatter)
        if fileHandler is not None:
            handlers.append(fileHandler)

    for handler in handlers:
        localLogger.addHandler(handler)
        logger.debug(f"Logging {localLogger.name} via {type(handler).__name__}, logLevel: {handler.level}")
    return handlers


def quietNoisyLoggers(rootLevel: int) -> None:
    """Raise chatty third-party loggers to WARNING unless root logs at WARNING or above anyway."""
    if rootLevel >= logging.WARNING:
        return
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def initLogging(config: Dict[str, Any]) -> None:
    """Configure root and named loggers from the ``[logging]`` section."""
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logging.INFO)
    configureLogger(rootLogger, config)
    rootLevel = rootLogger.getEffectiveLevel()

    quietNoisyLoggers(rootLevel)

    for loggerName, loggerConfig in config.get("logger", {}).items():
        configureLogger(logging.getLogger(loggerName), loggerConfig)

    logger.info(f"Logging configured: root level={logging.getLevelName(rootLevel)}")
