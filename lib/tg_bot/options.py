"""
Options for the update runtime.

Dataclasses describing polling, webhook and dispatcher configuration. Each
validates itself on construction and can be built from a TOML section with
kebab-case keys via ``fromDict``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import constants


def _optionalStrList(value: Any, name: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{name} must be a list of strings")
    return list(value)


@dataclass
class RetryBackoff:
    """
    Exponential backoff used between failed fetches.

    Attributes:
        initial: First delay in seconds
        maximum: Cap for the delay in seconds
        multiplier: Growth factor applied after every consecutive failure
    """

    initial: float = constants.DEFAULT_BACKOFF_INITIAL
    maximum: float = constants.DEFAULT_BACKOFF_MAXIMUM
    multiplier: float = constants.DEFAULT_BACKOFF_MULTIPLIER

    def __post_init__(self):
        """Validate configuration values"""
        if self.initial <= 0:
            raise ValueError("initial must be positive")
        if self.maximum < self.initial:
            raise ValueError("maximum must not be less than initial")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")


@dataclass
class PollingOptions:
    """
    Long polling configuration.

    Attributes:
        timeout: Long-poll wait in seconds passed to getUpdates
        limit: Maximum number of updates per batch (1-100)
        allowedUpdates: Update types to receive, None keeps the platform default
        retryBackoff: Backoff between failed fetches
        retryLimit: Consecutive transient failures tolerated before the session
            stops, None retries forever
    """

    timeout: int = constants.DEFAULT_POLL_TIMEOUT
    limit: int = constants.DEFAULT_POLL_LIMIT
    allowedUpdates: Optional[List[str]] = None
    retryBackoff: RetryBackoff = field(default_factory=RetryBackoff)
    retryLimit: Optional[int] = None

    def __post_init__(self):
        """Validate configuration values"""
        if not 0 <= self.timeout <= constants.MAX_POLL_TIMEOUT:
            raise ValueError(f"timeout must be in [0, {constants.MAX_POLL_TIMEOUT}]")
        if not 1 <= self.limit <= constants.MAX_POLL_LIMIT:
            raise ValueError(f"limit must be in [1, {constants.MAX_POLL_LIMIT}]")
        if self.retryLimit is not None and self.retryLimit < 0:
            raise ValueError("retryLimit must not be negative")

    @classmethod
    def fromDict(cls, config: Dict[str, Any]) -> "PollingOptions":
        """Build options from the [polling] config section."""
        return cls(
            timeout=int(config.get("timeout", constants.DEFAULT_POLL_TIMEOUT)),
            limit=int(config.get("limit", constants.DEFAULT_POLL_LIMIT)),
            allowedUpdates=_optionalStrList(config.get("allowed-updates", None), "allowed-updates"),
            retryBackoff=RetryBackoff(
                initial=float(config.get("retry-initial", constants.DEFAULT_BACKOFF_INITIAL)),
                maximum=float(config.get("retry-max", constants.DEFAULT_BACKOFF_MAXIMUM)),
                multiplier=float(config.get("retry-multiplier", constants.DEFAULT_BACKOFF_MULTIPLIER)),
            ),
            retryLimit=config.get("retry-limit", None),
        )


@dataclass
class WebhookOptions:
    """
    Webhook listener configuration.

    Attributes:
        listenHost: Local address to bind
        listenPort: Local port to bind, 0 picks a free one
        path: URL path receiving deliveries
        externalUrl: Public URL registered with the platform (outside the runtime)
        certificate: Public certificate file uploaded on setWebhook (self-signed setups)
        secretToken: Expected X-Telegram-Bot-Api-Secret-Token header value
        maxConnections: Parallel connections the platform may open
        allowedUpdates: Update types to receive
        sslCertFile: Certificate for serving TLS locally
        sslKeyFile: Private key for serving TLS locally
    """

    listenHost: str = constants.DEFAULT_WEBHOOK_HOST
    listenPort: int = constants.DEFAULT_WEBHOOK_PORT
    path: str = constants.DEFAULT_WEBHOOK_PATH
    externalUrl: Optional[str] = None
    certificate: Optional[str] = None
    secretToken: Optional[str] = None
    maxConnections: int = constants.DEFAULT_WEBHOOK_MAX_CONNECTIONS
    allowedUpdates: Optional[List[str]] = None
    sslCertFile: Optional[str] = None
    sslKeyFile: Optional[str] = None

    def __post_init__(self):
        """Validate configuration values"""
        if not 0 <= self.listenPort <= 65535:
            raise ValueError("listenPort must be in [0, 65535]")
        if not self.path.startswith("/"):
            raise ValueError("path must start with '/'")
        if not 1 <= self.maxConnections <= 100:
            raise ValueError("maxConnections must be in [1, 100]")
        if (self.sslCertFile is None) != (self.sslKeyFile is None):
            raise ValueError("sslCertFile and sslKeyFile must be set together")

    @classmethod
    def fromDict(cls, config: Dict[str, Any]) -> "WebhookOptions":
        """Build options from the [webhook] config section."""
        return cls(
            listenHost=str(config.get("listen-host", constants.DEFAULT_WEBHOOK_HOST)),
            listenPort=int(config.get("listen-port", constants.DEFAULT_WEBHOOK_PORT)),
            path=str(config.get("path", constants.DEFAULT_WEBHOOK_PATH)),
            externalUrl=config.get("external-url", None),
            certificate=config.get("certificate", None),
            secretToken=config.get("secret-token", None),
            maxConnections=int(config.get("max-connections", constants.DEFAULT_WEBHOOK_MAX_CONNECTIONS)),
            allowedUpdates=_optionalStrList(config.get("allowed-updates", None), "allowed-updates"),
            sslCertFile=config.get("ssl-certfile", None),
            sslKeyFile=config.get("ssl-keyfile", None),
        )


@dataclass
class DispatcherOptions:
    """
    Handler execution configuration.

    Attributes:
        workers: Number of concurrently running handler invocations
        handlerTimeout: Seconds after which a handler invocation is cancelled
        shutdownTimeout: Seconds stop() waits for already scheduled handlers
    """

    workers: int = constants.DEFAULT_WORKERS
    handlerTimeout: float = constants.DEFAULT_HANDLER_TIMEOUT
    shutdownTimeout: float = constants.DEFAULT_SHUTDOWN_TIMEOUT

    def __post_init__(self):
        """Validate configuration values"""
        if self.workers <= 0:
            raise ValueError("workers must be positive")
        if self.handlerTimeout <= 0:
            raise ValueError("handlerTimeout must be positive")
        if self.shutdownTimeout < 0:
            raise ValueError("shutdownTimeout must not be negative")

    @classmethod
    def fromDict(cls, config: Dict[str, Any]) -> "DispatcherOptions":
        """Build options from the [dispatcher] config section."""
        return cls(
            workers=int(config.get("workers", constants.DEFAULT_WORKERS)),
            handlerTimeout=float(config.get("handler-timeout", constants.DEFAULT_HANDLER_TIMEOUT)),
            shutdownTimeout=float(config.get("shutdown-timeout", constants.DEFAULT_SHUTDOWN_TIMEOUT)),
        )
