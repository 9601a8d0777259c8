"""
Webhook ingestion.

The WebhookIngestor hosts a FastAPI application served by uvicorn. Every
accepted POST body is parsed into one Update and handed to the dispatcher,
the response is sent right away without waiting for the handler. Registering
the public URL with the platform is done outside, before the session starts.
"""

import asyncio
import contextlib
import hmac
import logging
import socket
from typing import Any, Dict, Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .constants import SECRET_TOKEN_HEADER
from .dispatcher import Dispatcher
from .exceptions import AlreadyRunningError, FatalIngestionError, MalformedDeliveryError
from .models import Update
from .observer import DispatchObserver
from .options import WebhookOptions

logger = logging.getLogger(__name__)

# Seconds uvicorn waits for open connections on shutdown
GRACEFUL_SHUTDOWN_TIMEOUT: int = 10


class EmbeddedServer(uvicorn.Server):
    """uvicorn server leaving signal handling to the embedding application"""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class WebhookIngestor:
    """Push-based ingestor receiving updates over HTTP.

    Attributes:
        app: FastAPI application with the delivery and health endpoints
        boundAddress: (host, port) actually bound, None while not running
        received: Deliveries handed to the dispatcher
        rejected: Deliveries answered with a client error
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        options: Optional[WebhookOptions] = None,
        observer: Optional[DispatchObserver] = None,
    ):
        self.dispatcher = dispatcher
        self.options = options or WebhookOptions()
        self.observer = observer if observer is not None else dispatcher.observer
        self.boundAddress: Optional[Tuple[str, int]] = None
        self.received = 0
        self.rejected = 0
        self.app = self.createApp()
        self._server: Optional[EmbeddedServer] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    @property
    def isRunning(self) -> bool:
        return self._task is not None and not self._task.done()

    def createApp(self) -> FastAPI:
        """Build the FastAPI application serving ``options.path``."""
        app = FastAPI(title="Telegram bot webhook", docs_url=None, redoc_url=None, openapi_url=None)
        path = self.options.path

        @app.post(path)
        async def receiveUpdate(request: Request) -> JSONResponse:
            if not self._checkSecret(request.headers.get(SECRET_TOKEN_HEADER)):
                self.rejected += 1
                logger.warning(f"Rejected webhook delivery from {request.client}: bad secret token")
                return JSONResponse({"ok": False, "description": "Forbidden"}, status_code=403)

            try:
                body = await request.json()
            except ValueError as e:
                return self._reject(MalformedDeliveryError(f"Body is not valid JSON: {type(e).__name__}"))
            try:
                update = Update.from_dict(body)
            except MalformedDeliveryError as e:
                return self._reject(e)

            if not self.dispatcher.isOpen:
                # Not acknowledged, so the platform redelivers it later
                logger.info(f"Dispatcher is closed, refusing Update#{update.update_id}")
                return JSONResponse({"ok": False, "description": "Service Unavailable"}, status_code=503)

            self.received += 1
            self.dispatcher.dispatch(update)
            return JSONResponse({"ok": True})

        @app.get(path.rstrip("/") + "/health")
        async def health() -> Dict[str, Any]:
            return {
                "ok": True,
                "running": self.isRunning,
                "received": self.received,
                "rejected": self.rejected,
            }

        return app

    def _checkSecret(self, received: Optional[str]) -> bool:
        expected = self.options.secretToken
        if expected is None:
            return True
        if received is None:
            return False
        return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))

    def _reject(self, error: MalformedDeliveryError) -> JSONResponse:
        self.rejected += 1
        logger.warning(f"Rejected malformed webhook delivery: {error}")
        self.observer.onIngestionError(error, False)
        return JSONResponse({"ok": False, "description": str(error)}, status_code=400)

    def _bindSocket(self) -> socket.socket:
        host, port = self.options.listenHost, self.options.listenPort
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            raise FatalIngestionError(f"Cannot bind webhook listener to {host}:{port}: {e}") from e
        return sock

    async def start(self) -> None:
        """Bind the listener and start serving.

        Returns once the server accepts connections.

        Raises:
            AlreadyRunningError: If the listener is already running
            FatalIngestionError: If the address can not be bound or the server fails to start
        """
        if self.isRunning:
            raise AlreadyRunningError("Webhook listener is already running")

        sock = self._bindSocket()
        self.boundAddress = sock.getsockname()[:2]
        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            ssl_certfile=self.options.sslCertFile,
            ssl_keyfile=self.options.sslKeyFile,
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT,
        )
        self._stopping = False
        self._server = EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]), name="tg-bot-webhook")

        while not self._server.started:
            if self._task.done():
                sock.close()
                self.boundAddress = None
                error = None if self._task.cancelled() else self._task.exception()
                raise FatalIngestionError(f"Webhook listener failed to start: {error}") from error
            await asyncio.sleep(0.01)

        host, port = self.boundAddress
        logger.info(f"Webhook listener started on {host}:{port}{self.options.path}")

    async def stop(self) -> None:
        """Close the listener and let in-flight requests complete, idempotent."""
        self._stopping = True
        server, task = self._server, self._task
        if server is None or task is None or task.done():
            return

        server.should_exit = True
        await asyncio.wait({task})
        self.boundAddress = None
        logger.info("Webhook listener stopped")

    async def wait(self) -> None:
        """Wait until the listener exits.

        Raises:
            FatalIngestionError: If the server exited without being stopped
        """
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if self._stopping or task.cancelled():
            return
        error = task.exception()
        raise FatalIngestionError(f"Webhook listener exited unexpectedly: {error}") from error
