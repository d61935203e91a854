import threading
import time
from typing import Optional, Sequence

import uvicorn
from loguru import logger

from ..config import Settings, load_settings
from .main import ServerContext, create_app


class ModelServer:
    """
    Serves one SavedModel over HTTP.

    `run()` blocks until the process is interrupted; `start()` runs the same
    server on a background thread and `stop()` shuts it down.
    """

    def __init__(
        self,
        model_dir: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        signature_name: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or load_settings()
        self.host = host or settings.server.host
        self.port = port if port is not None else settings.server.port
        self.context = ServerContext.from_export(
            model_dir,
            tags=tags or settings.server.tags,
            signature_name=signature_name or settings.server.signature_name,
        )
        self.app = create_app(self.context)
        self._server = uvicorn.Server(
            uvicorn.Config(self.app, host=self.host, port=self.port, log_level=settings.logging.level.lower())
        )
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def run(self) -> None:
        logger.info("Serving {} at {}", self.context.handle.path, self.url)
        self._server.run()

    def start(self, timeout: float = 10.0) -> "ModelServer":
        self._thread = threading.Thread(target=self._server.run, name="tfdeploy-server", daemon=True)
        self._thread.start()
        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                raise RuntimeError(f"Server failed to start at {self.url}")
            time.sleep(0.05)
        logger.info("Serving {} at {}", self.context.handle.path, self.url)
        return self

    def stop(self, timeout: float = 10.0) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Stopped server at {}", self.url)


def serve_savedmodel(
    model_dir: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    signature_name: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Serve `model_dir` at http://host:port/api/<signature_name>/predict/ until interrupted."""
    ModelServer(model_dir, host, port, signature_name, tags, settings).run()
