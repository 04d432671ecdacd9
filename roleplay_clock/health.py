"""HTTP health check answering every request with ``running``."""
from __future__ import annotations

import logging
import threading

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

# Any method on any path answers 200 "running".
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

app = FastAPI(title="Roleplay Clock Health", docs_url=None, redoc_url=None, openapi_url=None)


@app.api_route("/", methods=ALL_METHODS, response_class=PlainTextResponse)
@app.api_route("/{path:path}", methods=ALL_METHODS, response_class=PlainTextResponse)
def health(path: str = "") -> str:
    return "running"


def start_health_server(port: int, host: str = "0.0.0.0") -> threading.Thread:
    """Serve the health app with uvicorn on a daemon thread."""

    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="health-server", daemon=True)
    thread.start()
    logger.info("[Health Check] HTTP server listening on port %s", port)
    return thread


__all__ = ["app", "start_health_server"]
