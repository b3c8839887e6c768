"""Serve the HTTP ingress with ``python -m case_triage``."""

from __future__ import annotations

import uvicorn

from .api import create_app
from .config.loader import load_pipeline_config
from .core.logging import configure_logging
from .core.settings import get_settings


def run() -> None:
    """Production entrypoint; host and port come from the environment or the pipeline file."""

    settings = get_settings()
    configure_logging(settings.log_level)
    config = load_pipeline_config(settings.pipeline_config)
    port = settings.server_port or config.http.port
    uvicorn.run(create_app(settings=settings), host=settings.server_host, port=port, log_config=None)


if __name__ == "__main__":
    run()
