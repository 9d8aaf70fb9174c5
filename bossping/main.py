"""Application entrypoint."""

from __future__ import annotations

import logging

import uvicorn

from bossping.config import load_settings
from bossping.webhook import create_app

logging.basicConfig(level=logging.INFO)
LOGGER = logging.getLogger(__name__)


def main() -> None:
    """Load settings and serve the webhook app."""

    settings = load_settings()
    app = create_app(settings)
    LOGGER.info("Server running on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
