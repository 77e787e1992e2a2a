"""Run the marketplace service with uvicorn."""

from __future__ import annotations

import uvicorn

from victor_service.app import create_app
from victor_service.config import get_settings


def main() -> None:
    """Start the HTTP server using host and port from config."""
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
    )


if __name__ == "__main__":
    main()
