"""Redeployer service main entrypoint."""

import uvicorn

from redeployer.api import create_app
from redeployer.config import get_settings


def main() -> None:
    """Serve the HTTP API."""
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.app_host,
        port=settings.app_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
