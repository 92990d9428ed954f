"""sitedrop - server entry point."""

import logging
import sys

import uvicorn

from sitedrop.config import load_settings
from sitedrop.main import create_app

_LOG = logging.getLogger("sitedrop")


def main() -> None:
    """Load configuration and run the server until it is stopped."""
    settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    app = create_app(settings)
    _LOG.info("Serving %s on http://%s:%d", settings.output_dir, settings.host, settings.port)

    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    except OSError as e:
        _LOG.error("Failed to listen on %s:%d: %s", settings.host, settings.port, e)
        sys.exit(1)


if __name__ == "__main__":
    main()
