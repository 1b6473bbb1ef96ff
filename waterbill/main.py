"""Main application entry point."""

import logging
import os

import uvicorn
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from waterbill.api.app import app  # noqa: E402
from waterbill.config import get_settings  # noqa: E402
from waterbill.services.logging import setup_server_logging  # noqa: E402

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the API server."""
    settings = get_settings()
    setup_server_logging(settings.log_file, settings.log_level)

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting Uvicorn server on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
