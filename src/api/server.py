"""Run the feedback API with uvicorn."""

import uvicorn

from src.api.app import create_app
from src.api.dependencies import get_settings
from src.config.logging_config import configure_logging


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
