"""Logging configuration utilities for the task discovery service."""
import logging
import os

# constant of my service name, used as the logger prefix
SERVICE_NAME = "task-discovery"


def setup_logging() -> None:
    """Configure root logging from the LOG_LEVEL and LOG_FILE environment variables."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        filename=os.getenv("LOG_FILE"),
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def get_logger(component: str) -> logging.Logger:
    """Return the logger for one component, e.g. ``task-discovery.monitor``."""
    return logging.getLogger(f"{SERVICE_NAME}.{component}")
