import logging
import os
import sys
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from filevault.services.ray_id_service import ray_id_context


LOG_FORMAT = "%(asctime)s - [%(ray_id)s] - %(name)s - %(levelname)s - %(message)s"


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str


class RayIDFilter(logging.Filter):
    """Ensures every record carries a ray_id, falling back to the request contextvar."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "ray_id"):
            record.ray_id = ray_id_context.get()
        return True


def setup_loki_logging(config: LoggingConfig, service_name: str) -> logging.Logger:
    """
    Configure root logging for a Filevault process.

    Args:
        config: Application configuration
        service_name: Name of the process (e.g., "api", "trash-sweeper")

    Returns:
        Logger named after the service
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.loki_enabled and config.loki_url:
        handlers.append(
            LokiLoggerHandler(
                url=config.loki_url,
                labels={
                    "service": service_name,
                    "application": "filevault",
                    "environment": config.environment,
                    "host": os.getenv("HOSTNAME", "unknown"),
                },
                timeout=10,
                compressed=True,
            )
        )

    ray_id_filter = RayIDFilter()
    for handler in handlers:
        handler.addFilter(ray_id_filter)

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)

    return logging.getLogger(service_name)
