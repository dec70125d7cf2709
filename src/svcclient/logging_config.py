"""Logging setup driven by ClientConfig."""

import logging
import sys
from typing import Optional

from .models.config import ClientConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[ClientConfig] = None, force: bool = False) -> logging.Logger:
    """
    Configure the svcclient logger from a client configuration.

    Engine modules log under svcclient.* and inherit these handlers. Console
    output goes to stderr so stdout stays free for response bodies.

    Args:
        config: Source of log_level and log_file (defaults to ClientConfig())
        force: If True, replace handlers installed by an earlier call

    Returns:
        The configured "svcclient" logger
    """
    config = config or ClientConfig()
    logger = logging.getLogger("svcclient")
    logger.setLevel(getattr(logging, config.log_level))

    if force or not logger.handlers:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
        if config.log_file is not None:
            config.log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))

        formatter = logging.Formatter(LOG_FORMAT)
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    logger.propagate = False
    return logger
