"""
Logging setup for processes that drive provisioning.
Library modules only call logging.getLogger(__name__); the handler is installed
here, once, by the composition root.
"""

import logging
from typing import Union

PACKAGE_LOGGER = "rsa_key_secret"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)

    # Ensure it prints somewhere, without stacking handlers on repeated calls
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
