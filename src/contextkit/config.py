"""
Configuration module for the ContextKit system.
This module handles environment variables and process-wide settings that are not part of the domain model.
"""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "INFO"


def get_log_level() -> str:
    """
    Retrieve the log level from environment variables.

    Returns:
        The level name, upper-cased. Defaults to "INFO"; unknown names fall back to the default.
    """
    level = os.environ.get("CONTEXTKIT_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    if level not in logging.getLevelNamesMapping():
        logger.warning(f"Unknown CONTEXTKIT_LOG_LEVEL '{level}', using {DEFAULT_LOG_LEVEL}.")
        return DEFAULT_LOG_LEVEL
    return level
