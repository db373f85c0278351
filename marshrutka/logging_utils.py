"""Package logger for marshrutka.

Usage:
    from marshrutka.logging_utils import logger
    logger.info("Built %d routes", n)
"""
import logging
import sys

logger = logging.getLogger("marshrutka")

# Configure once; re-imports must not stack handlers
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt="%(levelname)s - %(name)s - %(message)s"))
    logger.addHandler(handler)

logger.setLevel(logging.INFO)
logger.propagate = True


def get_logger(name):
    """Child logger under the package logger, e.g. get_logger("cache")."""
    return logger.getChild(name)
