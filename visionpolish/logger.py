"""
Structured logging configuration for the VisionPolish backend
"""
import logging
import sys
import os
from typing import Optional

def setup_logger(name: str = "visionpolish", level: Optional[str] = None) -> logging.Logger:
    """
    Set up structured logger for the application

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Avoid duplicate handlers on re-import
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level, logging.INFO))

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger

logger = setup_logger()

# Child of the app logger, so it shares its handler
security_logger = logging.getLogger("visionpolish.security")

def log_security_event(event: str, **details) -> None:
    """Record a security-relevant event (suspicious upload, denied access, ...)"""
    security_logger.warning(f"Security Event: {event} {details}")
