"""Logging configuration for the labctl package."""
import logging
import sys

from labctl.config import Config

def setup_logging(debug_mode: bool = False) -> None:
    """Configure root logging based on debug mode."""
    log_level = logging.DEBUG if debug_mode else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=Config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )
    logging.getLogger().setLevel(log_level)
    # Keep the HTTP stack quiet unless debugging
    if not debug_mode:
        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Args:
        name: The name of the logger
        level: The logging level (default: logging.INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)

        formatter = logging.Formatter(Config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        handler.setFormatter(formatter)

        logger.addHandler(handler)

    return logger
