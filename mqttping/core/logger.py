"""
Logging configuration for MQTTPing.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from .config import LoggingConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty client libraries, capped at WARNING
QUIET_LOGGERS = ('paho', 'urllib3', 'requests', 'influxdb_client')


def log_level(config: LoggingConfig, verbose: bool = False) -> int:
    """Resolve the configured level name; ``verbose`` forces DEBUG."""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.level}")
    return level


def setup_logging(config: LoggingConfig, level: int = logging.INFO) -> None:
    """Log to stdout and, when ``config.file`` is set, to a rotating file."""
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.file:
        try:
            log_path = Path(config.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=config.max_size * 1024 * 1024,  # MB
                backupCount=config.backup_count
            ))
        except OSError as e:
            logging.warning(f"Failed to setup file logging: {e}")

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logging.getLogger('mqttping').setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
