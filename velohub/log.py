"""Logging setup: console, optional rotating file and syslog."""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(config: Optional[Dict[str, Any]] = None,
                  name: str = 'velohub') -> logging.Logger:
    """
    Configure the package logger from the ``logging`` config section.

    Safe to call more than once; existing handlers are replaced.
    """
    config = config or {}
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(config.get('level', 'INFO')).upper(), logging.INFO))

    if logger.handlers:
        logger.handlers.clear()

    # 1. Console
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    # 2. Rotating file
    log_file = config.get('file')
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=config.get('max_bytes', 10485760),
            backupCount=config.get('backup_count', 5),
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    # 3. Syslog, when available
    if config.get('syslog') and Path('/dev/log').exists():
        try:
            syslog_handler = logging.handlers.SysLogHandler(address='/dev/log')
        except OSError as e:
            logger.warning("Syslog unavailable: %s", e)
        else:
            syslog_handler.setLevel(logging.INFO)
            syslog_handler.setFormatter(logging.Formatter('velohub: %(message)s'))
            logger.addHandler(syslog_handler)

    return logger
