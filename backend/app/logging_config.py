import logging
import logging.handlers
import sys
from pathlib import Path

from pythonjsonlogger import jsonlogger

from app.config import settings


def _build_formatter() -> logging.Formatter:
    """Build the JSON or plain-text formatter selected by LOG_FORMAT."""
    if settings.log_format == 'json':
        return jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s %(pathname)s %(lineno)d %(funcName)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'},
            datefmt='%Y-%m-%dT%H:%M:%S'
        )
    return logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def setup_logging() -> None:
    """Configure root logging for the API process."""
    logger = logging.getLogger()
    level = getattr(logging, settings.log_level)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates on reload
    logger.handlers.clear()

    formatter = _build_formatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.enable_log_rotation:
        log_path = Path(settings.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # 10MB per file, keep 5 backups
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Outbound HTTP clients log every request at INFO
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('python_multipart').setLevel(logging.WARNING)

    logger.info(
        f"Logging configured: level={settings.log_level}, "
        f"format={settings.log_format}, rotation={settings.enable_log_rotation}"
    )
