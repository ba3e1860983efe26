"""
Logging configuration for Interio Quoter.

Console output, a daily log, a rotating debug log, and an audit log that
receives only the ``business`` logger (approvals, conversions, payments).
"""

import logging
import logging.handlers
import sys
from datetime import datetime

from interio.core.paths import app_paths


BUSINESS_LOGGER = 'business'
DATABASE_LOGGER = 'database'
ERROR_LOGGER = 'errors'

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name on a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, datefmt=None, use_color=True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record):
        levelname = record.levelname
        if self.use_color and levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # the record is shared with the file handlers
            record.levelname = levelname


def _file_handler(handler, level=logging.DEBUG):
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(log_level=logging.INFO, enable_file_logging=True):
    """
    Configure the root logger.

    Args:
        log_level: Console level (default: INFO); files always get DEBUG
        enable_file_logging: Also write interio_YYYYMMDD.log, debug.log and audit.log
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if enable_file_logging else log_level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
        use_color=sys.stdout.isatty()
    ))
    logger.addHandler(console_handler)

    audit_logger = logging.getLogger(BUSINESS_LOGGER)
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    if enable_file_logging:
        logs_dir = app_paths.logs_dir

        daily_file = logs_dir / f"interio_{datetime.now().strftime('%Y%m%d')}.log"
        logger.addHandler(_file_handler(logging.FileHandler(daily_file, encoding='utf-8')))

        # 5 x 10MB
        debug_file = logs_dir / "debug.log"
        logger.addHandler(_file_handler(logging.handlers.RotatingFileHandler(
            debug_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8'
        )))

        audit_file = logs_dir / "audit.log"
        audit_logger.addHandler(_file_handler(logging.handlers.TimedRotatingFileHandler(
            audit_file, when='midnight', backupCount=90, encoding='utf-8'
        ), level=logging.INFO))

        logger.debug(f"Logging to {daily_file}, {debug_file} and {audit_file}")

    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
    return logger


def get_logger(name):
    return logging.getLogger(name)


def log_database_operation(operation, table, record_id=None, details=None):
    """Debug trace of a write made by the services layer."""
    message = f"DB {operation.upper()}: {table}"
    if record_id:
        message += f" (ID: {record_id})"
    if details:
        message += f" - {details}"
    get_logger(DATABASE_LOGGER).debug(message)


def log_business_operation(operation, details=None, user_id=None):
    """Audit entry for a state change a user made: approvals, conversions, payments."""
    message = f"BUSINESS {operation.upper()}"
    if user_id:
        message += f" (User: {user_id})"
    if details:
        message += f" - {details}"
    get_logger(BUSINESS_LOGGER).info(message)


def log_error(error, context=None, user_id=None):
    """Log a rejected or failed operation with its traceback."""
    message = f"ERROR: {error}"
    if context:
        message += f" | Context: {context}"
    if user_id:
        message += f" | User: {user_id}"
    get_logger(ERROR_LOGGER).error(message, exc_info=True)
