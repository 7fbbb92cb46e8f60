import logging
import logging.config
import os
from datetime import datetime
from inventory_ledger.core.config import settings

LOG_SUBDIRS = ("app", "access", "error", "celery", "ledger")


def _rotating_handler(level: str, formatter: str, filename: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": filename,
        "maxBytes": 10485760,  # 10MB
        "backupCount": 10,
    }


def setup_logging():
    """Setup application logging configuration"""
    log_dir = settings.LOG_DIR
    for subdir in LOG_SUBDIRS:
        os.makedirs(os.path.join(log_dir, subdir), exist_ok=True)

    current_date = datetime.now().strftime("%Y-%m-%d")

    def log_file(kind: str) -> str:
        return os.path.join(log_dir, kind, f"{kind}-{current_date}.log")

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "access": {
                "format": "%(asctime)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "app_file": _rotating_handler(settings.LOG_LEVEL, "detailed", log_file("app")),
            "error_file": _rotating_handler("ERROR", "detailed", log_file("error")),
            "access_file": _rotating_handler("INFO", "access", log_file("access")),
            "celery_file": _rotating_handler("INFO", "detailed", log_file("celery")),
            # Stock mutations get their own trail next to the transaction log
            "ledger_file": _rotating_handler("INFO", "detailed", log_file("ledger")),
        },
        "loggers": {
            "": {  # Root logger
                "level": settings.LOG_LEVEL,
                "handlers": ["console", "app_file", "error_file"],
                "propagate": False,
            },
            "inventory_ledger.services": {
                "level": "INFO",
                "handlers": ["ledger_file", "console", "error_file"],
                "propagate": False,
            },
            "celery": {
                "level": "INFO",
                "handlers": ["celery_file", "console"],
                "propagate": False,
            },
            "access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",  # Reduce DB query noise
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info("🚀 Inventory Ledger Service - Logging configured")
    logger.info(f"📝 Log level: {settings.LOG_LEVEL}")
    logger.info(f"🗂️  Logs directory: {log_dir}/")
