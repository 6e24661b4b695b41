import logging
import logging.config
import os
from datetime import datetime
from access_control.core.config import settings

FORMATS = {
    "default": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s:%(lineno)d - %(message)s",
    "access": "%(asctime)s - %(message)s",
}

# handler name -> (log sub directory, level, formatter)
FILE_HANDLERS = {
    "app_file": ("app", settings.LOG_LEVEL, "detailed"),
    "error_file": ("error", "ERROR", "detailed"),
    "access_file": ("access", "INFO", "access"),
    "audit_file": ("audit", "INFO", "default"),
}


def setup_logging():
    """Setup application logging configuration"""

    log_dir = settings.LOG_DIR
    current_date = datetime.now().strftime("%Y-%m-%d")

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.LOG_LEVEL,
            "formatter": "default",
            "stream": "ext://sys.stdout",
        },
    }
    for name, (sub_dir, level, formatter) in FILE_HANDLERS.items():
        os.makedirs(os.path.join(log_dir, sub_dir), exist_ok=True)
        handlers[name] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": formatter,
            "filename": os.path.join(log_dir, sub_dir, f"{sub_dir}-{current_date}.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 10,
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"}
            for name, fmt in FORMATS.items()
        },
        "handlers": handlers,
        "loggers": {
            "": {  # Root logger
                "level": settings.LOG_LEVEL,
                "handlers": ["console", "app_file", "error_file"],
                "propagate": False,
            },
            # Per-decision traces (hidden modules, unmapped routes) are DEBUG
            "access_control.auth": {
                "level": settings.DECISION_LOG_LEVEL,
                "handlers": ["app_file"],
                "propagate": False,
            },
            "access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            # RBAC mutations, consumed by the external audit trail
            "audit": {
                "level": "INFO",
                "handlers": ["audit_file", "console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info("Access control service - logging configured")
    logger.info(f"Log level: {settings.LOG_LEVEL} (decisions: {settings.DECISION_LOG_LEVEL})")
    logger.info(f"Logs directory: {log_dir}")
