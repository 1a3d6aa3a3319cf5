"""
structlog setup for stage-loader.

Every event is rendered as one JSON line (ISO timestamp, level, logger name)
on stderr, and optionally into a daily rotated file. Before rendering, the
redaction processor masks sensitive keys and any COPY credential fragment
found in string values, so SQL text can be logged as-is.

Environment:
    LOG_LEVEL     DEBUG/INFO/WARNING/ERROR/CRITICAL (default INFO)
    LOG_TO_FILE   1/true/yes to also write logs/stage-loader-YYYYMMDD.log
    LOG_FILE_DIR  directory for the log file (default logs/)

    >>> from stage_loader.utils.logging import get_logger
    >>> get_logger(__name__).info("warehouse.load.started", table="orders")
"""

import logging
import os
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, MutableMapping

import structlog
from structlog.types import EventDict, Processor

SENSITIVE_PATTERNS = [
    re.compile(r".*password.*", re.IGNORECASE),
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
    re.compile(r"^credentials$", re.IGNORECASE),
    re.compile(r"^SL_WAREHOUSE_+URI$", re.IGNORECASE),
]

REDACTED_VALUE = "[REDACTED]"

_CREDENTIAL_VALUE = re.compile(r"(aws_access_key_id|aws_secret_access_key)=[^;']*")

_TRUTHY = {"1", "true", "yes"}


def censor_credentials(text: str) -> str:
    """Mask COPY credential values in free text, each up to the next ``;`` or ``'``."""
    return _CREDENTIAL_VALUE.sub(r"\1=***", text)


def _is_sensitive(key: str) -> bool:
    return any(pattern.match(key) for pattern in SENSITIVE_PATTERNS)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, str):
        return censor_credentials(value)
    return value


def sanitize_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``data`` that is safe to log.

    Keys containing password/token/secret, or named credentials, are replaced
    by ``[REDACTED]``; nested dicts are handled recursively and strings have
    their COPY credentials censored.

        >>> sanitize_for_logging({"password": "hunter2", "user": "loader"})
        {'password': '[REDACTED]', 'user': 'loader'}
    """
    return {
        key: REDACTED_VALUE if _is_sensitive(key) else _redact(value)
        for key, value in data.items()
    }


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    return sanitize_for_logging(dict(event_dict))


def _resolve_level() -> int:
    try:
        from stage_loader.config import get_settings

        name = get_settings().LOG_LEVEL
    except Exception:
        # Settings may be invalid while logging is being configured
        name = os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, name.upper(), logging.INFO)


def _build_handlers(level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if os.getenv("LOG_TO_FILE", "").lower() in _TRUTHY:
        log_dir = Path(os.getenv("LOG_FILE_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"stage-loader-{datetime.now():%Y%m%d}.log"
        handlers.append(
            TimedRotatingFileHandler(
                filename=str(log_file),
                when="midnight",
                backupCount=30,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _configure_structlog() -> None:
    level = _resolve_level()
    logging.basicConfig(format="%(message)s", level=level, handlers=[])
    for handler in _build_handlers(level):
        logging.root.addHandler(handler)

    processors: List[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        sanitization_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_configure_structlog()


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)

