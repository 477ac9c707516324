"""
Logging configuration with optional structured (JSON) output.

Provides the console/file handler setup used by the API and the import CLI,
plus a performance decorator that records operation durations.
"""

import inspect
import json
import logging
import logging.handlers
import sys
import time
import traceback
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import settings

TRACE = 5

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}

# promoted to top-level keys of the JSON line
_PROMOTED_FIELDS = ('component', 'operation', 'duration_ms')


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, then extras"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger_name': record.name,
            'message': record.getMessage(),
        }

        extra = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        for key in _PROMOTED_FIELDS:
            if extra.get(key) is not None:
                entry[key] = extra.pop(key)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            extra['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': traceback.format_exception(*record.exc_info),
            }
        if extra:
            entry['extra'] = extra

        return json.dumps(entry, ensure_ascii=False, default=str)


class LoggingManager:
    """Configures the root logger once and tears it down on shutdown"""

    def __init__(self):
        self.configured = False
        self.handlers: List[logging.Handler] = []

    def setup_logging(self,
                      log_level: str = "INFO",
                      enable_json: bool = False,
                      log_file: Optional[str] = None,
                      max_file_size: int = 10 * 1024 * 1024,
                      backup_count: int = 5) -> None:
        if self.configured:
            return

        logging.addLevelName(TRACE, 'TRACE')
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.getLevelName(log_level.upper()))
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(StructuredFormatter() if enable_json else logging.Formatter(PLAIN_FORMAT))
        self._add_handler(console_handler)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_file_size, backupCount=backup_count, encoding='utf-8'
            )
            file_handler.setFormatter(StructuredFormatter())
            self._add_handler(file_handler)

        self.configured = True
        logging.getLogger(__name__).debug(f"Logging configured at {log_level.upper()}")

    def _add_handler(self, handler: logging.Handler) -> None:
        logging.getLogger().addHandler(handler)
        self.handlers.append(handler)

    def close(self):
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers.clear()
        self.configured = False


logging_manager = LoggingManager()


def log_performance(component: str = None, operation: str = None):
    """
    Decorator logging completion time (or failure) of a sync or async function.

    The duration is passed as ``duration_ms`` in ``extra`` so the JSON
    formatter lifts it to a top-level key.
    """
    def decorator(func):
        logger = logging.getLogger(func.__module__)
        base_extra = {
            'component': component or func.__module__.split('.')[-1],
            'operation': operation or func.__name__,
        }

        def finish(start_time: float, error: Optional[BaseException] = None) -> None:
            extra = dict(base_extra, duration_ms=(time.perf_counter() - start_time) * 1000)
            if error is None:
                logger.info(f"Completed {extra['operation']}", extra=extra)
            else:
                extra['error'] = str(error)
                logger.error(f"Failed {extra['operation']}", extra=extra)

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    finish(start_time, e)
                    raise
                finish(start_time)
                return result
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                finish(start_time, e)
                raise
            finish(start_time)
            return result
        return wrapper
    return decorator


def setup_logging(log_level: Optional[str] = None, enable_json: Optional[bool] = None,
                  log_file: Optional[str] = None):
    """Configure logging from settings; arguments override them for one process"""
    logging_manager.setup_logging(
        log_level=log_level or settings.log_level,
        enable_json=settings.log_json if enable_json is None else enable_json,
        log_file=log_file,
    )
