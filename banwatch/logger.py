"""Система логирования бота."""

import logging
import logging.handlers
import pathlib
import sys

from banwatch.config import settings

# Флаг для предотвращения повторной инициализации
_logging_initialized = False

# Цвета уровней для консоли (ANSI)
COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
    "RESET": "\033[0m",
}

FILE_FORMAT = "[%(asctime)s] %(levelname)-8s [%(short_name)s] %(message)s"


class ColoredFormatter(logging.Formatter):
    """Форматтер с цветным уровнем для консоли."""

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        result = super().format(record)
        record.levelname = levelname
        return result


class ContextFilter(logging.Filter):
    """Добавляет к записи ``short_name``: последний компонент имени логгера."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.short_name = record.name.rsplit(".", 1)[-1] if record.name else "root"
        return True


def _file_handler(
    path: pathlib.Path,
    level: int,
    formatter: logging.Formatter,
    max_mb: int,
    backups: int,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    """
    Настраивает корневой логгер.

    banwatch.log и консоль пишутся с уровнем LOG_LEVEL, errors.log
    только ERROR+. debug.log включается через LOG_DEBUG_FILE.
    """
    global _logging_initialized

    if _logging_initialized:
        return
    _logging_initialized = True

    log_dir = pathlib.Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, settings.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    error_format = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers = [
        _file_handler(log_dir / "banwatch.log", level, file_format, max_mb=10, backups=5),
        _file_handler(log_dir / "errors.log", logging.ERROR, error_format, max_mb=5, backups=10),
    ]
    if settings.log_debug_file:
        handlers.append(
            _file_handler(log_dir / "debug.log", logging.DEBUG, file_format, max_mb=20, backups=3)
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(FILE_FORMAT, datefmt="%H:%M:%S"))
    handlers.append(console_handler)

    context_filter = ContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    # Приглушаем болтливые библиотеки
    for name in ("httpx", "httpcore", "apscheduler", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.INFO)

    logging.info(
        f"Logging: level={settings.log_level} | dir={log_dir.absolute()} "
        f"| debug.log={'on' if settings.log_debug_file else 'off'}"
    )
