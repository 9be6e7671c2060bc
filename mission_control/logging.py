from __future__ import annotations
import logging
import os
from loguru import logger

# библиотеки, которые пишут в stdlib logging
STDLIB_LOGGERS = ("discord", "aiogram", "uvicorn", "uvicorn.error", "gspread")
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <7}</level> | "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Записи stdlib logging → loguru (с тем же уровнем)."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, f"[{record.name}] {record.getMessage()}")


def setup_logging(level: str | None = None) -> None:
    """
    Loguru в консоль; уровень — аргумент или LOG_LEVEL (INFO/DEBUG/WARNING/ERROR).
    Логи discord.py / aiogram / uvicorn идут туда же.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    # Чистим дефолтные хендлеры, чтобы не плодить дубликаты при повторных стартах
    logger.remove()
    logger.add(
        sink=lambda msg: print(msg, end=""),
        level=level,
        format=LOG_FORMAT,
        backtrace=True,
        diagnose=False,
        colorize=True,
    )
    handler = InterceptHandler()
    for name in STDLIB_LOGGERS:
        std = logging.getLogger(name)
        std.handlers = [handler]
        std.propagate = False
        std.setLevel(level)
