# vocalflow/utils/logger.py

import sys
from pathlib import Path
from loguru import logger


def setup_logging(log_level: str = "INFO", base_dir: Path = Path(".")):
    """
    Central loguru setup: colored console, daily detailed file, error file.
    """
    logger.remove()  # drop previously registered sinks

    log_dir = Path(base_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    def console_format(record):
        icon = {"INFO": "ℹ️", "SUCCESS": "✅", "WARNING": "⚠️", "ERROR": "❌"}.get(record["level"].name, "📝")
        time_str = record["time"].strftime("%H:%M:%S")
        return (
            f"<green>{time_str}</green> | {icon} <level>{record['level'].name: <8}</level> | "
            f"<cyan>{record['name'].split('.')[-1]}</cyan>:<cyan>{record['function']}</cyan> - "
            "<level>{message}</level>\n"
        )

    logger.add(sys.stderr, format=console_format, level=log_level.upper(), colorize=True)

    logger.add(
        log_dir / "vocalflow_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="1 day",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logger.add(
        log_dir / "errors.log",
        level="ERROR",
        rotation="1 week",
        backtrace=True,
        diagnose=True,
    )

    logger.debug("Logging configured.")
