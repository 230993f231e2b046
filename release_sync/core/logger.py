"""Logger configuration for release-sync."""

import sys
from pathlib import Path

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message} {extra}"


def setup_logger(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Configure loguru logger with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Serialize each record as one JSON line instead of colored text
        log_file: Optional path to a rotating log file (LOG_FILE). If None, console only.
        rotation: Log rotation size (e.g., "10 MB", "1 day")
        retention: Log retention period (e.g., "7 days", "1 month")
    """
    # Remove default handler
    logger.remove()

    if json_logs:
        # Bound values (request_id, feature_id, ...) land in record.extra
        logger.add(sys.stdout, level=level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level> <dim>{extra}</dim>"
            ),
            level=level,
            colorize=True,
        )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Same record shape as the console sink; no variable dumps (locals hold tokens)
        file_sink: dict = {"serialize": True} if json_logs else {"format": FILE_FORMAT}
        logger.add(
            log_path,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
            **file_sink,
        )

    logger.bind(json=json_logs, log_file=log_file).info(f"Logger initialized with level={level}")
