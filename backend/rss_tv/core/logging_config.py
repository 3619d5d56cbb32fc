"""
Logging configuration module.

Design principles:
- Standard library only
- Console output always (readable text)
- Optional CSV file output when a log directory is configured
- Daily rotation, keep 30 days history
"""

import csv
import io
import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# Console format: human-readable
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# CSV fields (6 columns)
CSV_FIELDS = ['timestamp', 'level', 'module', 'message', 'rss_url', 'error']

_CONFIGURED_FLAG = "_rss_tv_configured"


class CsvFormatter(logging.Formatter):
    """
    CSV format logger - auto-handles quotes and commas.

    Usage:
        logger.warning("refresh failed", extra={'rss_url': url, 'error': str(e)})
    """

    def format(self, record):
        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL)

        row = [
            self.formatTime(record, self.datefmt),   # timestamp
            record.levelname,                         # level
            record.name,                              # module
            record.getMessage(),                      # message
            getattr(record, 'rss_url', ''),           # rss_url
            getattr(record, 'error', ''),             # error
        ]
        writer.writerow(row)
        return output.getvalue().strip()


class CsvRotatingFileHandler(TimedRotatingFileHandler):
    """
    Timed rotating file handler with CSV header support.

    Writes CSV header when creating new log file.
    """

    def _open(self):
        is_new = not os.path.exists(self.baseFilename) or \
                 os.path.getsize(self.baseFilename) == 0

        stream = super()._open()

        if is_new:
            stream.write(','.join(CSV_FIELDS) + '\n')
            stream.flush()

        return stream


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure logging system.

    Idempotent: repeated calls won't create duplicate handlers.

    Args:
        level: Root level (int or name such as "DEBUG")
        log_dir: Directory for CSV log files; console only when None
    """
    root_logger = logging.getLogger()

    if getattr(root_logger, _CONFIGURED_FLAG, False):
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger.setLevel(level)

    # Handler 1: Console output (human-readable for debugging)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # Handler 2: CSV file output, e.g. rss_tv_2025_12_19.csv
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y_%m_%d")
        csv_handler = CsvRotatingFileHandler(
            filename=log_path / f"rss_tv_{today}.csv",
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8"
        )
        csv_handler.setFormatter(CsvFormatter(datefmt=DATE_FORMAT))
        root_logger.addHandler(csv_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    setattr(root_logger, _CONFIGURED_FLAG, True)
