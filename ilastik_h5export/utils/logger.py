"""
Logging configuration for the exporter.
"""

import os
import sys
import logging
import logging.handlers
from pathlib import Path
import traceback
from datetime import datetime

LOGGER_NAME = 'ilastik_h5export'


class LogHandler:
    """Handler for application logs with console and optional file output."""

    def __init__(self, debug=False, log_to_file=True, log_dir=None):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.debug = debug
        self.log_to_file = log_to_file
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_file = None
        self.setup_logger()

        # Register global exception handler
        sys.excepthook = self.handle_exception

    def setup_logger(self):
        """Set up logger with console and file handlers."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        level = logging.DEBUG if self.debug else logging.INFO
        self.logger.setLevel(level)

        console_formatter = logging.Formatter('%(levelname)s: %(message)s')
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        )

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(level)
        self.logger.addHandler(console_handler)

        if self.log_to_file:
            log_dir = self._get_log_directory()
            self.log_file = log_dir / f"export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

            file_handler = logging.handlers.RotatingFileHandler(
                self.log_file, maxBytes=10*1024*1024, backupCount=5
            )
            file_handler.setFormatter(file_formatter)
            file_handler.setLevel(level)
            self.logger.addHandler(file_handler)

        self.logger.debug(f"Logging initialized. Debug mode: {self.debug}")
        if self.log_file:
            self.logger.debug(f"Log file: {self.log_file}")

    def _get_log_directory(self):
        """Create and return the log directory."""
        if self.log_dir is not None:
            log_dir = self.log_dir
        else:
            if sys.platform == 'win32':
                base_dir = os.path.expandvars('%LOCALAPPDATA%')
            else:
                base_dir = os.path.expanduser('~')
            log_dir = Path(base_dir) / '.ilastik_h5export' / 'logs'

        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir

    def handle_exception(self, exc_type, exc_value, exc_traceback):
        """Handle uncaught exceptions."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        tb_text = ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
        self.logger.critical(f"Unhandled exception:\n{tb_text}")

        print(f"An unexpected error occurred: {exc_value}", file=sys.stderr)


def setup_logger(debug=False, log_to_file=True, log_dir=None):
    """Initialize and return the application logger."""
    handler = LogHandler(debug, log_to_file=log_to_file, log_dir=log_dir)
    return handler.logger


class LogCapture:
    """Context manager to capture logs during a specific operation."""

    def __init__(self, logger, operation_name):
        self.logger = logger
        self.operation_name = operation_name
        self.log_records = []

    def __enter__(self):
        self.logger.info(f"Starting: {self.operation_name}")
        self.handler = LogCaptureHandler(self.log_records)
        self.logger.addHandler(self.handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logger.removeHandler(self.handler)
        if exc_type:
            self.logger.error(f"Error in {self.operation_name}: {exc_val}")
            return False
        self.logger.info(f"Completed: {self.operation_name}")
        return False

    def get_logs(self):
        """Return captured log messages."""
        return [record.getMessage() for record in self.log_records]


class LogCaptureHandler(logging.Handler):
    """Handler to capture log records in a list."""

    def __init__(self, records):
        super().__init__()
        self.records = records

    def emit(self, record):
        self.records.append(record)
