"""
Logging Configuration for the algorithm engine.

Provides centralized logger setup for the engine's debug trace log.
The package logger always writes warnings to stderr; full debug output
goes to a file in the log directory when ALGOENGINE_DEBUG_LOG is set.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

ENGINE_LOGGER_NAME = "algoengine"
DEBUG_LOG_FILENAME = "algoengine_debug.log"

_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# Log directory priority:
# 1. ALGOENGINE_LOG_DIR (explicit)
# 2. ALGOENGINE_PROJECT_ROOT/.algoengine (if set)
# 3. CWD/.algoengine (fallback)
def _get_log_directory() -> Path:
    """Get the log directory path."""
    log_dir = os.getenv("ALGOENGINE_LOG_DIR")
    if not log_dir:
        project_root = os.getenv("ALGOENGINE_PROJECT_ROOT")
        if project_root:
            log_dir = str(Path(project_root) / ".algoengine")
        else:
            log_dir = str(Path.cwd() / ".algoengine")
    return Path(log_dir)


def _ensure_log_directory() -> Path:
    """Ensure log directory exists and return its path."""
    log_dir = _get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def is_debug_log_enabled() -> bool:
    """File logging is opt-in: ALGOENGINE_DEBUG_LOG must be set and non-empty."""
    value = os.getenv("ALGOENGINE_DEBUG_LOG", "")
    return value.strip().lower() not in ("", "0", "false", "no")


def _create_file_handler(log_filename: str) -> Optional[logging.FileHandler]:
    """
    Create a file handler for the specified log file.

    Args:
        log_filename: Name of the log file (e.g., 'algoengine_debug.log')

    Returns:
        Configured FileHandler, or None if file logging is disabled
    """
    if not is_debug_log_enabled():
        return None

    try:
        log_path = _ensure_log_directory() / log_filename
        handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    except OSError:
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a handler.
    ::: This is stateless.
    """
    def emit(self, record):
        super().emit(record)
        self.flush()


def _create_stderr_handler() -> logging.StreamHandler:
    """Create a stderr handler for warnings and errors with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(logging.WARNING)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


def get_engine_logger() -> logging.Logger:
    """
    Get the package logger for the algorithm engine.

    Output goes to stderr (warnings and above) and, when enabled,
    to .algoengine/algoengine_debug.log.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(ENGINE_LOGGER_NAME)

    # Only configure once
    if not logger.handlers:
        logger.setLevel(logging.DEBUG if is_debug_log_enabled() else logging.INFO)

        file_handler = _create_file_handler(DEBUG_LOG_FILENAME)
        if file_handler:
            logger.addHandler(file_handler)

        logger.addHandler(_create_stderr_handler())

    return logger


def reconfigure_log_directory() -> logging.Logger:
    """
    Drop the existing handlers and configure the package logger again.

    Call this after ALGOENGINE_PROJECT_ROOT or ALGOENGINE_LOG_DIR changes.
    """
    logger = logging.getLogger(ENGINE_LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    return get_engine_logger()


# Pre-create logger for import convenience
engine_logger = get_engine_logger()


def configure_logger_for_debug_trace(logger_name: str) -> logging.Logger:
    """
    Get a module logger that reports through the package logger.

    Args:
        logger_name: Name of the logger to configure (e.g., __name__)

    Returns:
        Logger instance
    """
    get_engine_logger()
    logger = logging.getLogger(logger_name)
    if not logger_name.startswith(ENGINE_LOGGER_NAME):
        for handler in engine_logger.handlers:
            if handler not in logger.handlers:
                logger.addHandler(handler)
    return logger


def suppress_stderr_logging():
    """
    Suppress stderr logging for the package logger.

    Call this when using Rich output to keep log lines out of tables.
    File logging continues to work normally.
    """
    for handler in logging.getLogger(ENGINE_LOGGER_NAME).handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.CRITICAL + 1)  # Effectively disable


def restore_stderr_logging():
    """Restore stderr logging for the package logger."""
    for handler in logging.getLogger(ENGINE_LOGGER_NAME).handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.WARNING)
