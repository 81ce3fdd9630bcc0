#!/usr/bin/env -S python3 -B -u
"""
Structured Logging for fasttrace

This module provides structured logging with verbosity levels and
consistent formatting across the session runner components.

Key Features:
- Structured log messages with key=value context
- Verbosity-based filtering (driven by the -v flags)
- Timing of probe runs and other operations
- Masking of API tokens and other sensitive values
"""

import logging as std_logging
import sys
import time
import json
from typing import Dict, Any, Optional, List, Union
from contextlib import contextmanager


class StructuredLogger:
    """
    Structured logger with verbosity control and consistent formatting.

    Verbosity levels:
    - 0: Only errors and critical messages
    - 1: Info messages and warnings
    - 2: Debug messages
    - 3: Trace-level debugging with full details
    """

    def __init__(self, name: str, verbose_level: int = 0):
        """
        Initialize structured logger.

        Args:
            name: Logger name (usually module name)
            verbose_level: Verbosity level (0-3)
        """
        self.name = name
        self.verbose_level = verbose_level
        self.logger = std_logging.getLogger(name)

        self.logger.setLevel(std_logging.DEBUG)
        self.logger.propagate = False
        self.logger.handlers.clear()

        handler = std_logging.StreamHandler(sys.stderr)
        handler.setFormatter(self._create_formatter())
        self.logger.addHandler(handler)

    def _create_formatter(self) -> std_logging.Formatter:
        """Create appropriate formatter based on verbosity."""
        if self.verbose_level >= 3:
            return std_logging.Formatter(
                '%(asctime)s [%(name)s] %(levelname)s: %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
        elif self.verbose_level >= 2:
            return std_logging.Formatter('[%(name)s] %(levelname)s: %(message)s')
        else:
            return std_logging.Formatter('%(message)s')

    def _should_log(self, level: int) -> bool:
        """Check if message should be logged based on verbosity."""
        level_map = {
            std_logging.ERROR: 0,
            std_logging.WARNING: 1,
            std_logging.INFO: 1,
            std_logging.DEBUG: 2,
        }
        return self.verbose_level >= level_map.get(level, 3)

    def error(self, message: str, **context: Any) -> None:
        """Log error message (always shown)."""
        if context and self.verbose_level >= 2:
            message = f"{message} | {self._format_context(context)}"
        self.logger.error(message)

    def warning(self, message: str, **context: Any) -> None:
        """Log warning message (shown at verbosity 1+)."""
        if self._should_log(std_logging.WARNING):
            if context and self.verbose_level >= 2:
                message = f"{message} | {self._format_context(context)}"
            self.logger.warning(message)

    def info(self, message: str, **context: Any) -> None:
        """Log info message (shown at verbosity 1+)."""
        if self._should_log(std_logging.INFO):
            if context and self.verbose_level >= 2:
                message = f"{message} | {self._format_context(context)}"
            self.logger.info(message)

    def debug(self, message: str, **context: Any) -> None:
        """Log debug message (shown at verbosity 2+)."""
        if self._should_log(std_logging.DEBUG):
            if context:
                message = f"{message} | {self._format_context(context)}"
            self.logger.debug(message)

    def trace(self, message: str, **context: Any) -> None:
        """Log trace message (shown at verbosity 3)."""
        if self.verbose_level >= 3:
            if context:
                message = f"{message} | {self._format_context(context)}"
            self.logger.debug(f"[TRACE] {message}")

    def _format_context(self, context: Dict[str, Any]) -> str:
        """Format context dictionary for logging."""
        masked_context = self._mask_sensitive_data(context)

        if self.verbose_level >= 3:
            return json.dumps(masked_context, default=str)
        else:
            return " ".join(f"{k}={v}" for k, v in masked_context.items())

    def _mask_sensitive_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive data in context."""
        sensitive_keys = {'password', 'secret', 'token', 'auth'}
        masked_data = {}

        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in sensitive_keys):
                masked_data[key] = "***MASKED***"
            elif isinstance(value, dict):
                masked_data[key] = self._mask_sensitive_data(value)
            else:
                masked_data[key] = value

        return masked_data

    @contextmanager
    def timer(self, operation: str):
        """Context manager for timing operations."""
        start_time = time.time()
        self.debug(f"Starting {operation}")

        try:
            yield
        finally:
            elapsed = time.time() - start_time
            self.debug(f"Completed {operation}", elapsed_ms=f"{elapsed*1000:.2f}")

    def log_probe_run(self, location: str, carrier: str, ip: str, **details: Any) -> None:
        """Log the start of a probe run against a vantage point."""
        self.info(f"Probing {location} {carrier} ({ip})", **details)

    def log_hop(self, ttl: int, ip: Optional[str], **details: Any) -> None:
        """Log traceroute hop information."""
        self.debug(f"Hop {ttl}: {ip or '*'}", **details)

    def log_state_transition(self, old_state: str, new_state: str, **details: Any) -> None:
        """Log a session state machine transition."""
        self.debug(f"Session state {old_state} -> {new_state}", **details)

    def log_command_execution(
        self,
        command: Union[str, List[str]],
        host: Optional[str] = None,
        success: Optional[bool] = None,
        **details: Any
    ) -> None:
        """Log command execution."""
        cmd_str = command if isinstance(command, str) else " ".join(command)

        message = f"Executing: {cmd_str}"
        if host:
            message = f"[{host}] {message}"

        if success is not None:
            message += f" - {'SUCCESS' if success else 'FAILED'}"

        self.debug(message, **details)


def get_logger(name: str, verbose_level: Optional[int] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (usually __name__)
        verbose_level: Verbosity level (0-3), defaults to the global level

    Returns:
        StructuredLogger instance
    """
    if verbose_level is None:
        verbose_level = get_verbose_level()

    # Cache loggers to avoid recreation
    if not hasattr(get_logger, '_loggers'):
        get_logger._loggers = {}

    cache_key = f"{name}:{verbose_level}"
    if cache_key not in get_logger._loggers:
        get_logger._loggers[cache_key] = StructuredLogger(name, verbose_level)

    return get_logger._loggers[cache_key]


def setup_logging(verbose_level: int = 0) -> None:
    """
    Setup logging for the entire application.

    Args:
        verbose_level: Global verbosity level (0-3)
    """
    setup_logging._verbose_level = verbose_level

    root_logger = std_logging.getLogger()
    root_logger.setLevel(std_logging.WARNING)

    # Suppress noisy third-party loggers
    for logger_name in ['urllib3', 'websocket', 'requests']:
        std_logging.getLogger(logger_name).setLevel(std_logging.ERROR)


def get_verbose_level() -> int:
    """Get the global verbose level."""
    return getattr(setup_logging, '_verbose_level', 0)
