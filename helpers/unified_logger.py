"""
Unified logging for kraken-clients

Provides consistent, colored, and informative logging across all components:
- REST dispatcher and endpoint catalog
- WebSocket stream sessions
- Caller-side tooling built on top of the clients

Based on loguru with component-specific context bound to every record.
"""

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger as _logger


class UnifiedLogger:
    """
    Unified logger that provides consistent formatting across all components.

    Features:
    - Colored console output with source location (module:function:line)
    - Component-specific context (exchange, stream, etc.)
    - Optional file logging with rotation and compression
    - ``.log(message, level)`` shim for components that log by level name
    """

    def __init__(
        self,
        component_type: str,  # "exchange", "stream", "core"
        component_name: str,  # "kraken", "kraken_ws", etc.
        context: Optional[Dict[str, Any]] = None,
        log_to_console: bool = True,
        log_level: str = "INFO",
        log_dir: Optional[str] = None,
    ):
        """
        Initialize unified logger.

        Args:
            component_type: Type of component (exchange, stream, core)
            component_name: Name of specific component
            context: Additional context (symbol, session id, etc.)
            log_to_console: Whether to log to console
            log_level: Minimum log level
            log_dir: Directory for the rotating history file. Disabled when None.
        """
        self.component_type = component_type.upper()
        self.component_name = component_name.upper()
        self.context = context or {}
        self.log_level = log_level.upper()
        self.log_to_console = log_to_console
        self.log_dir = log_dir

        self.component_id = f"{self.component_type}:{self.component_name}"
        if self.context:
            context_str = ":".join([f"{k}={v}" for k, v in self.context.items()])
            self.component_id = f"{self.component_id}:{context_str}"

        self._setup_logger(log_to_console)

    def _setup_logger(self, log_to_console: bool):
        """Setup loguru handlers once per process and bind component context."""

        if not hasattr(_logger, "_kraken_console_setup"):
            _logger.remove()

            if log_to_console:
                def _truncate_module_path(module: str, max_width: int) -> str:
                    if len(module) <= max_width:
                        return module

                    parts = module.split(".")
                    kept = parts[-1]
                    idx = len(parts) - 2
                    while idx >= 0:
                        candidate = ".".join(parts[idx:])
                        if len(candidate) + 3 <= max_width:
                            return f"...{candidate}"
                        idx -= 1

                    return f"...{kept[-(max_width-3):]}" if len(kept) + 3 > max_width else f"...{kept}"

                def format_record(record):
                    module_name = record.get("module") or record.get("name", "")
                    function_name = record.get("function", "")
                    line_number = record.get("line", 0)

                    max_width = 55

                    # function:line is never truncated, only the module path
                    if function_name:
                        suffix = f":{function_name}:{line_number}"
                    else:
                        suffix = f":{line_number}"

                    available_for_module = max_width - len(suffix)
                    if available_for_module <= 3:
                        module_display = "..."
                    else:
                        module_display = _truncate_module_path(module_name, available_for_module)

                    source_location = f"{module_display}{suffix}"
                    record["extra"]["short_name"] = f"{source_location:>{max_width}}"
                    return True

                console_format = (
                    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                    "<level>{level: <8}</level> | "
                    "<cyan>{extra[short_name]}</cyan> | "
                    "<level>{message}</level>"
                )

                _logger.add(
                    sys.stderr,
                    format=console_format,
                    level=self.log_level,
                    colorize=True,
                    filter=lambda record: record["extra"].get("component_id") and format_record(record),
                    backtrace=True,
                    diagnose=False,
                )

            _logger._kraken_console_setup = True

        if self.log_dir and not hasattr(_logger, "_kraken_history_setup"):
            logs_dir = Path(self.log_dir)
            logs_dir.mkdir(parents=True, exist_ok=True)
            session_ts = datetime.now().strftime("%Y%m%d_%H%M%S")

            def ensure_component(record):
                if "component_id" not in record["extra"]:
                    record["extra"]["component_id"] = "UNKNOWN"
                return True

            history_format = (
                "{time:YYYY-MM-DD HH:mm:ss} | "
                "{level:<8} | "
                "{extra[component_id]:<35} | "
                "{message}"
            )

            _logger.add(
                str(logs_dir / f"kraken_{session_ts}.log"),
                format=history_format,
                level="DEBUG",
                filter=ensure_component,
                rotation="50 MB",
                compression="zip",
                backtrace=False,
                diagnose=False,
                enqueue=True,
                catch=True,
            )
            _logger._kraken_history_setup = True

        self._logger = _logger.bind(component_id=self.component_id)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._logger.opt(depth=1).debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._logger.opt(depth=1).info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._logger.opt(depth=1).warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self._logger.opt(depth=1).error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message."""
        self._logger.opt(depth=1).critical(message, **kwargs)

    def log(self, message: str, level: str = "INFO", **kwargs):
        """
        Log by level name.

        Args:
            message: Log message
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            **kwargs: Additional context
        """
        level = level.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            level = "INFO"
        # depth=1 skips this wrapper so records show the real caller
        self._logger.opt(depth=1).log(level, message, **kwargs)

    def with_context(self, **context) -> "UnifiedLogger":
        """
        Create a new logger instance with additional context.

        Useful for tagging records with a symbol or a session identifier.
        """
        new_context = {**self.context, **context}
        return UnifiedLogger(
            component_type=self.component_type.lower(),
            component_name=self.component_name.lower(),
            context=new_context,
            log_to_console=self.log_to_console,
            log_level=self.log_level,
            log_dir=self.log_dir,
        )


def get_logger(
    component_type: str,
    component_name: str,
    context: Optional[Dict[str, Any]] = None,
    log_to_console: bool = True,
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
) -> UnifiedLogger:
    """
    Factory function to create unified loggers.

    Args:
        component_type: Type of component (exchange, stream, core)
        component_name: Name of specific component
        context: Additional context (symbol, session id, etc.)
        log_to_console: Whether to log to console
        log_level: Log level (defaults to env LOG_LEVEL or INFO)
        log_dir: History file directory (defaults to env KRAKEN_LOG_DIR, disabled if unset)

    Examples:
        logger = get_logger("exchange", "kraken")
        logger = get_logger("stream", "kraken_ws", {"symbol": "BTC/USD"})
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")
    if log_dir is None:
        log_dir = os.getenv("KRAKEN_LOG_DIR") or None

    return UnifiedLogger(
        component_type=component_type,
        component_name=component_name,
        context=context,
        log_to_console=log_to_console,
        log_level=log_level,
        log_dir=log_dir,
    )


def get_exchange_logger(exchange_name: str, symbol: str = None, **context) -> UnifiedLogger:
    """Get logger for exchange clients."""
    ctx = {"symbol": symbol} if symbol else {}
    ctx.update(context)
    return get_logger("exchange", exchange_name, ctx)


def get_stream_logger(stream_name: str, **context) -> UnifiedLogger:
    """Get logger for streaming sessions."""
    return get_logger("stream", stream_name, context)
