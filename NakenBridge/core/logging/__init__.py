"""
Logging setup for NakenBridge.

Relay and client modules log through ``logging.getLogger(__name__)``; this
package only decides where those records go:
- console output (colored on terminals that support it)
- rotating files for the relay's long-running process
- per-environment presets (development, production, testing)

Usage:
    from NakenBridge.core.logging import auto_configure, get_logger

    auto_configure("development")
    logger = get_logger(__name__)
    logger.info("Relay started")
"""

import json
import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union


@dataclass
class LogConfig:
    """
    Configuration for the logging system.

    Attributes:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
        console_output: Whether to output to console
        file_output: Whether to output to rotating files
        max_bytes: Maximum size of a log file before rotation (bytes)
        backup_count: Number of rotated files to keep
        format_string: Custom format string for log messages
        date_format: Custom date format string
        json_output: Emit file records as JSON lines
        component_levels: Logger name -> level overrides
    """
    level: str = "INFO"
    log_dir: str = "./logs"
    console_output: bool = True
    file_output: bool = True
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    format_string: Optional[str] = None
    date_format: str = "%Y-%m-%d %H:%M:%S"
    json_output: bool = False
    component_levels: Dict[str, str] = field(default_factory=dict)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name on console output."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.platform != 'win32' and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{self.COLORS[original]}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JsonFormatter(logging.Formatter):
    """Formatter that writes one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        session_id = getattr(record, 'session_id', None)
        if session_id:
            log_data['session_id'] = session_id
        return json.dumps(log_data, default=str)


def get_default_format() -> str:
    """Get the default log format string."""
    return "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_detailed_format() -> str:
    """Get a detailed log format string with source location."""
    return (
        "%(asctime)s - %(name)s - %(levelname)s - "
        "[%(filename)s:%(lineno)d - %(funcName)s] - %(message)s"
    )


def _level(value: Union[str, int]) -> int:
    if isinstance(value, int):
        return value
    return getattr(logging, value.upper())


class LoggingManager:
    """
    Process-wide owner of the root logger's handlers.

    Reconfiguring replaces every handler this manager installed, so
    tests and the CLI can call ``configure`` more than once.
    """

    _instance: Optional['LoggingManager'] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._config: Optional[LogConfig] = None
        self._handlers: List[logging.Handler] = []
        self._initialized = True

    @property
    def config(self) -> Optional[LogConfig]:
        return self._config

    def configure(self, config: LogConfig) -> None:
        """
        Configure the logging system.

        Args:
            config: Logging configuration
        """
        self._config = config
        level = _level(config.level)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

        if config.console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(
                ColoredFormatter(config.format_string or get_default_format(), config.date_format)
            )
            self.add_handler(console_handler)

        if config.file_output:
            Path(config.log_dir).mkdir(parents=True, exist_ok=True)
            if config.json_output:
                formatter = JsonFormatter()
            else:
                formatter = logging.Formatter(
                    config.format_string or get_detailed_format(), config.date_format
                )

            file_handler = logging.handlers.RotatingFileHandler(
                os.path.join(config.log_dir, "nakenbridge.log"),
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.add_handler(file_handler)

            error_handler = logging.handlers.RotatingFileHandler(
                os.path.join(config.log_dir, "nakenbridge_errors.log"),
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(formatter)
            self.add_handler(error_handler)

        for component, component_level in config.component_levels.items():
            logging.getLogger(component).setLevel(_level(component_level))

        logging.getLogger(__name__).debug("Logging configured with level %s", config.level)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def set_level(self, level: Union[str, int]) -> None:
        """Set the root level and the level of every installed handler."""
        level = _level(level)
        logging.getLogger().setLevel(level)
        for handler in self._handlers:
            if handler.level != logging.ERROR:
                handler.setLevel(level)

    def add_handler(self, handler: logging.Handler) -> None:
        logging.getLogger().addHandler(handler)
        self._handlers.append(handler)

    def shutdown(self) -> None:
        logging.shutdown()


_logging_manager = LoggingManager()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return _logging_manager.get_logger(name)


def configure_logging(config: LogConfig) -> None:
    """Configure the logging system."""
    _logging_manager.configure(config)


def get_logging_manager() -> LoggingManager:
    """Get the global logging manager instance."""
    return _logging_manager


def create_development_config() -> LogConfig:
    """Verbose console and file logging for local runs."""
    return LogConfig(
        level="DEBUG",
        log_dir="./logs/dev",
        console_output=True,
        file_output=True,
        max_bytes=5 * 1024 * 1024,
        backup_count=3,
        component_levels={"websockets": "WARNING", "asyncio": "WARNING"},
    )


def create_production_config() -> LogConfig:
    """File-only JSON logging for a deployed relay."""
    return LogConfig(
        level="INFO",
        log_dir="./logs/prod",
        console_output=False,
        file_output=True,
        max_bytes=50 * 1024 * 1024,
        backup_count=10,
        json_output=True,
        component_levels={"websockets": "ERROR", "asyncio": "ERROR"},
    )


def create_testing_config() -> LogConfig:
    """Console-only logging used by the test suite."""
    return LogConfig(
        level="DEBUG",
        console_output=True,
        file_output=False,
        format_string="%(levelname)s - %(name)s - %(message)s",
        component_levels={"websockets": "ERROR"},
    )


def create_client_config() -> LogConfig:
    """The console client prints chat to stdout, so logs go to a file only."""
    return LogConfig(
        level="INFO",
        log_dir="./logs/client",
        console_output=False,
        file_output=True,
        component_levels={"websockets": "ERROR"},
    )


def auto_configure(env: Optional[str] = None) -> None:
    """
    Configure logging for an environment.

    Args:
        env: development, production, testing or client. Read from
             NAKENBRIDGE_ENV when omitted.
    """
    if env is None:
        env = os.environ.get("NAKENBRIDGE_ENV", "development").lower()

    configs = {
        "development": create_development_config,
        "dev": create_development_config,
        "production": create_production_config,
        "prod": create_production_config,
        "testing": create_testing_config,
        "test": create_testing_config,
        "client": create_client_config,
    }
    configure_logging(configs.get(env, create_development_config)())
    get_logger(__name__).info("Logging auto-configured for environment: %s", env)


__all__ = [
    'LogConfig',
    'LoggingManager',
    'ColoredFormatter',
    'JsonFormatter',
    'get_logger',
    'configure_logging',
    'get_logging_manager',
    'create_development_config',
    'create_production_config',
    'create_testing_config',
    'create_client_config',
    'auto_configure',
    'get_default_format',
    'get_detailed_format',
]
