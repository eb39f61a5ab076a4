import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from colorama import Fore, Style, init

from topreco.utils import constants

init(autoreset=True)

# Attribute set on every handler this module installs, so stop() only removes its own
_OWNED_HANDLER_FLAG = "_topreco_handler"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""
    COLORS = {
        'DEBUG': Fore.WHITE + Style.DIM,
        'INFO': Fore.CYAN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT
    }
    RESET = Style.RESET_ALL

    def format(self, record):
        # Color a copy so the file handler still sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        return super().format(record)


class LoggingConfigurator:
    """Configures console and rotating file logging for the reconstruction."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        defaults = constants.DEFAULT_CONFIG['logging']
        self.config = {**defaults, **(config or {}).get('logging', {})}
        self.log_level = getattr(logging, str(self.config.get('level', 'INFO')).upper())
        self.log_dir = Path(self.config.get('log_dir', 'logs'))

    def setup(self) -> None:
        """Install console/file handlers on the root logger, replacing any we installed before."""
        self.shutdown()
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)

        # Console Handler
        if self.config.get('log_to_console', True):
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)

            fmt = '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'
            if self.config.get('colorful_console', True):
                formatter = ColoredFormatter(fmt, datefmt='%Y-%m-%d %H:%M:%S')
            else:
                formatter = logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S')

            console_handler.setFormatter(formatter)
            self._install(root_logger, console_handler)

        # File Handler (always UTF-8)
        if self.config.get('log_to_file', True):
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._add_file_handler(root_logger, constants.LOG_FILE)

    def _add_file_handler(self, logger: logging.Logger, filename: str):
        file_path = self.log_dir / filename
        handler = RotatingFileHandler(
            file_path,
            maxBytes=10*1024*1024,
            backupCount=5,
            encoding='utf-8'
        )
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter('[%(asctime)s] [%(levelname)s] [%(name)s] [%(funcName)s] %(message)s')
        handler.setFormatter(formatter)
        self._install(logger, handler)

    @staticmethod
    def _install(logger: logging.Logger, handler: logging.Handler) -> None:
        setattr(handler, _OWNED_HANDLER_FLAG, True)
        logger.addHandler(handler)

    @staticmethod
    def shutdown() -> None:
        """Flush, close and detach the handlers installed by setup(). Safe to repeat."""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if getattr(handler, _OWNED_HANDLER_FLAG, False):
                root_logger.removeHandler(handler)
                handler.flush()
                handler.close()

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)
