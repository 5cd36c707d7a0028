import logging
from datetime import datetime
from typing import Optional
import os

class TradingLogger:
    """
    Thin wrapper over a named stdlib logger. Instances sharing a name share
    handlers; a later instance only adds the console or file handler the
    name does not have yet.
    """

    def __init__(self, name: str = "strategy_engine", log_dir: Optional[str] = "data/logs", console_output: bool = False):
        self.log_dir = log_dir
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # Create logger
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        self._setup_handlers(console_output)

    def _setup_handlers(self, console_output: bool):
        # FileHandler subclasses StreamHandler, so match console handlers exactly
        has_console = any(type(h) is logging.StreamHandler for h in self.logger.handlers)
        has_file = any(isinstance(h, logging.FileHandler) for h in self.logger.handlers)

        # Console handler (only if console_output is True)
        if console_output and not has_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_format = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
            console_handler.setFormatter(console_format)
            self.logger.addHandler(console_handler)

        # File handler (skipped when there is no log directory)
        if self.log_dir and not has_file:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            file_handler = logging.FileHandler(
                os.path.join(self.log_dir, f'strategy_engine_{timestamp}.log')
            )
            file_handler.setLevel(logging.DEBUG)
            file_format = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            file_handler.setFormatter(file_format)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def critical(self, message: str) -> None:
        """Log critical message"""
        self.logger.critical(message)

    def debug(self, message: str) -> None:
        """Log debug message"""
        self.logger.debug(message)

    def info(self, message: str) -> None:
        """Log info message"""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log warning message"""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log error message"""
        self.logger.error(message)


def default_logger(component: str) -> TradingLogger:
    """Console-less, file-less logger used when a component is built without one"""
    return TradingLogger(f"strategy_engine.{component}", log_dir=None)
