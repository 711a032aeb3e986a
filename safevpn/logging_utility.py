import logging
import os
import sys
from logging.handlers import RotatingFileHandler


LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class Logger:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._setup_logger()
        return cls._instance

    def _setup_logger(self):
        self.logger = logging.getLogger('SafeVPN')
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        self.file_handler = None

        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setLevel(logging.INFO)
        self.console_handler.setFormatter(self.formatter)
        self.logger.addHandler(self.console_handler)

    def set_console_level(self, level: int):
        self.console_handler.setLevel(level)

    def add_file_handler(self, log_file: str):
        """Attach the rotating log file once its location is known."""
        if self.file_handler is not None:
            return
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)

        # Use RotatingFileHandler to limit log file size
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024,
                                           backupCount=3)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(self.formatter)
        self.logger.addHandler(file_handler)
        self.file_handler = file_handler

    def get_logger(self):
        return self.logger


logger = Logger().get_logger()
