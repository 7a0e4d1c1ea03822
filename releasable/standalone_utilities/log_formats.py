"""Logger construction with level-colored terminal output."""
import logging
from os import getenv
from sys import stderr

LOG_LEVEL_VARIABLE = 'RELEASABLE_LOG_LEVEL'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LevelColorFormatter(logging.Formatter):
    colors = {
        'DEBUG': '\033[90m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[41m',
    }
    reset = '\033[0m'

    def __init__(self, use_color: bool):
        super().__init__(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.colors.get(record.levelname)
        if self.use_color and color is not None:
            return color + message + self.reset
        return message


def supports_color() -> bool:
    if getenv('NO_COLOR') is not None:
        return False
    return hasattr(stderr, 'isatty') and stderr.isatty()


def get_configured_level() -> int:
    name = getenv(LOG_LEVEL_VARIABLE, 'INFO').upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        return logging.INFO
    return level


def colorized_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(h.formatter, LevelColorFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(LevelColorFormatter(supports_color()))
        logger.addHandler(handler)
    logger.setLevel(get_configured_level())
    return logger
