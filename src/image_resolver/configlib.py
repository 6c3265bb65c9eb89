from __future__ import annotations

import logging
import pathlib
import sys

from attrs import define, field

TERM_COLORS = {"red": "31", "green": "32", "blue": "34"}
LOGGER_NAME = "image_resolver"


def colored(text, color: str) -> str:
    """foreground-term-colored string"""
    value = TERM_COLORS.get(color, "39")
    return f"\033[{value}m{text}\033[39m"


def get_logger(name: str | None = None) -> logging.Logger:
    """package logger or one of its children"""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


@define
class Config:
    name: str = "-"
    debug: bool = False
    logger: logging.Logger = field(init=False)

    @classmethod
    def init(cls, name: str):
        """configure logging for a program (not to be used by library code)"""
        logging.basicConfig(
            level=logging.INFO,
            format=f"{colored('%(name)s', 'blue')} %(levelname)s: %(message)s",
        )
        cls.name = name
        cls.logger = get_logger()
        cls.set_debug(enabled=cls.debug)

    @classmethod
    def set_debug(cls, *, enabled: bool = False):
        cls.debug = bool(enabled)
        cls.logger.setLevel(logging.DEBUG if enabled else logging.INFO)


# class-level state, shared by the running program
Config.name = "-"
Config.debug = False
Config.logger = get_logger()


def fail_invalid(message: str):
    Config.logger.error(colored(message, "red"))
    sys.exit(2)


def fail_error(message: str):
    Config.logger.critical(colored(message, "red"))
    sys.exit(1)


def succeed(message: str) -> int:
    Config.logger.info(colored(message, "green"))
    return 0


def get_progname() -> str:
    """human-friendly program name for use in usage help text"""
    try:
        return pathlib.Path(sys.argv[0]).stem
    except Exception:
        return sys.argv[0]
