# SPDX-License-Identifier: AGPL-3.0

import logging
from dataclasses import dataclass

from rich.console import Console
from rich.logging import RichHandler

# records go to stderr, the export document may be written to stdout
logging.basicConfig(
    format="%(message)s",
    handlers=[
        RichHandler(
            level=logging.NOTSET,
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
        )
    ],
)

logger = logging.getLogger("covexport")


class SeenMessagesFilter(logging.Filter):
    """Lets each distinct (level, message) pair through once."""

    def __init__(self):
        super().__init__()
        self.seen: set[tuple[int, str]] = set()

    def filter(self, record: logging.LogRecord) -> bool:
        key = (record.levelno, str(record.msg))
        if key in self.seen:
            return False
        self.seen.add(key)
        return True


# for messages that would otherwise repeat once per file or per function
logger_unique = logging.getLogger("covexport.unique")
logger_unique.addFilter(SeenMessagesFilter())


def _log(level: int, text: str, allow_duplicate: bool) -> None:
    (logger if allow_duplicate else logger_unique).log(level, text)


def debug(text: str, allow_duplicate=True) -> None:
    _log(logging.DEBUG, text, allow_duplicate)


def warn(text: str, allow_duplicate=True) -> None:
    _log(logging.WARNING, text, allow_duplicate)


def error(text: str, allow_duplicate=True) -> None:
    _log(logging.ERROR, text, allow_duplicate)


@dataclass(frozen=True)
class ErrorCode:
    """Stable identifier appended to a warning, so it can be grepped for."""

    code: str

    def tag(self) -> str:
        return f"[{self.code}]"


PARSING_ERROR = ErrorCode("parsing-error")
EMPTY_EXPORT = ErrorCode("empty-export")
IGNORED_ALL_FILES = ErrorCode("ignored-all-files")


def warn_code(error_code: ErrorCode, msg: str, allow_duplicate=True) -> None:
    warn(f"{msg} {error_code.tag()}", allow_duplicate)
