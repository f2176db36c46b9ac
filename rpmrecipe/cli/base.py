import logging
import sys
from collections.abc import Sequence
from typing import Optional

from ..util import parse_define


def setup_logging(log_level: int):
    handlers = []

    # Messages at level INFO or lower (stage commands, progress) go to stdout
    info_handler = logging.StreamHandler(stream=sys.stdout)
    info_handler.setLevel(log_level)
    info_handler.addFilter(lambda record: record.levelno <= logging.INFO)  # pragma: no cover
    handlers.append(info_handler)

    # Warnings and errors go to stderr
    logging.lastResort.addFilter(lambda record: record.levelno > logging.INFO)  # pragma: no cover
    handlers.append(logging.lastResort)

    if log_level == logging.INFO:
        # In normal operation, don't decorate messages
        for handler in handlers:
            handler.setFormatter(logging.Formatter("%(message)s"))

    logging.basicConfig(level=log_level, handlers=handlers)


def collect_defines(values: Optional[Sequence[str]]) -> dict[str, str]:
    """Turn repeated --define options into a macro mapping.

    Later definitions of the same macro win.
    """
    return dict(parse_define(value) for value in values or ())
