# rr_utils/logging_setup.py
import logging
import sys
from typing import Literal, Union

Level = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: Union[Level, int] = "INFO") -> int:
    """
    Route log records to stderr so `--json` output on stdout stays parseable.
    Returns the numeric level actually applied.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=FORMAT, stream=sys.stderr)
    return level
