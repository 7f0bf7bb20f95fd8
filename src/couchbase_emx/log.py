"""Process-wide logging setup in logfmt style (ts, level, caller, msg)."""

import logging
import sys

LOG_FORMAT = 'ts=%(asctime)s level=%(levelname)s caller=%(filename)s:%(lineno)d msg="%(message)s"'
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def configure_logging(level: str = "INFO") -> None:
    """Install the logfmt handler on the root logger, writing to stdout."""
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    # httpx logs every request at INFO; the exporter logs its own fetches
    logging.getLogger("httpx").setLevel(logging.WARNING)
