from __future__ import annotations

import logging
import sys

_FORMATS = {
    "plain": "%(message)s",
    "verbose": "%(asctime)s %(levelname)s %(name)s %(message)s",
}


def setup_logging(level: str = "INFO", fmt: str = "plain") -> None:
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMATS.get(fmt, _FORMATS["plain"])))

    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("pymongo").setLevel(max(logging.WARNING, root.level))
