import logging
import sys

from ..config import LOG_LEVEL


def get_logger(name: str | None = None):
    root = logging.getLogger("sigconform")
    if not root.handlers:
        # stdout carries CLI payloads only
        h = logging.StreamHandler(sys.stderr)
        fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(message)s")
        h.setFormatter(fmt)
        root.addHandler(h)
        root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    if name:
        return root.getChild(name)
    return root
