"""root logging configuration for the cli"""

import logging
import sys
from typing import Optional

from quorum.utils.correlation import AuditIdFilter

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(audit_id)s] %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None, verbose: bool = False) -> None:
    """install one stderr handler stamped with the current audit id"""
    if level is None:
        from quorum.config import config
        level = config.LOG_LEVEL
    if verbose:
        level = "DEBUG"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(AuditIdFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # keep third-party request logs quiet unless debugging
    if not verbose:
        for noisy in ("httpx", "httpcore", "openai", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
