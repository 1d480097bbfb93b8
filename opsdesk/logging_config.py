"""
Logging setup.

Modules log through `logging.getLogger(__name__)`; this module
only decides where the records go and at which level.
"""

import logging

from opsdesk.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    settings = get_settings()
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format=LOG_FORMAT,
    )
    # SQL echo is noisy; keep it behind DEBUG.
    if not settings.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
