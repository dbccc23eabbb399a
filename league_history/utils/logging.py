from __future__ import annotations

import logging
from typing import Optional

from league_history.utils.env import getenv_str


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; LOG_LEVEL env var wins over the default."""
    name = (level or getenv_str("LOG_LEVEL", "INFO") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
    # urllib3 is chatty at INFO/DEBUG for every pooled request.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
