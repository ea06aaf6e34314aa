from __future__ import annotations

import logging
import sys

from lexdraft.config import get_settings

# Client libraries log every request at INFO; agent runs make dozens per draft.
_NOISY_LOGGERS = ("httpx", "openai", "urllib3")

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once. Records go to stderr so CLI JSON on stdout stays parseable."""
    global _configured
    if _configured:
        return

    name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=logging.getLevelName(name) if name in logging.getLevelNamesMapping() else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    _configured = True
