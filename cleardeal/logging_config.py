"""Logging setup for ClearDeal.

Modules log through ``logging.getLogger(__name__)``; this module only wires
the ``cleardeal`` logger hierarchy to a handler and provides the one-line
transition log used by the engines.
"""

import logging
from typing import Any, Optional

ROOT_LOGGER = "cleardeal"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """Configure the cleardeal logger. Later calls only change the level.

    Log lines go to ``stream``, or to stderr when none is given.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_coerce_level(level))

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the cleardeal namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_transition(
    entity: str,
    entity_id: str,
    action: str,
    logger: Optional[logging.Logger] = None,
    **fields: Any,
) -> None:
    """Log a committed state transition as a single line."""
    logger = logger or get_logger("transitions")
    parts = [action, f"{entity}={entity_id}"]
    parts.extend(f"{key}={value}" for key, value in fields.items() if value is not None)
    logger.info(" | ".join(parts))


def _coerce_level(level) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved
