from __future__ import annotations

import logging
from typing import Any, Dict

# Attributes every LogRecord already has; passing them in ``extra`` raises KeyError.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def _extra(event: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    extra = {k: v for k, v in fields.items() if k not in _RECORD_ATTRS}
    extra["event"] = event
    return extra


def log_event(
    event: str,
    logger: logging.Logger | None = None,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Emit one structured event: the message is the event name and the keyword
    fields ride along as record attributes for LogfmtFormatter to pick up.
    """
    log = logger or logging.getLogger("openproject_hal.observability")
    if log.isEnabledFor(level):
        log.log(level, event, extra=_extra(event, fields))


__all__ = ["log_event"]
