import logging
import os
from typing import Any, Iterable, Optional

LOG_LEVEL_ENV = "OPENPROJECT_LOG_LEVEL"

# Record attributes rendered after the event name, in this order
LOG_EXTRA_FIELDS = (
    "tool",
    "method",
    "url",
    "status",
    "duration_ms",
    "attempt",
    "error_type",
    "page",
    "pages",
    "elements",
    "work_package_id",
    "field",
    "source",
    "count",
    "total",
    "accumulated",
    "fields",
)


def _logfmt_value(val: Any) -> str:
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, (int, float)):
        return str(val)
    if isinstance(val, (list, tuple, set, frozenset)):
        val = ",".join(str(v) for v in val)
    s = str(val)
    if not s or any(ch in s for ch in ' ="'):
        return '"' + s.replace('"', '\\"') + '"'
    return s


class LogfmtFormatter(logging.Formatter):
    """One ``key=value`` line per record; extras that are absent are skipped."""

    def __init__(self, fields: Iterable[str] = LOG_EXTRA_FIELDS) -> None:
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        pairs = [
            ("level", record.levelname.lower()),
            ("logger", record.name),
            ("event", record.getMessage() or None),
        ]
        pairs.extend((key, getattr(record, key, None)) for key in self.fields)
        if record.exc_info and record.exc_info[0] is not None:
            pairs.append(("exc_type", record.exc_info[0].__name__))

        return " ".join(
            f"{key}={_logfmt_value(val)}" for key, val in pairs if val is not None
        )


class _LogfmtHandler(logging.StreamHandler):
    pass


def setup_logging(level: Optional[str] = None) -> None:
    """
    Install a logfmt stream handler on the root logger.

    The level comes from the argument, then OPENPROJECT_LOG_LEVEL, then INFO.
    Calling it again replaces the handler it installed earlier and leaves
    handlers added by others alone.
    """
    level = level or os.getenv(LOG_LEVEL_ENV) or "INFO"

    root = logging.getLogger()
    for h in list(root.handlers):
        if isinstance(h, _LogfmtHandler):
            root.removeHandler(h)

    handler = _LogfmtHandler()
    handler.setFormatter(LogfmtFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


__all__ = ["setup_logging", "LogfmtFormatter", "LOG_EXTRA_FIELDS", "LOG_LEVEL_ENV"]
