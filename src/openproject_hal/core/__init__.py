"""Ambient plumbing: environment config, logging setup, structured events."""

from .config import create_client_from_env, load_env_config
from .logging import LOG_EXTRA_FIELDS, LogfmtFormatter, setup_logging
from .observability import log_event

__all__ = [
    "create_client_from_env",
    "load_env_config",
    "setup_logging",
    "LogfmtFormatter",
    "LOG_EXTRA_FIELDS",
    "log_event",
]
