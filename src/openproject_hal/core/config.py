from __future__ import annotations

import os
from typing import Tuple

from dotenv import load_dotenv

BASE_URL_ENV = "OPENPROJECT_BASE_URL"
API_KEY_ENV = "OPENPROJECT_API_KEY"
TIMEOUT_ENV = "OPENPROJECT_TIMEOUT_SECONDS"


def load_env_config(*, use_dotenv: bool = True) -> Tuple[str, str]:
    """Load OpenProject base URL and API key from environment (optional .env)."""
    if use_dotenv:
        load_dotenv()
    base_url = os.getenv(BASE_URL_ENV, "").strip()
    api_key = os.getenv(API_KEY_ENV, "").strip()
    return base_url, api_key


def load_timeout_seconds(default: float = 100.0) -> float:
    raw = os.getenv(TIMEOUT_ENV, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{TIMEOUT_ENV} must be a number, got {raw!r}") from exc


def create_client_from_env(**kwargs):
    """Create an OpenProjectClient from environment variables."""
    from openproject_hal.client import OpenProjectClient

    base_url, api_key = load_env_config()
    if not base_url or not api_key:
        raise ValueError(
            f"Missing {BASE_URL_ENV} or {API_KEY_ENV} in environment."
        )
    kwargs.setdefault("timeout_seconds", load_timeout_seconds())
    return OpenProjectClient(base_url=base_url, api_key=api_key, **kwargs)


__all__ = ["load_env_config", "load_timeout_seconds", "create_client_from_env"]
