import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .core.config import load_env_config
from .custom_fields import CustomFieldRegistry
from .hal import api_path

T = TypeVar("T", bound=BaseModel)

HAL_ACCEPT = "application/hal+json, application/json"
DEFAULT_USER_AGENT = "openproject-hal"
TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout)


class OpenProjectClientError(Exception):
    """Base error for client failures."""


class OpenProjectHTTPError(OpenProjectClientError):
    """Non-2xx answer. Keeps the decoded error resource when the body was JSON."""

    def __init__(
        self,
        *,
        status_code: int,
        method: str,
        url: str,
        message: str,
        response_json: Optional[Dict[str, Any]] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(f"{status_code} {method} {url}: {message}")
        self.status_code = status_code
        self.method = method
        self.url = url
        self.response_json = response_json
        self.response_text = response_text

    @property
    def error_identifier(self) -> Optional[str]:
        if not self.response_json:
            return None
        return self.response_json.get("errorIdentifier")


class OpenProjectParseError(OpenProjectClientError):
    pass


class OpenProjectModelValidationError(OpenProjectClientError):
    pass


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 2  # extra attempts after the first
    backoff_base_seconds: float = 0.3
    retry_statuses: frozenset[int] = frozenset({502, 503, 504})
    retry_on_429: bool = False

    def should_retry_status(self, status_code: int) -> bool:
        if status_code == 429:
            return self.retry_on_429
        return status_code in self.retry_statuses

    def delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2**attempt)


class OpenProjectClient:
    """
    Async session against the OpenProject API v3 (HAL+JSON).
    - Handles auth, base URL, timeouts, transient retries
    - Owns the session's CustomFieldRegistry (shared with every facade)
    - Returns raw dict payloads or Pydantic-validated models
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 100.0,
        user_agent: str = DEFAULT_USER_AGENT,
        retry: Optional[RetryConfig] = None,
        registry: Optional[CustomFieldRegistry] = None,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        base_url = (base_url or "").rstrip("/")
        if not base_url:
            raise ValueError("base_url must be provided.")
        if not api_key:
            raise ValueError("api_key must be provided.")

        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.retry = retry if retry is not None else RetryConfig()
        self.custom_fields = registry if registry is not None else CustomFieldRegistry()
        self.log = logger or logging.getLogger("openproject_hal.client")

        self._owns_http = http is None
        if http is None:
            # API tokens authenticate as the fixed basic-auth user "apikey"
            http = httpx.AsyncClient(
                base_url=self.base_url,
                auth=httpx.BasicAuth("apikey", api_key),
                headers={
                    "Accept": HAL_ACCEPT,
                    "Content-Type": "application/json",
                    "User-Agent": user_agent,
                },
                timeout=timeout_seconds,
                follow_redirects=True,
            )
        self.http = http

    @classmethod
    def from_env(cls, **kwargs) -> "OpenProjectClient":
        """Build from OPENPROJECT_BASE_URL / OPENPROJECT_API_KEY (a .env file is honoured)."""
        base_url, api_key = load_env_config()
        return cls(base_url=base_url, api_key=api_key, **kwargs)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "OpenProjectClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Sends one API call and returns the decoded JSON object ({} for empty bodies).

        Connection failures, read timeouts and the statuses in ``self.retry`` are
        retried with exponential backoff. Everything else surfaces at once:
        OpenProjectHTTPError for non-2xx answers, OpenProjectParseError for bodies
        that are not a JSON object, OpenProjectClientError for transport errors.
        """
        method = method.upper()
        attempt = 0

        while True:
            try:
                resp = await self._send(method, url, params=params, json=json, tool=tool, attempt=attempt)
            except TRANSIENT_ERRORS as exc:
                if attempt < self.retry.max_retries:
                    await asyncio.sleep(self.retry.delay(attempt))
                    attempt += 1
                    continue
                self.log.warning(
                    "op.request_failed",
                    extra={"tool": tool, "method": method, "url": url, "error_type": type(exc).__name__},
                )
                raise OpenProjectClientError(
                    f"Network/timeout error calling {method} {url}: {exc}"
                ) from exc
            except httpx.HTTPError as exc:
                raise OpenProjectClientError(
                    f"HTTPX error calling {method} {url}: {exc}"
                ) from exc

            if self.retry.should_retry_status(resp.status_code) and attempt < self.retry.max_retries:
                await asyncio.sleep(self.retry.delay(attempt))
                attempt += 1
                continue

            if not resp.is_success:
                raise self._to_http_error(resp, method=method)
            return self._safe_json(resp)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]],
        json: Optional[Dict[str, Any]],
        tool: Optional[str],
        attempt: int,
    ) -> httpx.Response:
        start = time.perf_counter()
        resp = await self.http.request(method, url, params=params, json=json)
        self.log.debug(
            "op.request",
            extra={
                "tool": tool,
                "method": method,
                "url": str(resp.request.url),
                "status": resp.status_code,
                "duration_ms": int((time.perf_counter() - start) * 1000),
                "attempt": attempt,
            },
        )
        return resp

    @staticmethod
    def _safe_json(resp: httpx.Response) -> Dict[str, Any]:
        if not resp.content:
            return {}

        where = f"{resp.request.method} {resp.request.url}"
        try:
            data = resp.json()
        except ValueError as exc:
            snippet = (resp.text or "")[:500]
            raise OpenProjectParseError(
                f"Expected JSON from {where}, got non-JSON body snippet: {snippet!r}"
            ) from exc

        if not isinstance(data, dict):
            raise OpenProjectParseError(
                f"Expected top-level JSON object from {where}, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _to_http_error(resp: httpx.Response, *, method: str) -> OpenProjectHTTPError:
        try:
            parsed = resp.json()
        except ValueError:
            parsed = None

        response_json: Optional[Dict[str, Any]] = None
        response_text: Optional[str] = None
        message = "request failed"
        if isinstance(parsed, dict):
            response_json = parsed
            # error resources: {"_type": "Error", "errorIdentifier": ..., "message": ...}
            message = parsed.get("message") or parsed.get("errorIdentifier") or message
        else:
            response_text = (resp.text or "")[:500]

        return OpenProjectHTTPError(
            status_code=resp.status_code,
            method=method,
            url=str(resp.request.url),
            message=message,
            response_json=response_json,
            response_text=response_text,
        )

    async def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.request("GET", url, params=params, tool=tool)

    async def follow(
        self,
        href: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        tool: Optional[str] = None,
    ) -> Dict[str, Any]:
        """GET a HAL link target; absolute hrefs are reduced to their /api/v3/ path."""
        return await self.get(api_path(href), params=params, tool=tool)

    async def post(
        self, url: str, *, json: Dict[str, Any], tool: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.request("POST", url, json=json, tool=tool)

    async def patch(
        self, url: str, *, json: Dict[str, Any], tool: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.request("PATCH", url, json=json, tool=tool)

    async def delete(self, url: str, *, tool: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("DELETE", url, tool=tool)

    async def request_model(
        self, model: Type[T], method: str, url: str, **kwargs: Any
    ) -> T:
        payload = await self.request(method, url, **kwargs)
        return validate_model(model, payload)


def validate_model(model: Type[T], payload: Dict[str, Any]) -> T:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise OpenProjectModelValidationError(
            f"Response did not match model {model.__name__}: {exc}"
        ) from exc
