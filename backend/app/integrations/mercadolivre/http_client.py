"""
Low-level HTTP client: bearer auth / retries / 401 refresh
  - every request carries "Authorization: Bearer <token>" from a token provider;
  - exponential backoff with jitter on 429 / 5xx / network errors;
  - exposes get_json only, it does not care about business field shapes.
"""

from __future__ import annotations
import logging, time, requests
from typing import Any, Callable, Dict, Optional
from urllib.parse import urljoin

from app.core.config import settings
from app.utils.backoff import http_retry_delay
from app.integrations.mercadolivre.errors import (
    MLAuthError, MLClientError, MLNotFoundError, MLServerError, MLRateLimitError, MLPayloadError
)

logger = logging.getLogger(__name__)


# token_provider(force) -> access token; force=True asks for a refresh regardless of expiry
TokenProvider = Callable[[bool], str]


class MLHttpClient:
    """MercadoLibre REST API low-level client: auth header, retries, status handling."""

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        connect_timeout: Optional[int] = None,
        read_timeout: Optional[int] = None,
        max_attempts: Optional[int] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Every argument can be overridden for tests or multi-account use."""
        self.base_url = (base_url or settings.ML_API_BASE_URL).rstrip("/") + "/"
        self.connect_timeout = connect_timeout or settings.ML_CONNECT_TIMEOUT
        self.read_timeout = read_timeout or settings.ML_READ_TIMEOUT
        self.max_attempts = max_attempts or settings.ML_HTTP_RETRIES

        self._token_provider = token_provider
        self._session = session or requests.Session()
        self._sleep = sleep


    # ---------- Public ----------
    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        """GET and return the parsed JSON body, with auth and retries."""
        resp = self._request("GET", path, params=params, **kwargs)
        return self._as_json(resp)


    def close(self) -> None:
        self._session.close()


    # ---------- Internals ----------
    def _as_json(self, resp: requests.Response) -> Any:
        """Parse the JSON body; on failure raise MLPayloadError with a truncated snippet."""
        ctype = (resp.headers.get("Content-Type") or "").lower()
        if "application/json" not in ctype:
            logger.warning("ML non-JSON response Content-Type=%s", ctype)
        try:
            return resp.json()
        except ValueError as e:
            text = (resp.text or "")[:500]  # keep logs short
            raise MLPayloadError(f"non-JSON response (status={resp.status_code}): {text}") from e


    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """One logical call: token, retries and status-code mapping."""

        # 1) build the request
        url = urljoin(self.base_url, path.lstrip("/"))
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault("Accept", "application/json")
        headers["Authorization"] = f"Bearer {self._token_provider(False)}"

        timeout = kwargs.pop("timeout", (self.connect_timeout, self.read_timeout))

        # 2) retry loop
        already_refreshed = False
        attempt = 0

        while attempt < self.max_attempts:
            attempt += 1
            try:
                resp = self._session.request(method, url, headers=headers, timeout=timeout, **kwargs)
                logger.debug("ML response: %s %s -> %s", method, url, resp.status_code)
            except requests.RequestException as e:
                # error1: connect/timeout -> backoff
                if attempt >= self.max_attempts:
                    raise MLClientError(f"request error: {e}") from e
                self._sleep_backoff(attempt)
                continue

            # error2: 401 -> refresh exactly once and replay (the replay does not consume an attempt)
            if resp.status_code == 401:
                if already_refreshed:
                    raise MLAuthError(f"401 after token refresh: {(resp.text or '')[:300]}")
                logger.info("ML 401 received, refreshing token once.")
                headers["Authorization"] = f"Bearer {self._token_provider(True)}"
                already_refreshed = True
                attempt -= 1
                continue

            # 429 -> backoff; MLRateLimitError once attempts are exhausted
            if resp.status_code == 429:
                if attempt >= self.max_attempts:
                    raise MLRateLimitError(f"429 after retries: {(resp.text or '')[:300]}")
                self._sleep_backoff(attempt)
                continue

            # 5xx -> backoff; MLServerError once attempts are exhausted
            if resp.status_code >= 500:
                if attempt >= self.max_attempts:
                    raise MLServerError(f"{resp.status_code} after retries: {(resp.text or '')[:300]}")
                self._sleep_backoff(attempt)
                continue

            if resp.status_code == 404:
                raise MLNotFoundError(f"404 not found: {path}")

            # other 4xx -> MLClientError
            if 400 <= resp.status_code < 500:
                snippet = (resp.text or "")[:300]
                raise MLClientError(f"{resp.status_code} client error: {snippet}")

            return resp    # success

        raise MLClientError("unreachable retry loop")


    # ---------- Helpers ----------
    # exponential backoff capped at 60s plus 0~25% jitter: 2s, 4s, 8s, ...
    def _sleep_backoff(self, attempt: int) -> None:
        self._sleep(http_retry_delay(attempt))
