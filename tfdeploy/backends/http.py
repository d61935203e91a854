"""
Shared JSON POST helper for the web API and CloudML backends.

No retries unless `max_retries` is set; connection errors and 429/5xx responses
are then retried with a linear backoff.
"""

import time
from typing import Any, Dict, Optional, Tuple

import requests
from loguru import logger

from ..errors import RemoteServiceError

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def post_json(
    url: str,
    payload: Dict[str, Any],
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: Tuple[float, float] = (10.0, 60.0),
    max_retries: int = 0,
    retry_backoff: float = 1.0,
    session: Any = None,
) -> Any:
    http = session or requests
    attempts = max_retries + 1

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            response = http.post(url, json=payload, headers=headers, timeout=timeout)
        except requests.RequestException as exc:
            if not last_attempt:
                wait = (attempt + 1) * retry_backoff
                logger.warning("Request to {} failed, retrying in {}s: {}", url, wait, exc)
                time.sleep(wait)
                continue
            raise RemoteServiceError(f"Request to {url} failed: {exc}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS and not last_attempt:
            wait = (attempt + 1) * retry_backoff
            logger.warning("Request to {} returned {}, retrying in {}s", url, status, wait)
            time.sleep(wait)
            continue

        if not 200 <= status < 300:
            logger.error("Request to {} returned {}", url, status)
            raise RemoteServiceError(
                f"{url} returned HTTP {status}: {response.text[:2000]}",
                remote_status=status,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteServiceError(
                f"{url} returned a non-JSON response", remote_status=status, body=response.text
            ) from exc

    raise RemoteServiceError(f"Request to {url} failed")
