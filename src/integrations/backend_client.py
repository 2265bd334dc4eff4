"""
Shared HTTP plumbing for the EduKid backend clients.

Handles auth headers, the per-child URL prefix, and retries with
exponential backoff. Transport errors never leave this module: every
failure is raised as the caller's AssessmentError subclass.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from src.assessment.errors import AssessmentError

logger = logging.getLogger(__name__)


class BackendClient:
    """Base HTTP client for the content and scoring services."""

    service_name = "backend"
    error_class: type[AssessmentError] = AssessmentError

    def __init__(
        self,
        api_url: str,
        parent_id: str = "",
        kid_id: str = "",
        api_token: str | None = None,
        timeout_ms: int = 30000,
        retry_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ):
        """
        Initialize the client.

        Args:
            api_url: Base URL of the backend API
            parent_id: Parent account owning the child
            kid_id: Child the activities belong to
            api_token: Bearer token, if the backend requires one
            timeout_ms: Request timeout in milliseconds
            retry_attempts: Number of attempts before giving up
            backoff_seconds: Base delay of the exponential backoff
        """
        self.api_url = api_url.rstrip("/")
        self.parent_id = parent_id
        self.kid_id = kid_id
        self.timeout_seconds = timeout_ms / 1000.0
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_seconds = backoff_seconds

        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
            headers=headers,
        )

    @classmethod
    def from_config(cls, api_url: str, http_config: dict[str, Any]):
        """Build a client from ``Settings.get_http_config()``."""
        return cls(api_url, **http_config)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def kid_url(self, path: str) -> str:
        """URL of a resource under the configured parent and kid."""
        return f"{self.api_url}/parents/{self.parent_id}/kids/{self.kid_id}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a request with retry logic and return the decoded JSON body.

        Timeouts, transport errors and 5xx responses are retried; 4xx
        responses fail immediately.

        Raises:
            error_class: On any failure once retries are exhausted
        """
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                if method == "GET":
                    response = await self.client.get(url)
                else:
                    response = await self.client.post(url, json=json)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                last_error = e
                wait_time = self.backoff_seconds * 2 ** attempt
                logger.warning(
                    f"{self.service_name} timeout on attempt {attempt + 1}/{self.retry_attempts}. "
                    f"Retrying in {wait_time}s..."
                )

            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status < 500:
                    logger.error(f"{self.service_name} client error {status} for {method} {url}")
                    raise self.error_class(
                        f"{self.service_name} rejected {method} {url} with status {status}"
                    ) from e
                wait_time = self.backoff_seconds * 2 ** attempt
                logger.warning(
                    f"{self.service_name} server error {status} on attempt "
                    f"{attempt + 1}/{self.retry_attempts}. Retrying in {wait_time}s..."
                )

            except httpx.RequestError as e:
                last_error = e
                wait_time = self.backoff_seconds * 2 ** attempt
                logger.warning(
                    f"{self.service_name} request error on attempt "
                    f"{attempt + 1}/{self.retry_attempts}: {e}. Retrying in {wait_time}s..."
                )

            except ValueError as e:
                logger.error(f"{self.service_name} returned invalid JSON for {method} {url}")
                raise self.error_class(f"{self.service_name} returned invalid JSON: {e}") from e

            if attempt < self.retry_attempts - 1:
                await asyncio.sleep(wait_time)

        error_msg = f"{self.service_name} request failed after {self.retry_attempts} attempts"
        logger.error(f"{error_msg}: {last_error}")
        raise self.error_class(f"{error_msg}: {last_error}") from last_error
