"""Async Responses API client with continuation fallback.

Both service adapters talk to the OpenAI Responses API and thread conversations through
``previous_response_id``. The service may reject an unknown or expired continuation id, so a
failed call that carried one is retried exactly once without it before the error surfaces.
"""

from __future__ import annotations

import time
from typing import Any

from openai import AsyncOpenAI

from uipilot.config import Settings
from uipilot.errors import ServiceCallError
from uipilot.logging import get_logger

logger = get_logger(__name__)


class ResponsesClient:
    """Thin wrapper over ``AsyncOpenAI.responses`` with fallback retry and metrics."""

    def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
        """Initialize the client.

        Args:
            settings: Application settings.
            client: Pre-built SDK client. Built from settings when omitted.
        """
        self._settings = settings
        if client is None:
            if not settings.openai_api_key:
                raise ValueError(
                    "Missing UIPILOT_OPENAI_API_KEY. "
                    "Set it in environment variables or a .env file."
                )
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                max_retries=0,  # We handle retries ourselves
            )
        self._client = client

        # Metrics
        self._request_count = 0
        self._error_count = 0
        self._fallback_count = 0
        self._total_latency = 0.0

    async def create(self, request: dict[str, Any], *, operation: str) -> Any:
        """Create a response, retrying once without the continuation id on failure.

        Args:
            request: Keyword arguments for ``responses.create``.
            operation: Name used in logs and errors.

        Returns:
            The SDK response object.

        Raises:
            ServiceCallError: If the call (and its fallback, when applicable) failed.
        """
        try:
            return await self._send(request, operation=operation)
        except Exception as e:
            self._error_count += 1
            logger.error(
                "%s failed",
                operation,
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            if not request.get("previous_response_id"):
                raise ServiceCallError(f"{operation} failed: {e}") from e

        logger.debug("Retrying without previous_response_id", extra={"operation": operation})
        retry_request = {k: v for k, v in request.items() if k != "previous_response_id"}
        self._fallback_count += 1
        try:
            return await self._send(retry_request, operation=operation)
        except Exception as retry_error:
            self._error_count += 1
            logger.error("%s retry also failed", operation, extra={"error": str(retry_error)})
            raise ServiceCallError(f"{operation} failed after retry: {retry_error}") from retry_error

    async def _send(self, request: dict[str, Any], *, operation: str) -> Any:
        start_time = time.monotonic()
        resp = await self._client.responses.create(**request, timeout=self._settings.openai_timeout_s)
        latency = time.monotonic() - start_time

        self._request_count += 1
        self._total_latency += latency
        logger.debug(
            "%s completed",
            operation,
            extra={"response_id": getattr(resp, "id", None), "latency_ms": latency * 1000},
        )
        return resp

    def get_metrics(self) -> dict[str, Any]:
        """Get client metrics."""
        avg_latency = (
            self._total_latency / self._request_count if self._request_count > 0 else 0.0
        )
        return {
            "request_count": self._request_count,
            "error_count": self._error_count,
            "fallback_count": self._fallback_count,
            "avg_latency_ms": avg_latency * 1000,
        }
