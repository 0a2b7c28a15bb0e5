from typing import List, Optional

import httpx
from pydantic import ValidationError
from src.core.config import settings
from src.core.errors import FetchError, TransientFetchError
from src.core.logger import get_logger
from src.domain.models import MetricSnapshot, MetricsQuery

from shared.constants import ApiPaths
from shared.utils.retry import retry_async

from .metrics import (
    UPSTREAM_FETCH_LATENCY_SECONDS,
    UPSTREAM_FETCH_RETRIES_TOTAL,
    UPSTREAM_FETCH_TOTAL,
)

logger = get_logger("dashboard.api_client")


class MetricsApiClient:
    """Client for the remote dashboard metrics endpoint.

    Every failure mode (transport error, non-2xx status, body that is not a
    JSON list of snapshots) is raised as FetchError. Transport errors and 5xx
    responses are retried with exponential backoff first; 4xx responses and
    unusable bodies are not.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        token: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.http = http
        self.url = ApiPaths.url(base_url, ApiPaths.DASHBOARD_METRICS)
        self.token = token
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.api_max_attempts
        )
        self.base_delay = (
            base_delay if base_delay is not None else settings.api_retry_base_delay_seconds
        )
        self.max_delay = (
            max_delay if max_delay is not None else settings.api_retry_max_delay_seconds
        )

    def _headers(self, token: Optional[str]) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        bearer = token or self.token
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def _get(self, query: MetricsQuery, token: Optional[str]) -> httpx.Response:
        try:
            with UPSTREAM_FETCH_LATENCY_SECONDS.time():
                resp = await self.http.get(
                    self.url, params=query.as_params(), headers=self._headers(token)
                )
        except httpx.HTTPError as e:
            UPSTREAM_FETCH_TOTAL.labels(outcome="error").inc()
            raise TransientFetchError(f"Failed to fetch dashboard metrics: {e}") from e

        if not resp.is_success:
            UPSTREAM_FETCH_TOTAL.labels(outcome="error").inc()
            error_cls = TransientFetchError if resp.status_code >= 500 else FetchError
            raise error_cls(
                f"Failed to fetch dashboard metrics: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    async def fetch_metrics(
        self, query: MetricsQuery, token: Optional[str] = None
    ) -> List[MetricSnapshot]:
        async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
            UPSTREAM_FETCH_RETRIES_TOTAL.inc()
            logger.warning(
                "metrics_fetch_retry",
                extra={
                    "famille": query.famille,
                    "attempt": attempt,
                    "error": str(exc),
                    "sleep_for": round(sleep_for, 2),
                },
            )

        resp = await retry_async(
            lambda: self._get(query, token),
            retries=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            retry_on=(TransientFetchError,),
            on_retry=_on_retry,
        )

        try:
            body = resp.json()
        except ValueError as e:
            UPSTREAM_FETCH_TOTAL.labels(outcome="error").inc()
            raise FetchError("Dashboard metrics response is not JSON") from e
        if not isinstance(body, list):
            UPSTREAM_FETCH_TOTAL.labels(outcome="error").inc()
            raise FetchError("Dashboard metrics response is not a list")

        try:
            snapshots = [MetricSnapshot.model_validate(item) for item in body]
        except ValidationError as e:
            UPSTREAM_FETCH_TOTAL.labels(outcome="error").inc()
            raise FetchError(f"Invalid dashboard metric snapshot: {e}") from e

        UPSTREAM_FETCH_TOTAL.labels(outcome="ok" if snapshots else "empty").inc()
        logger.debug(
            "metrics_fetched",
            extra={"famille": query.famille, "count": len(snapshots)},
        )
        return snapshots
