import asyncio
from datetime import date, timedelta
from typing import List, Optional

import pytest
from src.core.errors import FetchError
from src.domain.models import MetricSnapshot, MetricsQuery


def make_snapshot(day: date | str, **fields) -> MetricSnapshot:
    payload = {"calculationDate": str(day), "montantTotalBc": 1000.0}
    payload.update(fields)
    return MetricSnapshot.model_validate(payload)


def date_span(start: date, count: int) -> List[date]:
    return [start + timedelta(days=i) for i in range(count)]


class DummyFetcher:
    """Scripted metrics source: pops one response (list or exception) per call."""

    def __init__(self, responses=None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: List[MetricsQuery] = []
        self.tokens: List[Optional[str]] = []

    async def fetch_metrics(self, query: MetricsQuery, token: Optional[str] = None):
        self.calls.append(query)
        self.tokens.append(token)
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return list(response)


@pytest.fixture
def query() -> MetricsQuery:
    return MetricsQuery.build(
        "backoffice@example.com", "FTTH", today=date(2024, 1, 12)
    )


@pytest.fixture
def other_query() -> MetricsQuery:
    return MetricsQuery.build(
        "backoffice@example.com", "MOBILE", today=date(2024, 1, 12)
    )


@pytest.fixture
def fetch_error() -> FetchError:
    return FetchError("Failed to fetch dashboard metrics: HTTP 502", status_code=502)
