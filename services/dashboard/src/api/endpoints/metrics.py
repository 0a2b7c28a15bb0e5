from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from src.api.dependencies import get_registry, require_upstream_token
from src.core.config import settings
from src.domain.chart import build_chart_series
from src.domain.models import ChartSeries, MetricsQuery, QueryState
from src.services.metrics_cache import MetricsCacheRegistry, MetricsWindowCache

router = APIRouter(prefix="/dashboard/metrics")


def metrics_query(
    email: str = Query(min_length=1),
    famille: str = Query(min_length=1),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
) -> MetricsQuery:
    try:
        return MetricsQuery.build(
            email,
            famille,
            start_date,
            end_date,
            range_days=settings.metrics_default_range_days,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors()) from e


async def _cache_for(
    query: MetricsQuery,
    registry: MetricsCacheRegistry,
    token: str,
) -> MetricsWindowCache:
    cache = await registry.acquire(query, token)
    state = cache.state
    if state.updated_at is None and state.error is None:
        # first observation of this identity waits for the initial load
        await cache.refresh()
    return cache


@router.get("", response_model=QueryState)
async def get_metrics(
    query: MetricsQuery = Depends(metrics_query),
    registry: MetricsCacheRegistry = Depends(get_registry),
    token: str = Depends(require_upstream_token),
):
    cache = await _cache_for(query, registry, token)
    return cache.state


@router.post("/refresh", response_model=QueryState)
async def refresh_metrics(
    query: MetricsQuery = Depends(metrics_query),
    registry: MetricsCacheRegistry = Depends(get_registry),
    token: str = Depends(require_upstream_token),
):
    cache = await registry.acquire(query, token)
    return await cache.refresh()


@router.get("/chart", response_model=List[ChartSeries])
async def metrics_chart(
    visible: Optional[str] = None,
    query: MetricsQuery = Depends(metrics_query),
    registry: MetricsCacheRegistry = Depends(get_registry),
    token: str = Depends(require_upstream_token),
):
    cache = await _cache_for(query, registry, token)
    keys = [k.strip() for k in visible.split(",") if k.strip()] if visible else None
    return build_chart_series(cache.window.points, visible=keys)
