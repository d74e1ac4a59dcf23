"""Market trends HTTP routes: live summary, history, and admin actions."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from cardtrends.config import settings
from cardtrends.services.market_trends import MarketTrendsService

router = APIRouter()


def get_trends_service(request: Request) -> MarketTrendsService:
    """Dependency: the service built at startup and kept on app.state."""
    return request.app.state.trends_service


@router.get("/api/market-trends")
async def get_market_trends(
    service: MarketTrendsService = Depends(get_trends_service),
) -> dict[str, Any]:
    """
    Current market summary.

    Always 200. Upstream trouble shows up as a zeroed summary, not an error.
    trendData points flagged synthetic are generated, not observed.
    """
    summary = await service.get_current_trends()
    return summary.model_dump(mode="json", by_alias=True)


@router.get("/api/market-trends/history")
async def get_market_trend_history(
    days: int = Query(settings.HISTORY_DEFAULT_DAYS, ge=1, le=settings.HISTORY_MAX_DAYS),
    service: MarketTrendsService = Depends(get_trends_service),
) -> list[dict[str, Any]]:
    """Stored daily snapshots, oldest first."""
    history = await service.get_history(days)
    return [
        snapshot.model_dump(mode="json", by_alias=True, exclude={"items"})
        for snapshot in history
    ]


@router.get("/api/market-trends/snapshots/{day}")
async def get_market_trend_snapshot(
    day: date,
    service: MarketTrendsService = Depends(get_trends_service),
) -> dict[str, Any]:
    """One stored snapshot with its sampled listings."""
    snapshot = await service.get_snapshot(day)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No market trend snapshot for {day}")
    return snapshot.model_dump(mode="json", by_alias=True)


@router.post("/api/admin/market-trends/refresh")
async def refresh_market_trends(
    service: MarketTrendsService = Depends(get_trends_service),
) -> dict[str, Any]:
    """Invalidate the cache and return a freshly computed summary."""
    summary = await service.force_refresh()
    return summary.model_dump(mode="json", by_alias=True)


@router.post("/api/admin/market-trends/daily-update")
async def run_market_trends_daily_update(
    service: MarketTrendsService = Depends(get_trends_service),
) -> dict[str, Any]:
    """Store today's snapshot if missing, then invalidate the cache."""
    result = await service.run_daily_update()
    return result.model_dump(mode="json", by_alias=True)
