from __future__ import annotations

import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, status

from apps.refresher.orchestrator import RefreshOrchestrator, build_context
from apps.refresher.snapshot_cache import SnapshotCache
from core.domain.market_data import PriceCacheEntry
from core.domain.snapshot import SnapshotView
from core.errors import PortfolioComputeError, RunFailure, UnknownPortfolioError
from core.settings import Settings

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


class RefreshRateLimiter:
    """In-process minimum spacing between refresh triggers, tracked per key."""

    def __init__(self, min_interval_seconds: float, *, clock=time.monotonic) -> None:
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._last: dict[str, float] = {}

    def retry_after(self, key: str) -> float:
        last = self._last.get(key)
        if last is None or self._min_interval <= 0:
            return 0.0
        return max(self._min_interval - (self._clock() - last), 0.0)

    def acquire(self, key: str) -> bool:
        if self.retry_after(key) > 0:
            return False
        now = self._clock()
        self._last = {name: at for name, at in self._last.items() if now - at < self._min_interval}
        self._last[key] = now
        return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_logging()
    settings = Settings()
    context = build_context(settings)

    app.state.settings = settings
    app.state.context = context
    app.state.orchestrator = RefreshOrchestrator(context)
    app.state.rate_limiter = RefreshRateLimiter(settings.refresh_rate_limit_seconds)

    try:
        yield
    finally:
        await context.aclose()


app = FastAPI(title="Portfolio Snapshot API", version="0.1.0", lifespan=lifespan)


def get_settings() -> Settings:
    return app.state.settings


def get_snapshot_cache() -> SnapshotCache:
    return app.state.context.snapshots


def get_orchestrator() -> RefreshOrchestrator:
    return app.state.orchestrator


def get_rate_limiter() -> RefreshRateLimiter:
    return app.state.rate_limiter


SettingsDep = Annotated[Settings, Depends(get_settings)]
SnapshotCacheDep = Annotated[SnapshotCache, Depends(get_snapshot_cache)]
OrchestratorDep = Annotated[RefreshOrchestrator, Depends(get_orchestrator)]
RateLimiterDep = Annotated[RefreshRateLimiter, Depends(get_rate_limiter)]


def _check_bearer(settings: Settings, authorization: str | None) -> None:
    if not settings.refresh_secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Refresh secret not configured")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.encode(), settings.refresh_secret.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")


def _rate_limit(limiter: RefreshRateLimiter, key: str) -> None:
    if not limiter.acquire(key):
        wait = limiter.retry_after(key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Refresh already requested recently; retry in {wait:.0f}s",
            headers={"Retry-After": str(int(wait) + 1)},
        )


@app.get("/health", summary="Health check", status_code=status.HTTP_200_OK)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/portfolios/{portfolio_id}/snapshot", summary="Current snapshot", status_code=status.HTTP_200_OK)
async def read_snapshot(portfolio_id: str, cache: SnapshotCacheDep) -> SnapshotView:
    view = await cache.read_view(portfolio_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snapshot not computed yet")
    return view


@app.get("/prices", summary="Last stored prices", status_code=status.HTTP_200_OK)
async def read_prices(
    cache: SnapshotCacheDep,
    tickers: Annotated[str, Query(min_length=1, description="Comma-separated tickers")],
) -> dict[str, PriceCacheEntry]:
    """Most recent quote persisted per ticker, with its own ``updated_at``."""
    return await cache.read_prices(tickers.split(","))


@app.post("/refresh", summary="Refresh every portfolio", status_code=status.HTTP_200_OK)
async def refresh_all(
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
    limiter: RateLimiterDep,
    authorization: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    _check_bearer(settings, authorization)
    _rate_limit(limiter, "*")
    try:
        summary = await orchestrator.refresh_all()
    except RunFailure as exc:
        logger.exception("Refresh run could not start")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return summary.as_dict()


@app.post("/portfolios/{portfolio_id}/refresh", summary="Refresh one portfolio", status_code=status.HTTP_200_OK)
async def refresh_portfolio(
    portfolio_id: str,
    orchestrator: OrchestratorDep,
    cache: SnapshotCacheDep,
    limiter: RateLimiterDep,
) -> SnapshotView:
    try:
        if not await orchestrator.has_portfolio(portfolio_id):
            raise UnknownPortfolioError(portfolio_id)
        _rate_limit(limiter, portfolio_id.strip().lower())
        await orchestrator.refresh_portfolio(portfolio_id)
    except UnknownPortfolioError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RunFailure as exc:
        logger.exception("Refresh for %s could not start", portfolio_id)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PortfolioComputeError as exc:
        logger.exception("Refresh for %s failed and could not be recorded", portfolio_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    view = await cache.read_view(portfolio_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Snapshot missing after refresh")
    return view
