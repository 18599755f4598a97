from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from apps.refresher.orchestrator import RefreshContext, RefreshOrchestrator, build_context
from core.domain.portfolio import Portfolio
from core.errors import PortfolioComputeError, RunFailure
from core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _configure_logging(level: str = "INFO") -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh portfolio snapshots from live market data.")
    parser.add_argument("--portfolio", help="Refresh a single portfolio id instead of all portfolios.")
    parser.add_argument(
        "--every",
        type=float,
        default=None,
        help="Keep running and refresh every N seconds (default: run once and exit).",
    )
    parser.add_argument(
        "--holdings-file",
        help="JSON list of portfolios ({id, holdings: [...]}) to load into the store before refreshing.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def load_holdings_file(context: RefreshContext, path: str | Path) -> list[str]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    portfolios = [Portfolio.model_validate(item) for item in payload]
    for portfolio in portfolios:
        context.store.replace_holdings(portfolio.portfolio_id, portfolio.holdings)
    return [portfolio.portfolio_id for portfolio in portfolios]


async def run_once(orchestrator: RefreshOrchestrator, portfolio_id: str | None) -> bool:
    if portfolio_id:
        snapshot = await orchestrator.refresh_portfolio(portfolio_id)
        logger.info(
            "Refreshed %s total=%.2f day_change=%.2f error=%s",
            snapshot.portfolio_id,
            snapshot.total_value,
            snapshot.day_change,
            snapshot.last_error,
        )
        return not snapshot.has_error
    summary = await orchestrator.refresh_all()
    return summary.ok


async def run_refresher(args: argparse.Namespace, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    context = build_context(settings)
    orchestrator = RefreshOrchestrator(context)
    try:
        if args.holdings_file:
            loaded = await asyncio.to_thread(load_holdings_file, context, args.holdings_file)
            logger.info("Loaded holdings for %s", ", ".join(loaded))

        if not args.every:
            try:
                return 0 if await run_once(orchestrator, args.portfolio) else 2
            except RunFailure:
                logger.exception("Refresh run could not start")
                return 1
            except PortfolioComputeError:
                logger.exception("Refresh failed and the error could not be recorded")
                return 2

        interval = max(args.every, 1.0)
        while True:
            try:
                await run_once(orchestrator, args.portfolio)
            except Exception:
                logger.exception("Refresh run failed; retrying in %.0fs", interval)
            await asyncio.sleep(interval)
    finally:
        await context.aclose()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.log_level)
    return asyncio.run(run_refresher(args))


if __name__ == "__main__":
    raise SystemExit(main())
