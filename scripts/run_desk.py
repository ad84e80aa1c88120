"""
TradingDesk - Desk Runner

Selects an instrument, loads its candle history, keeps it live over the
kline stream and runs the nine-agent desk once (or every --every seconds).

Usage:
    python -m scripts.run_desk --symbol ETHUSDT --provider gemini
    python scripts/run_desk.py --symbol SOL --lang zh --every 900
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from agents.orchestrator import PipelineOrchestrator
from agents.providers import PROVIDERS, create_provider
from tradingdesk.config import settings
from tradingdesk.ingestion import InstrumentSession, LiveFeed, MarketDataFetcher
from tradingdesk.logging import get_logger, setup_logging
from tradingdesk.models import PositionSide, TradingDecision, UserPosition

logger = get_logger(__name__, component="run_desk")

_shutdown = asyncio.Event()


def _handle_signal(signum, frame):
    print(f"\n⚡ Received signal {signum}, shutting down gracefully...")
    _shutdown.set()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the TradingDesk agent pipeline")
    parser.add_argument("--symbol", default="BTCUSDT", help="Instrument, e.g. BTCUSDT or ETH")
    parser.add_argument("--provider", choices=sorted(PROVIDERS), default=settings.llm.provider)
    parser.add_argument("--lang", choices=["en", "zh"], default=settings.pipeline.language)
    parser.add_argument("--api-key", default=None, help="Overrides the provider key from the environment")
    parser.add_argument("--etherscan-key", default=settings.etherscan.api_key or None)
    parser.add_argument("--no-live", action="store_true", help="Skip the kline websocket")
    parser.add_argument("--every", type=int, default=0, help="Re-run every N seconds (0 = once)")

    position = parser.add_argument_group("open position")
    position.add_argument("--position", choices=[s.value for s in PositionSide], default=None)
    position.add_argument("--entry-price", default=None)
    position.add_argument("--leverage", default="1")
    position.add_argument("--liquidation-price", default=None)
    return parser.parse_args(argv)


def _user_position(args: argparse.Namespace) -> UserPosition | None:
    if args.position is None or args.entry_price is None:
        return None
    return UserPosition(
        side=PositionSide(args.position),
        entry_price=args.entry_price,
        leverage=args.leverage,
        liquidation_price=args.liquidation_price,
    )


def _print_decision(symbol: str, decision: TradingDecision) -> None:
    print("═" * 50)
    print(f"  {symbol}  →  {decision.action.value}  ({decision.confidence}%)")
    print(f"  Entry:       {decision.entry_price}")
    print(f"  Stop loss:   {decision.stop_loss}")
    print(f"  Take profit: {decision.take_profit}")
    print(f"  {decision.reasoning}")
    print("═" * 50)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig, None)
        except NotImplementedError:
            signal.signal(sig, _handle_signal)

    provider = create_provider(args.provider, api_key=args.api_key)

    async with MarketDataFetcher(etherscan_key=args.etherscan_key) as fetcher:
        session = InstrumentSession(fetcher, live_feed=None if args.no_live else LiveFeed())
        orchestrator = PipelineOrchestrator(
            provider,
            session,
            fetcher=fetcher,
            language=args.lang,
            user_position=_user_position(args),
        )

        try:
            await session.select(args.symbol)
            print(f"✓ Loaded {len(session.buffer)} candles for {session.symbol}")

            while not _shutdown.is_set():
                decision = await orchestrator.start_analysis()
                if decision is not None:
                    _print_decision(session.symbol or args.symbol, decision)
                elif orchestrator.error:
                    print(f"✗ {orchestrator.error}")
                    if not provider.has_credential:
                        return 1

                if args.every <= 0:
                    break
                try:
                    await asyncio.wait_for(_shutdown.wait(), timeout=args.every)
                except asyncio.TimeoutError:
                    logger.debug("desk_rerun_due", symbol=session.symbol)
        finally:
            await session.close()

    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
