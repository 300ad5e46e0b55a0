"""Host runner and command line entry point.

Binds a validated AlignConfig to concrete venue sessions and drives the
scheduler on a single background task.

Default behavior is dry-run unless ``--live`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from aligner.config import AlignConfig, load_config
from aligner.cycle import AlignmentCycle, CycleReport
from aligner.errors import ConfigError, VenueError
from aligner.market import Market
from aligner.scheduler import Scheduler
from aligner.types import Ticker
from aligner.venue import VenueSession
from aligner.venues.bitfinex import BitfinexVenueSession
from aligner.venues.paper import PaperVenueSession


logger = logging.getLogger(__name__)


class AlignStrategy:
    """Wires config, venues, cycle and scheduler together."""

    def __init__(
        self,
        *,
        config: AlignConfig,
        sessions: Mapping[str, VenueSession],
        max_cycles: Optional[int] = None,
    ) -> None:
        config.validate()
        ordered: list[VenueSession] = []
        for name in config.sessions:
            session = sessions.get(name)
            if session is None:
                raise ConfigError(f"incorrect preferred session name: {name} is not defined")
            ordered.append(session)

        self.config = config
        self.cycle = AlignmentCycle(config=config, sessions=ordered)
        self.scheduler = Scheduler(cycle=self.cycle, interval=config.interval, max_cycles=max_cycles)
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    async def run_once(self) -> CycleReport:
        return await self.cycle.run()

    def start(self, stop_event: Optional[asyncio.Event] = None) -> asyncio.Task[None]:
        """Start the scheduler as a background task on the running loop."""
        if self._task is not None and not self._task.done():
            raise RuntimeError("Strategy already running")
        self._task = asyncio.create_task(self.scheduler.run(stop_event), name=self.instance_id)
        return self._task


def _paper_session(name: str, state: Mapping[str, Any]) -> PaperVenueSession:
    markets = [
        Market(
            symbol=m["symbol"],
            base_currency=m["base"],
            quote_currency=m["quote"],
            tick_size=Decimal(str(m["tickSize"])),
            price_precision=int(m.get("pricePrecision", 8)),
            volume_precision=int(m.get("volumePrecision", 8)),
            min_notional=Decimal(str(m.get("minNotional", "0"))),
            min_quantity=Decimal(str(m.get("minQuantity", "0"))),
        )
        for m in state.get("markets", [])
    ]
    tickers = [
        Ticker(symbol=t["symbol"], bid=Decimal(str(t["bid"])), ask=Decimal(str(t["ask"])))
        for t in state.get("tickers", [])
    ]
    balances = {cur: Decimal(str(v)) for cur, v in state.get("balances", {}).items()}
    return PaperVenueSession(name, balances=balances, markets=markets, tickers=tickers)


async def build_sessions(config: AlignConfig, paper_state: Mapping[str, Any]) -> dict[str, VenueSession]:
    """Create one session per configured venue name.

    ``bitfinex*`` names connect to Bitfinex with credentials from the
    environment; every other name is a paper venue seeded from ``paper_state``.
    """
    sessions: dict[str, VenueSession] = {}
    for name in config.sessions:
        if name.startswith("bitfinex"):
            session = BitfinexVenueSession(name)
            await session.load_markets()
            sessions[name] = session
        else:
            try:
                sessions[name] = _paper_session(name, paper_state.get(name, {}))
            except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
                raise ConfigError(f"Invalid paper state for {name}: {exc!r}") from exc
    return sessions


def load_paper_state(path: str) -> Mapping[str, Any]:
    """Read the per-venue paper state document."""
    try:
        state = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read paper state {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(state, Mapping):
        raise ConfigError(f"Paper state root must be an object: {path}")
    return state


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    if not args.live and not config.dry_run:
        config = replace(config, dry_run=True)

    paper_state: Mapping[str, Any] = {}
    if args.paper_state:
        paper_state = load_paper_state(args.paper_state)

    sessions = await build_sessions(config, paper_state)
    strategy = AlignStrategy(config=config, sessions=sessions, max_cycles=args.cycles)

    logger.info(f"Starting {strategy.instance_id}")
    logger.info(f"Mode: {'DRY RUN' if config.dry_run else 'LIVE TRADING'}")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Not available on Windows event loops
            pass

    await strategy.start(stop_event)
    report = strategy.scheduler.last_report
    return 0 if report is None or report.ok else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Align balances across trading venues")
    parser.add_argument("--config", required=True, help="Path to the JSON config")
    parser.add_argument("--paper-state", help="JSON file with balances/markets/tickers for paper venues")
    parser.add_argument("--cycles", type=int, help="Stop after N cycles (default: run until interrupted)")
    parser.add_argument("--live", action="store_true", help="Submit orders (default: dry run)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        return asyncio.run(run(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except VenueError as e:
        logger.error(f"Venue setup failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
