"""
PULSE SIGNAL — Main Entry Point
Runs a synthetic replay session or a walk-forward backtest from the command line.
"""
import argparse
import json
from typing import List, Optional

from pulse_signal.backtest.backtester import Backtester
from pulse_signal.config.settings import get_settings
from pulse_signal.data.aggregator import CandleAggregator
from pulse_signal.data.models import candles_to_frame
from pulse_signal.data.sources.synthetic import SyntheticTickSource
from pulse_signal.db.repository import SqlPersistenceSink
from pulse_signal.replay.engine import ReplayEngine, ReplaySnapshot
from pulse_signal.replay.ticker import ManualTicker
from pulse_signal.utils.logger import bind_session, clear_session, get_logger, setup_logging

logger = get_logger("main")


def create_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=f"{settings.app_name} {settings.version}")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a synthetic session through the signal pipeline")
    replay.add_argument("--symbol", default=settings.symbols[0])
    replay.add_argument("--steps", type=int, default=100, help="Number of ticks to drive")
    replay.add_argument("--start-from", type=int, default=None,
                        help="Tick index to start at (default: fast-forward past warm-up)")
    replay.add_argument("--seed", type=int, default=7)
    replay.add_argument("--persist", action="store_true", help="Write candles and signals to the database")

    backtest = sub.add_parser("backtest", help="Walk-forward backtest on synthetic candles")
    backtest.add_argument("--symbol", default=settings.symbols[0])
    backtest.add_argument("--minutes", type=int, default=3000, help="Synthetic one-minute ticks to generate")
    backtest.add_argument("--timeframe", default=settings.replay.timeframe)
    backtest.add_argument("--seed", type=int, default=7)
    backtest.add_argument("--chart", default=None, help="Save the equity curve to this path")
    return parser


def run_replay(args: argparse.Namespace) -> None:
    settings = get_settings()
    sink = SqlPersistenceSink(settings.database) if args.persist else None
    ticker = ManualTicker()
    engine = ReplayEngine(SyntheticTickSource(seed=args.seed), args.symbol, settings, ticker=ticker, sink=sink)

    def log_signal(snapshot: ReplaySnapshot) -> None:
        signal = snapshot.signal
        if signal is None:
            return
        logger.info(
            "replay_signal",
            index=snapshot.index,
            progress=snapshot.progress,
            price=signal.current_price,
            action=signal.action.value,
            confidence=round(signal.confidence, 1),
            total_score=round(signal.total_score, 2),
        )

    engine.add_listener(log_signal)
    bind_session(symbol=args.symbol, session_id=engine.session_id)
    try:
        engine.start(start_from=args.start_from)
        ticker.fire(args.steps)
        state = engine.pause()
        logger.info("replay_finished", **state.to_dict())
    finally:
        clear_session()


def run_backtest(args: argparse.Namespace) -> None:
    settings = get_settings()
    ticks = SyntheticTickSource(seed=args.seed, minutes=args.minutes).load_ticks(args.symbol)
    candles = CandleAggregator(settings.aggregator).aggregate(ticks, args.timeframe)
    df = candles_to_frame(candles)

    backtester = Backtester(settings)
    result = backtester.run(df, args.symbol, args.timeframe)
    print(json.dumps(result.to_dict(), indent=2))
    if args.chart:
        Backtester.plot_equity_curve(result, args.chart)


def main(argv: Optional[List[str]] = None) -> None:
    args = create_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    if args.command == "replay":
        run_replay(args)
    elif args.command == "backtest":
        run_backtest(args)


if __name__ == "__main__":
    main()
