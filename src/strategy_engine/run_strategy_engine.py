import argparse
import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional
import pandas as pd

from strategy_engine.data.snapshot_feed import SnapshotFeed
from strategy_engine.utils.config import Config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the strategy engine over token snapshots")
    parser.add_argument("--config", default=None, help="YAML config path (default: $STRATEGY_ENGINE_CONFIG or config.yaml)")
    parser.add_argument("--tokens", required=True, help="CSV of token snapshots")
    parser.add_argument("--history", default=None, help="CSV of per-token price/volume/sentiment history")
    parser.add_argument("--output", default=None, help="Where to write the decision CSV")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> pd.DataFrame:
    config = Config(args.config)
    logger = config.build_logger()
    aggregator = config.build_aggregator(logger)
    feed = SnapshotFeed(args.tokens, args.history, logger=logger)

    logger.info(f"Evaluating {len(feed)} tokens with {len(aggregator.get_strategies())} strategies")

    rows = []
    for token, market_data in feed:
        decision = await aggregator.execute_strategy_async(token, market_data)
        rows.append({"address": token.address, "symbol": token.symbol, **decision.to_dict()})

    results_df = pd.DataFrame(rows, columns=[
        "address", "symbol", "should_enter", "position_size",
        "range_min", "range_max", "confidence", "reasoning",
    ])

    output_path = Path(args.output) if args.output else (
        Path("results") / f"decisions_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results_df.to_csv(output_path, index=False)

    entries = int(results_df["should_enter"].sum()) if not results_df.empty else 0
    logger.info(f"{entries}/{len(results_df)} tokens flagged for entry, decisions written to {output_path}")
    return results_df


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
