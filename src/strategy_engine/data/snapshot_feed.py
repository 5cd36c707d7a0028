from typing import Dict, Iterator, List, Optional, Tuple
import pandas as pd

from strategy_engine.core.types import MarketData, PricePoint, SentimentPoint, Token, VolumePoint
from strategy_engine.utils.logger import TradingLogger, default_logger

TOKEN_COLUMNS = ['address', 'symbol', 'name', 'market_cap', 'price', 'volume_24h', 'tvl', 'sentiment', 'trending']


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'y')
    return bool(value)


class SnapshotFeed:
    """
    Token snapshots from CSV, joined with optional per-token history rows
    (address, timestamp, price, volume, sentiment).
    """

    def __init__(self, tokens_csv: str, history_csv: Optional[str] = None, logger: Optional[TradingLogger] = None):
        self.logger = logger or default_logger("data")
        self.tokens_df = pd.read_csv(tokens_csv)
        missing = [c for c in TOKEN_COLUMNS if c not in self.tokens_df.columns]
        if missing:
            raise ValueError(f"Token snapshot file is missing columns: {missing}")

        self.history_df = None
        if history_csv:
            self.history_df = pd.read_csv(history_csv)
            self.history_df['timestamp'] = pd.to_datetime(self.history_df['timestamp'])
            self.history_df = self.history_df.sort_values('timestamp')

    def __len__(self) -> int:
        return len(self.tokens_df)

    def __iter__(self) -> Iterator[Tuple[Token, MarketData]]:
        return self.snapshots()

    def snapshots(self) -> Iterator[Tuple[Token, MarketData]]:
        histories = self._group_history()

        for _, row in self.tokens_df.iterrows():
            try:
                token = Token(
                    address=str(row['address']),
                    symbol=str(row['symbol']),
                    name=str(row['name']),
                    market_cap=float(row['market_cap']),
                    price=float(row['price']),
                    volume_24h=float(row['volume_24h']),
                    tvl=float(row['tvl']),
                    sentiment=float(row['sentiment']),
                    trending=_parse_bool(row['trending']),
                )
            except (TypeError, ValueError) as e:
                self.logger.error(f"SnapshotFeed - Error parsing token row {row.to_dict()}: {str(e)}")
                continue

            prices, volumes, sentiments = histories.get(token.address, ([], [], []))
            yield token, MarketData(
                token=token,
                price_history=prices,
                volume_history=volumes,
                sentiment_history=sentiments,
            )

    def _group_history(self) -> Dict[str, Tuple[List[PricePoint], List[VolumePoint], List[SentimentPoint]]]:
        histories = {}
        if self.history_df is None:
            return histories

        for address, group in self.history_df.groupby('address'):
            prices, volumes, sentiments = [], [], []
            for _, row in group.iterrows():
                timestamp = row['timestamp'].to_pydatetime()
                if pd.notna(row.get('price')):
                    prices.append(PricePoint(timestamp, float(row['price'])))
                if pd.notna(row.get('volume')):
                    volumes.append(VolumePoint(timestamp, float(row['volume'])))
                if pd.notna(row.get('sentiment')):
                    sentiments.append(SentimentPoint(timestamp, float(row['sentiment'])))
            histories[str(address)] = (prices, volumes, sentiments)
        return histories
