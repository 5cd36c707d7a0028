from dataclasses import dataclass, fields, replace, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple, Any, Union
import pandas as pd

from strategy_engine.utils.logger import default_logger

logger = default_logger("types")

PriceRange = Tuple[float, float]


class StrategyType(str, Enum):
    AGGRESSIVE = "aggressive"
    BALANCED = "balanced"
    CONSERVATIVE = "conservative"


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PositionStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    PENDING = "pending"
    ERROR = "error"


@dataclass(frozen=True)
class Token:
    """Market snapshot for a single token"""
    address: str
    symbol: str
    name: str
    market_cap: float
    price: float
    volume_24h: float
    tvl: float
    sentiment: float  # -1 to 1
    trending: bool

    @property
    def tvl_to_market_cap(self) -> float:
        return self.tvl / self.market_cap


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    price: float


@dataclass(frozen=True)
class VolumePoint:
    timestamp: datetime
    volume: float


@dataclass(frozen=True)
class SentimentPoint:
    timestamp: datetime
    sentiment: float


def _series(points, field_name: str) -> pd.Series:
    return pd.Series(
        [getattr(p, field_name) for p in points],
        index=[p.timestamp for p in points],
        dtype=float,
    )


def price_series(history: Union[Sequence[PricePoint], pd.Series]) -> pd.Series:
    """Prices indexed by timestamp; a ready-made series passes through"""
    if isinstance(history, pd.Series):
        return history.astype(float)
    return _series(history, "price")


@dataclass(frozen=True)
class MarketData:
    """Token plus its recent history, oldest point first"""
    token: Token
    price_history: Tuple[PricePoint, ...] = ()
    volume_history: Tuple[VolumePoint, ...] = ()
    sentiment_history: Tuple[SentimentPoint, ...] = ()

    def __post_init__(self):
        # Freeze whatever sequence the caller handed us
        object.__setattr__(self, "price_history", tuple(self.price_history))
        object.__setattr__(self, "volume_history", tuple(self.volume_history))
        object.__setattr__(self, "sentiment_history", tuple(self.sentiment_history))

    def prices(self) -> pd.Series:
        return price_series(self.price_history)

    def volumes(self) -> pd.Series:
        return _series(self.volume_history, "volume")

    def sentiments(self) -> pd.Series:
        return _series(self.sentiment_history, "sentiment")


@dataclass(frozen=True)
class StrategyConfig:
    """Risk profile parameters. Fractions, not percentages."""
    type: StrategyType
    risk_tolerance: RiskTolerance
    max_position_size: float   # fraction of portfolio
    stop_loss: float
    take_profit: float
    sentiment_threshold: float

    def merged(self, **overrides) -> "StrategyConfig":
        """Return a new config with overrides applied"""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        changes = {k: v for k, v in overrides.items() if k in known and v is not None}
        if "type" in changes:
            changes["type"] = StrategyType(changes["type"])
        if "risk_tolerance" in changes:
            changes["risk_tolerance"] = RiskTolerance(changes["risk_tolerance"])
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["risk_tolerance"] = self.risk_tolerance.value
        return data


@dataclass(frozen=True)
class Position:
    """Open (or closed) position owned by the caller. Never mutated here."""
    id: str
    token_address: str
    strategy: StrategyType
    entry_price: float
    current_price: float
    size: float  # USD
    range: PriceRange
    status: PositionStatus
    pnl: float
    entry_time: datetime
    exit_time: Optional[datetime] = None

    @property
    def pnl_percentage(self) -> float:
        return self.pnl / self.size


@dataclass
class StrategyDecision:
    should_enter: bool
    confidence: float  # 0-1
    reasoning: str
    position_size: Optional[float] = None
    price_range: Optional[PriceRange] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_enter": self.should_enter,
            "position_size": self.position_size,
            "range_min": self.price_range[0] if self.price_range else None,
            "range_max": self.price_range[1] if self.price_range else None,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


NO_ENTRY_REASONING = "No strategies recommend entry"
ERROR_REASONING = "Error occurred during strategy execution"


def safe_default_decision() -> StrategyDecision:
    return StrategyDecision(should_enter=False, confidence=0.0, reasoning=ERROR_REASONING)
