from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from strategy_engine.core.types import (
    MarketData,
    Position,
    PositionStatus,
    PricePoint,
    SentimentPoint,
    StrategyType,
    Token,
    VolumePoint,
)
from strategy_engine.strategies.strategy_factory import StrategyFactory

START = datetime(2024, 1, 1)
REFERENCE_PRICES = [0.001, 0.0011, 0.0009, 0.0012, 0.0013]
REFERENCE_VOLUMES = [50000, 55000, 45000, 60000, 65000]
REFERENCE_SENTIMENTS = [0.3, 0.4, 0.2, 0.5, 0.6]


def price_points(prices):
    return [PricePoint(START + timedelta(days=i), p) for i, p in enumerate(prices)]


def volume_points(volumes):
    return [VolumePoint(START + timedelta(days=i), v) for i, v in enumerate(volumes)]


def sentiment_points(values):
    return [SentimentPoint(START + timedelta(days=i), s) for i, s in enumerate(values)]


def make_market_data(token, prices=REFERENCE_PRICES, volumes=REFERENCE_VOLUMES, sentiments=REFERENCE_SENTIMENTS):
    return MarketData(
        token=token,
        price_history=price_points(prices),
        volume_history=volume_points(volumes),
        sentiment_history=sentiment_points(sentiments),
    )


def make_position(strategy=StrategyType.AGGRESSIVE, pnl=0.0, size=1000.0, entry_price=0.001, **kwargs):
    values = dict(
        id="test-position",
        token_address="test-token-address",
        strategy=strategy,
        entry_price=entry_price,
        current_price=entry_price * (1 + pnl / size) if size else entry_price,
        size=size,
        range=(0.0008, 0.0012),
        status=PositionStatus.ACTIVE,
        pnl=pnl,
        entry_time=START,
    )
    values.update(kwargs)
    return Position(**values)


@pytest.fixture
def token():
    return Token(
        address="test-token-address",
        symbol="TEST",
        name="Test Token",
        market_cap=1_000_000,
        price=0.001,
        volume_24h=50_000,
        tvl=25_000,
        sentiment=0.4,
        trending=True,
    )


@pytest.fixture
def market_data(token):
    return make_market_data(token)


@pytest.fixture
def blue_chip_token():
    """Token that clears every conservative gate"""
    return Token(
        address="blue-chip-address",
        symbol="BLUE",
        name="Blue Chip",
        market_cap=800_000,
        price=1.0,
        volume_24h=300_000,
        tvl=200_000,
        sentiment=0.5,
        trending=True,
    )


@pytest.fixture
def blue_chip_market_data(blue_chip_token):
    # Steady ~3% climbs: volatility inside (0.02, 0.20), last-5 return > 5%
    prices = [1.0, 1.03, 1.0, 1.03, 1.06, 1.09]
    volumes = [300_000, 310_000, 290_000, 305_000, 300_000]
    return make_market_data(blue_chip_token, prices=prices, volumes=volumes)


@pytest.fixture
def factory():
    return StrategyFactory()


def with_token(market_data, **changes):
    """Same history, token fields changed"""
    token = replace(market_data.token, **changes)
    return token, replace(market_data, token=token)
