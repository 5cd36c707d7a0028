import math
from typing import Sequence, Union
import numpy as np
import pandas as pd

# A timestamp-indexed series from MarketData, or bare numbers
Values = Union[pd.Series, Sequence[float]]


def _to_series(values: Values) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(list(values), dtype=float)


def calculate_volatility(prices: Values, default: float, cap: float) -> float:
    """
    Mean absolute percentage move between consecutive prices, capped.
    Returns default when there are fewer than 2 points.
    """
    prices = _to_series(prices)
    if len(prices) < 2:
        return default

    changes = (prices.diff().abs() / prices.shift(1)).iloc[1:]
    avg_volatility = float(changes.mean())

    # 0/0 moves propagate NaN so that every gate using it fails
    if math.isnan(avg_volatility):
        return avg_volatility
    return min(avg_volatility, cap)


def coefficient_of_variation(values: Values) -> float:
    """Population std / mean. Infinite when the mean is zero."""
    series = _to_series(values)
    if series.empty:
        return float("inf")
    arr = series.to_numpy()
    mean = float(np.mean(arr))
    if mean == 0:
        return float("inf")
    return float(np.std(arr)) / mean


def is_stable(values: Values, min_points: int, max_cv: float) -> bool:
    """CV check over the supplied history; vacuously true when it is too short"""
    if len(values) < min_points:
        return True
    return coefficient_of_variation(values) < max_cv


def recent_return(prices: Values, window: int = 5) -> float:
    prices = _to_series(prices).iloc[-window:]
    first_price = prices.iloc[0]
    last_price = prices.iloc[-1]
    return float((last_price - first_price) / first_price)
