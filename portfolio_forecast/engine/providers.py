#!/usr/bin/env python3
"""
External collaborator interfaces and in-memory implementations.

Market data, economic context, historical portfolio snapshots and portfolio
persistence are owned by other systems. The engine depends only on the
abstract interfaces below; the pandas-backed classes serve simulations and
tests.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from ..exceptions import ValidationError

DateLike = Union[date, datetime, pd.Timestamp, str]


@dataclass(frozen=True)
class OHLCV:
    """One daily bar."""
    date: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Portfolio state on one day, as returned by the historical provider."""
    date: pd.Timestamp
    total_value: float
    weights: Dict[str, float] = field(default_factory=dict)


# =============================================================================
# INTERFACES
# =============================================================================

class MarketDataProvider(ABC):
    """MarketDataProvider(date) -> OHLCV per symbol."""

    @abstractmethod
    def get_market_data(self, as_of: DateLike, symbols: Sequence[str]) -> Optional[Dict[str, OHLCV]]:
        """
        Bars for `symbols` on `as_of`.

        Returns:
        --------
        Dict[str, OHLCV] or None when the date is not a trading day
        """
        pass

    @abstractmethod
    def last_available_date(self) -> Optional[pd.Timestamp]:
        """Latest date with data, or None if the provider is empty."""
        pass


class EconomicContextProvider(ABC):
    """EconomicContextProvider(date) -> {indicator name -> value}."""

    @abstractmethod
    def get_economic_context(self, as_of: DateLike) -> Dict[str, float]:
        pass


class HistoricalPortfolioProvider(ABC):
    """Ordered daily portfolio snapshots for backtesting ensemble forecasts."""

    @abstractmethod
    def get_historical_portfolio_data(self, portfolio_id: str,
                                      start: DateLike, end: DateLike) -> List[PortfolioSnapshot]:
        pass


class PortfolioRepository(ABC):
    """Persistence boundary for portfolios. Implemented outside this package."""

    @abstractmethod
    def get(self, portfolio_id: str):
        pass

    @abstractmethod
    def save(self, portfolio) -> None:
        pass

    @abstractmethod
    def delete(self, portfolio_id: str) -> None:
        pass


# =============================================================================
# PANDAS-BACKED IMPLEMENTATIONS
# =============================================================================

class DataFrameMarketDataProvider(MarketDataProvider):
    """
    Serves bars from a close-price DataFrame (index = dates, columns = symbols).

    Open/high/low are taken equal to close; volumes come from an optional
    DataFrame of the same shape.
    """

    def __init__(self, prices: pd.DataFrame, volumes: Optional[pd.DataFrame] = None):
        if prices.empty:
            raise ValidationError("prices DataFrame is empty")
        self.prices = prices.sort_index()
        self.prices.index = pd.DatetimeIndex(self.prices.index).normalize()
        self.volumes = None
        if volumes is not None:
            self.volumes = volumes.sort_index()
            self.volumes.index = pd.DatetimeIndex(self.volumes.index).normalize()
        logging.info(f"DataFrameMarketDataProvider: {len(self.prices)} dates x {len(self.prices.columns)} symbols")

    def get_market_data(self, as_of: DateLike, symbols: Sequence[str]) -> Optional[Dict[str, OHLCV]]:
        ts = pd.Timestamp(as_of).normalize()
        if ts not in self.prices.index:
            return None
        row = self.prices.loc[ts]
        bars = {}
        for symbol in symbols:
            if symbol not in row.index or pd.isna(row[symbol]):
                continue
            close = float(row[symbol])
            volume = 0.0
            if self.volumes is not None and symbol in self.volumes.columns and ts in self.volumes.index:
                volume = float(self.volumes.at[ts, symbol])
            bars[symbol] = OHLCV(date=ts, open=close, high=close, low=close, close=close, volume=volume)
        return bars or None

    def last_available_date(self) -> Optional[pd.Timestamp]:
        return self.prices.index[-1]


class StaticEconomicContextProvider(EconomicContextProvider):
    """Same indicator values for every date."""

    def __init__(self, indicators: Optional[Dict[str, float]] = None):
        self.indicators = dict(indicators or {})

    def get_economic_context(self, as_of: DateLike) -> Dict[str, float]:
        return dict(self.indicators)


class DataFrameEconomicContextProvider(EconomicContextProvider):
    """Indicator values from a DataFrame (index = dates, columns = indicator names), forward-filled."""

    def __init__(self, indicators: pd.DataFrame):
        self.indicators = indicators.sort_index()
        self.indicators.index = pd.DatetimeIndex(self.indicators.index).normalize()

    def get_economic_context(self, as_of: DateLike) -> Dict[str, float]:
        ts = pd.Timestamp(as_of).normalize()
        available = self.indicators.loc[:ts]
        if available.empty:
            return {}
        row = available.iloc[-1]
        return {name: float(value) for name, value in row.items() if pd.notna(value)}


class InMemoryHistoricalPortfolioProvider(HistoricalPortfolioProvider):
    """Snapshots built from per-portfolio value series."""

    def __init__(self, values: Dict[str, pd.Series]):
        self.values = {pid: series.sort_index() for pid, series in values.items()}

    def get_historical_portfolio_data(self, portfolio_id: str,
                                      start: DateLike, end: DateLike) -> List[PortfolioSnapshot]:
        series = self.values.get(portfolio_id)
        if series is None:
            return []
        window = series.loc[pd.Timestamp(start):pd.Timestamp(end)]
        return [PortfolioSnapshot(date=pd.Timestamp(d), total_value=float(v)) for d, v in window.items()]
