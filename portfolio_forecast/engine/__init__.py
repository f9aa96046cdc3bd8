# Engine package - portfolio state, data providers and backtesting
"""
Core portfolio state and simulation infrastructure.

Modules:
- portfolio: Portfolio, Position, Transaction
- classification: symbol suffix heuristics (asset class, sector, cost buckets)
- providers: market data, economic context and snapshot interfaces
- backtest: BacktestingFramework and ScenarioRunner (import from
  portfolio_forecast.engine.backtest; it depends on the ensemble package)
"""

from .portfolio import Portfolio, Position, Transaction, TransactionType, require_portfolio
from .providers import (
    OHLCV,
    PortfolioSnapshot,
    MarketDataProvider,
    EconomicContextProvider,
    HistoricalPortfolioProvider,
    PortfolioRepository,
    DataFrameMarketDataProvider,
    StaticEconomicContextProvider,
    DataFrameEconomicContextProvider,
    InMemoryHistoricalPortfolioProvider,
)

__all__ = [
    'Portfolio',
    'Position',
    'Transaction',
    'TransactionType',
    'require_portfolio',
    'OHLCV',
    'PortfolioSnapshot',
    'MarketDataProvider',
    'EconomicContextProvider',
    'HistoricalPortfolioProvider',
    'PortfolioRepository',
    'DataFrameMarketDataProvider',
    'StaticEconomicContextProvider',
    'DataFrameEconomicContextProvider',
    'InMemoryHistoricalPortfolioProvider',
]
