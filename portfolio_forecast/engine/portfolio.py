#!/usr/bin/env python3
"""
Portfolio, Position and Transaction - the state mutated by the simulation.

A Portfolio holds cash plus a set of Positions and an append-only list of
Transactions. It changes only through apply_transaction() (holdings and cash)
and update_prices() (marks). Everything else is derived.
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd

from ..exceptions import (
    ValidationError, MissingPortfolioError, require_symbol
)
from ..metrics.risk import calculate_volatility, calculate_max_drawdown, classify_risk_level
from ..metrics.performance import sharpe_ratio
from .classification import (
    asset_class_for, sector_for, region_for, market_cap_for, style_for
)

QUANTITY_EPSILON = 1e-9


class TransactionType(Enum):
    """Kinds of portfolio transactions."""
    BUY = 1
    SELL = 2
    DIVIDEND = 3
    SPLIT = 4
    FEE = 5


@dataclass(frozen=True)
class Transaction:
    """
    Immutable record of one portfolio transaction.

    For DIVIDEND, quantity is the number of shares paid on and price the
    dividend per share. For SPLIT, quantity is the split ratio. For FEE,
    only `fee` is used.
    """
    transaction_type: TransactionType
    symbol: str
    quantity: float
    price: float
    fee: float = 0.0
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.transaction_type != TransactionType.FEE:
            require_symbol(self.symbol)
        if self.quantity < 0:
            raise ValidationError(f"Transaction quantity must be >= 0, got {self.quantity}")
        if self.price < 0:
            raise ValidationError(f"Transaction price must be >= 0, got {self.price}")
        if self.fee < 0:
            raise ValidationError(f"Transaction fee must be >= 0, got {self.fee}")
        if self.transaction_type == TransactionType.SPLIT and self.quantity <= 0:
            raise ValidationError("Split ratio must be positive")

    @property
    def gross_amount(self) -> float:
        return self.quantity * self.price

    @property
    def net_amount(self) -> float:
        """Cash effect of the transaction (negative = cash out)."""
        if self.transaction_type == TransactionType.BUY:
            return -(self.gross_amount + self.fee)
        if self.transaction_type in (TransactionType.SELL, TransactionType.DIVIDEND):
            return self.gross_amount - self.fee
        return -self.fee


@dataclass
class Position:
    """Holding in a single symbol. Tags default to the symbol heuristics."""
    symbol: str
    quantity: float = 0.0
    average_cost: float = 0.0
    current_price: float = 0.0
    price_history: List[float] = field(default_factory=list)
    entry_date: Optional[datetime] = None
    asset_class: Optional[str] = None
    sector: Optional[str] = None
    region: Optional[str] = None
    market_cap: Optional[str] = None
    style: Optional[str] = None

    def __post_init__(self):
        self.symbol = require_symbol(self.symbol)
        if self.quantity < 0:
            raise ValidationError(f"Position quantity must be >= 0, got {self.quantity}")
        self.asset_class = self.asset_class or asset_class_for(self.symbol)
        self.sector = self.sector or sector_for(self.symbol)
        self.region = self.region or region_for(self.symbol)
        self.market_cap = self.market_cap or market_cap_for(self.symbol)
        self.style = self.style or style_for(self.symbol)
        if self.current_price == 0 and self.price_history:
            self.current_price = self.price_history[-1]

    @property
    def market_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost

    @property
    def unrealized_pnl(self) -> float:
        return self.market_value - self.cost_basis

    @property
    def position_return(self) -> float:
        """(current price - average cost) / average cost, 0 without a cost basis."""
        if self.average_cost == 0:
            return 0.0
        return (self.current_price - self.average_cost) / self.average_cost

    def update_price(self, price: float) -> None:
        if price <= 0:
            raise ValidationError(f"Price for {self.symbol} must be positive, got {price}")
        self.current_price = price
        self.price_history.append(price)


class Portfolio:
    """
    Cash plus positions, with a transaction log and a value history.

    Cached metrics (volatility, risk_level, max_drawdown) are recomputed by
    refresh_metrics() from the recorded value history and may also be set
    directly when a caller supplies externally estimated values.
    """

    def __init__(self,
                 cash: float = 0.0,
                 name: str = "portfolio",
                 portfolio_id: Optional[str] = None,
                 positions: Optional[List[Position]] = None):
        """
        Initialize portfolio.

        Parameters:
        -----------
        cash : float
            Starting cash balance
        name : str
            Portfolio name for identification
        portfolio_id : str, optional
            Identifier (generated when omitted)
        positions : List[Position], optional
            Initial holdings
        """
        if cash < 0:
            raise ValidationError(f"Initial cash must be >= 0, got {cash}")

        self.portfolio_id = portfolio_id or uuid.uuid4().hex
        self.name = name
        self.cash = float(cash)
        self.positions: Dict[str, Position] = {}
        self.transactions: List[Transaction] = []

        for position in positions or []:
            if position.symbol in self.positions:
                raise ValidationError(f"Duplicate position for {position.symbol}")
            self.positions[position.symbol] = position

        self.initial_value = self.total_value
        self.value_history = pd.Series(dtype=float, name='portfolio_value')

        # Cached metrics
        self.volatility = 0.0
        self.risk_level = 0.0
        self.max_drawdown = 0.0

        logging.info(f"Portfolio '{self.name}' initialized with {len(self.positions)} positions "
                     f"and value {self.initial_value:,.2f}")

    # =========================================================================
    # FACTORY METHODS
    # =========================================================================

    @classmethod
    def create_from_weights(cls,
                            weights: Dict[str, float],
                            prices: Dict[str, float],
                            total_value: float,
                            name: str = "portfolio",
                            as_of: Optional[datetime] = None) -> 'Portfolio':
        """
        Build a portfolio holding `weights` of `total_value` at `prices`.

        Weights need not sum to 1; any remainder stays in cash.
        """
        if total_value <= 0:
            raise ValidationError(f"total_value must be positive, got {total_value}")
        if sum(weights.values()) > 1 + 1e-9:
            raise ValidationError("Weights must sum to at most 1")

        positions = []
        invested = 0.0
        for symbol, weight in weights.items():
            if weight <= 0:
                continue
            price = prices.get(symbol)
            if price is None or price <= 0:
                raise ValidationError(f"A positive price is required for {symbol}")
            amount = total_value * weight
            positions.append(Position(symbol=symbol, quantity=amount / price, average_cost=price,
                                      current_price=price, price_history=[price], entry_date=as_of))
            invested += amount

        return cls(cash=total_value - invested, name=name, positions=positions)

    # =========================================================================
    # VALUATION
    # =========================================================================

    @property
    def market_value(self) -> float:
        """Value of all positions, excluding cash."""
        return float(sum(p.market_value for p in self.positions.values()))

    @property
    def total_value(self) -> float:
        return self.cash + self.market_value

    def get_weights(self) -> Dict[str, float]:
        """Weight of each position in total value (cash included in the denominator)."""
        total = self.total_value
        if total <= 0:
            return {}
        return {symbol: p.market_value / total for symbol, p in self.positions.items()}

    def get_asset_class_weights(self) -> Dict[str, float]:
        """Weights grouped by asset class; uninvested cash counts as 'Cash'."""
        total = self.total_value
        if total <= 0:
            return {}
        weights: Dict[str, float] = {}
        for position in self.positions.values():
            weights[position.asset_class] = weights.get(position.asset_class, 0.0) + position.market_value / total
        if self.cash > 0:
            weights['Cash'] = weights.get('Cash', 0.0) + self.cash / total
        return weights

    def get_value_series(self) -> pd.Series:
        return self.value_history.copy()

    def get_returns(self) -> pd.Series:
        return self.value_history.pct_change().dropna()

    # =========================================================================
    # MUTATION
    # =========================================================================

    def apply_transaction(self, transaction: Transaction) -> None:
        """
        Apply a transaction to cash and holdings, then append it to the log.

        Raises ValidationError when a buy exceeds available cash or a sell
        exceeds the held quantity.
        """
        t = transaction.transaction_type
        position = self.positions.get(transaction.symbol)

        if t == TransactionType.BUY:
            cost = transaction.gross_amount + transaction.fee
            if cost > self.cash + 1e-6:
                raise ValidationError(
                    f"Insufficient cash for {transaction.symbol}: need {cost:,.2f}, have {self.cash:,.2f}"
                )
            self.cash -= cost
            if position is None:
                self.positions[transaction.symbol] = Position(
                    symbol=transaction.symbol,
                    quantity=transaction.quantity,
                    average_cost=transaction.price,
                    current_price=transaction.price,
                    price_history=[transaction.price],
                    entry_date=transaction.timestamp,
                )
            else:
                new_quantity = position.quantity + transaction.quantity
                if new_quantity > 0:
                    position.average_cost = (
                        position.quantity * position.average_cost + transaction.gross_amount
                    ) / new_quantity
                position.quantity = new_quantity
                position.current_price = transaction.price

        elif t == TransactionType.SELL:
            held = position.quantity if position is not None else 0.0
            if transaction.quantity > held + QUANTITY_EPSILON:
                raise ValidationError(
                    f"Cannot sell {transaction.quantity} of {transaction.symbol}; holding {held}"
                )
            self.cash += transaction.gross_amount - transaction.fee
            position.quantity = max(0.0, held - transaction.quantity)
            position.current_price = transaction.price
            if position.quantity <= QUANTITY_EPSILON:
                del self.positions[transaction.symbol]

        elif t == TransactionType.DIVIDEND:
            self.cash += transaction.gross_amount - transaction.fee

        elif t == TransactionType.SPLIT:
            if position is None:
                raise ValidationError(f"No position in {transaction.symbol} to split")
            ratio = transaction.quantity
            position.quantity *= ratio
            position.average_cost /= ratio
            position.current_price /= ratio

        elif t == TransactionType.FEE:
            self.cash -= transaction.fee

        self.transactions.append(transaction)
        logging.debug(f"{self.name}: applied {t.name} {transaction.quantity:.4f} {transaction.symbol} "
                      f"@ {transaction.price:.4f}")

    def update_prices(self, prices: Dict[str, float]) -> None:
        """Mark held positions to new prices. Symbols not held are ignored."""
        for symbol, price in prices.items():
            position = self.positions.get(symbol)
            if position is not None:
                position.update_price(price)

    def record_value(self, as_of: datetime) -> float:
        """Append the current total value to the value history."""
        value = self.total_value
        self.value_history.loc[pd.Timestamp(as_of)] = value
        return value

    def refresh_metrics(self) -> None:
        """Recompute cached volatility, risk level and max drawdown from value history."""
        returns = self.get_returns()
        self.volatility = calculate_volatility(returns.values) if len(returns) >= 2 else 0.0
        self.risk_level = float(classify_risk_level(self.volatility, low=0.10, medium=0.20)) \
            if len(returns) >= 2 else 0.0
        self.max_drawdown = calculate_max_drawdown(self.value_history.values)

    def copy(self) -> 'Portfolio':
        """Deep copy with independent positions and transaction log."""
        return copy.deepcopy(self)

    # =========================================================================
    # REPORTING
    # =========================================================================

    def get_summary_statistics(self, risk_free_rate: float = 0.0) -> pd.DataFrame:
        """
        Summary statistics computed from the value history.

        Returns:
        --------
        pd.DataFrame with one row indexed by portfolio name
        """
        values = self.value_history
        if len(values) < 2:
            return pd.DataFrame()

        returns = values.pct_change().dropna()
        total_return = values.iloc[-1] / values.iloc[0] - 1
        days = (values.index[-1] - values.index[0]).days
        years = days / 365.0
        annual_return = (1 + total_return) ** (1 / years) - 1 if years > 0 else 0.0

        summary = pd.DataFrame({
            'Portfolio': [self.name],
            'Total_Return': [total_return],
            'Annual_Return': [annual_return],
            'Volatility': [calculate_volatility(returns.values)],
            'Sharpe_Ratio': [sharpe_ratio(returns.values, risk_free_rate)],
            'Max_Drawdown': [calculate_max_drawdown(values.values)],
            'Num_Periods': [len(returns)],
            'Num_Transactions': [len(self.transactions)],
        })
        return summary.set_index('Portfolio')

    def __repr__(self) -> str:
        return (f"Portfolio(name={self.name!r}, value={self.total_value:,.2f}, "
                f"positions={len(self.positions)}, cash={self.cash:,.2f})")


def require_portfolio(portfolio: Optional[Portfolio]) -> Portfolio:
    """Raise MissingPortfolioError for a None portfolio."""
    if portfolio is None:
        raise MissingPortfolioError("Portfolio cannot be None")
    return portfolio
