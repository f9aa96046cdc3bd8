#!/usr/bin/env python3
"""
Tax optimizer.

Estimates the portfolio's taxable income by category, derives an effective
tax rate, tilts the asset-class allocation toward tax efficiency, and prices
the tax cost of each sell.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from ..engine.portfolio import Portfolio, TransactionType, require_portfolio
from ..schemas.profiles import TaxProfile
from .allocation import DEFAULT_ALLOCATION
from .plan import ActionSide, OptimizationPlan, build_actions, normalize_allocation

DAYS_PER_MONTH = 30.4375
INTEREST_CLASSES = ('Bonds', 'Cash')


class TaxOptimizer:
    """
    Tax-aware asset-class allocation.

    Parameters:
    -----------
    tax_profile : TaxProfile, optional
        Rates and holding-period rules (default TaxProfile())
    rebalance_threshold : float
        Minimum |weight change| that produces an action
    """

    def __init__(self, tax_profile: Optional[TaxProfile] = None, rebalance_threshold: float = 0.01):
        self.tax_profile = tax_profile or TaxProfile()
        self.rebalance_threshold = rebalance_threshold

    # =========================================================================
    # TAXABLE INCOME
    # =========================================================================

    @staticmethod
    def holding_months(entry_date: Optional[datetime], as_of: pd.Timestamp) -> float:
        if entry_date is None:
            return 0.0
        return max(0.0, (as_of - pd.Timestamp(entry_date)).days / DAYS_PER_MONTH)

    def calculate_taxable_income(self, portfolio: Portfolio, as_of: pd.Timestamp) -> Dict[str, float]:
        """
        Income per category: short/long-term equity gains, dividends, interest.

        Each category total is floored at 0.
        """
        income = {'short_term_gains': 0.0, 'long_term_gains': 0.0, 'dividends': 0.0, 'interest': 0.0}
        threshold = self.tax_profile.long_term_threshold_months
        for position in portfolio.positions.values():
            gain = position.unrealized_pnl
            if position.asset_class in INTEREST_CLASSES:
                income['interest'] += gain
            elif self.holding_months(position.entry_date, as_of) < threshold:
                income['short_term_gains'] += gain
            else:
                income['long_term_gains'] += gain

        income['dividends'] = sum(t.gross_amount for t in portfolio.transactions
                                  if t.transaction_type == TransactionType.DIVIDEND)
        return {k: max(0.0, v) for k, v in income.items()}

    def effective_tax_rate(self, income: Dict[str, float]) -> float:
        """Income-weighted blend of category rates; the default rate when there is no income."""
        total = sum(income.values())
        if total <= 0:
            return self.tax_profile.default_rate
        rates = self.tax_profile.rates()
        return sum(income[k] * rates[k] for k in income) / total

    def class_tax_rates(self, portfolio: Portfolio, as_of: pd.Timestamp) -> Dict[str, float]:
        """Rate applied to each asset class: interest rate for Bonds/Cash, holding-period rate for Equities."""
        months = self.class_holding_months(portfolio, as_of)
        equity_rate = (self.tax_profile.long_term_rate
                       if months.get('Equities', 0.0) >= self.tax_profile.long_term_threshold_months
                       else self.tax_profile.short_term_rate)
        return {'Equities': equity_rate,
                'Bonds': self.tax_profile.interest_rate,
                'Cash': self.tax_profile.interest_rate}

    def class_holding_months(self, portfolio: Portfolio, as_of: pd.Timestamp) -> Dict[str, float]:
        """Value-weighted holding period of each asset class in months."""
        values: Dict[str, float] = {}
        weighted: Dict[str, float] = {}
        for position in portfolio.positions.values():
            value = position.market_value
            values[position.asset_class] = values.get(position.asset_class, 0.0) + value
            weighted[position.asset_class] = (weighted.get(position.asset_class, 0.0)
                                              + value * self.holding_months(position.entry_date, as_of))
        return {c: weighted[c] / values[c] if values[c] > 0 else 0.0 for c in values}

    def tax_factor(self, rate: float, holding_months: float) -> float:
        return (1 - rate) * (1 + holding_months * 0.01) * (1 - self.tax_profile.wash_sale_days * 0.001)

    def wash_sale_classes(self, portfolio: Portfolio, as_of: pd.Timestamp) -> List[str]:
        """
        Asset classes holding a losing position opened inside the wash-sale window.

        Selling such a position would have its loss disallowed, so the
        optimizer defers those sells.
        """
        window = self.tax_profile.wash_sale_window_days
        blocked = set()
        for position in portfolio.positions.values():
            if position.entry_date is None or position.unrealized_pnl >= 0:
                continue
            if (as_of - pd.Timestamp(position.entry_date)).days < window:
                blocked.add(position.asset_class)
        return sorted(blocked)

    # =========================================================================
    # OPTIMIZATION
    # =========================================================================

    def optimize(self, portfolio: Portfolio,
                 as_of: Optional[datetime] = None,
                 base_allocation: Optional[Dict[str, float]] = None) -> OptimizationPlan:
        """
        Tax-adjusted class allocation and the actions to reach it.

        Parameters:
        -----------
        portfolio : Portfolio
        as_of : datetime, optional
            Valuation date for holding periods (default: last recorded value date, else now)
        base_allocation : Dict[str, float], optional
            Allocation to adjust (default: current class weights, or the
            strategic 60/30/10 mix for an empty portfolio)

        Returns:
        --------
        OptimizationPlan whose Sell actions carry impact = |delta| * value * class rate.
        Sells of a class holding a loss opened inside the wash-sale window are
        deferred and counted in metrics['wash_sale_deferred'].
        """
        portfolio = require_portfolio(portfolio)
        as_of = self._valuation_date(portfolio, as_of)
        current = portfolio.get_asset_class_weights()
        base = base_allocation or current or dict(DEFAULT_ALLOCATION)

        income = self.calculate_taxable_income(portfolio, as_of)
        rate = self.effective_tax_rate(income)
        class_rates = self.class_tax_rates(portfolio, as_of)
        months = self.class_holding_months(portfolio, as_of)

        target = normalize_allocation({
            asset_class: weight * self.tax_factor(class_rates.get(asset_class, self.tax_profile.default_rate),
                                                  months.get(asset_class, 0.0))
            for asset_class, weight in base.items()
        })

        value = portfolio.total_value

        def tax_impact(asset_class: str, delta: float, amount: float) -> float:
            if delta >= 0:
                return 0.0
            return abs(delta) * value * class_rates.get(asset_class, self.tax_profile.default_rate)

        actions = build_actions(current, target, self.rebalance_threshold, value, impact_fn=tax_impact)
        blocked = self.wash_sale_classes(portfolio, as_of)
        deferred = [a for a in actions if a.side == ActionSide.SELL and a.asset in blocked]
        if deferred:
            actions = [a for a in actions if not (a.side == ActionSide.SELL and a.asset in blocked)]
            logging.info(f"TaxOptimizer: deferred {len(deferred)} sell(s) inside the "
                         f"{self.tax_profile.wash_sale_window_days}-day wash-sale window: {blocked}")
        total_impact = sum(a.impact for a in actions if a.side == ActionSide.SELL)
        efficiency = 1 - total_impact / value if value > 0 else 1.0

        metrics = dict(income)
        metrics.update({
            'total_taxable_income': sum(income.values()),
            'effective_tax_rate': rate,
            'total_tax_impact': total_impact,
            'tax_efficiency': efficiency,
            'wash_sale_deferred': float(len(deferred)),
        })
        logging.info(f"TaxOptimizer: effective rate {rate:.2%}, {len(actions)} actions, "
                     f"tax impact {total_impact:,.2f}")
        return OptimizationPlan(target_allocation=target, actions=actions,
                                threshold=self.rebalance_threshold, metrics=metrics)

    @staticmethod
    def _valuation_date(portfolio: Portfolio, as_of: Optional[datetime]) -> pd.Timestamp:
        if as_of is not None:
            return pd.Timestamp(as_of)
        if len(portfolio.value_history):
            return pd.Timestamp(portfolio.value_history.index[-1])
        return pd.Timestamp.now()
