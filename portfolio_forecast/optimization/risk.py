#!/usr/bin/env python3
"""
Risk optimizer.

Measures the current risk of a portfolio from its positions and the latest
forecasts, scales it down to a target set by the investor's risk tolerance,
and lists what to reduce first.
"""

import itertools
import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from ..config.system_config import EngineConfig
from ..engine.portfolio import Portfolio, require_portfolio
from ..metrics.risk import calculate_correlation, calculate_gini
from ..models.base import MarketPrediction, SecurityPrediction, calculate_returns
from ..schemas.profiles import RiskProfile

MIN_RISK_LEVEL = 0.01
MAX_RISK_LEVEL = 0.30
DERIVED_SERIES_LENGTH = 10


def derived_returns(expected_return: float) -> np.ndarray:
    """Ten-point series er * (1 + (i - 5) * 0.01), used when a position has no usable history."""
    i = np.arange(DERIVED_SERIES_LENGTH)
    return expected_return * (1 + (i - 5) * 0.01)


def pairwise_correlations(portfolio: Portfolio,
                          security_predictions: Sequence[SecurityPrediction]) -> List[float]:
    """
    Pearson correlation for every pair of held symbols that have a forecast.

    Return histories are used when longer than ten prices, otherwise a
    series derived from the forecast expected return.
    """
    predictions = {p.symbol: p for p in security_predictions}
    symbols = [s for s in portfolio.positions if s in predictions]

    series = {}
    for symbol in symbols:
        history = portfolio.positions[symbol].price_history
        if len(history) > DERIVED_SERIES_LENGTH:
            series[symbol] = calculate_returns(history)
        else:
            series[symbol] = derived_returns(predictions[symbol].expected_return)

    correlations = []
    for a, b in itertools.combinations(symbols, 2):
        length = min(len(series[a]), len(series[b]))
        correlations.append(calculate_correlation(series[a][-length:], series[b][-length:]))
    return correlations


@dataclass
class RiskMetrics:
    portfolio_risk: float
    market_risk: float
    security_risks: Dict[str, float]
    correlation_risk: float
    concentration_risk: float

    @property
    def total_risk(self) -> float:
        return self.portfolio_risk + self.market_risk + sum(self.security_risks.values())

    def scaled(self, factor: float) -> 'RiskMetrics':
        return RiskMetrics(
            portfolio_risk=self.portfolio_risk * factor,
            market_risk=self.market_risk * factor,
            security_risks={s: r * factor for s, r in self.security_risks.items()},
            correlation_risk=self.correlation_risk * factor,
            concentration_risk=self.concentration_risk * factor,
        )


@dataclass
class RiskRecommendation:
    priority: int
    category: str
    description: str
    recommendation: str


@dataclass
class RiskOptimizationResult:
    current: RiskMetrics
    target: RiskMetrics
    risk_reduction: float
    adjustments: Dict[str, float]
    recommendations: List[RiskRecommendation] = field(default_factory=list)


class RiskOptimizer:
    """
    Current-versus-target risk analysis.

    Parameters:
    -----------
    min_risk_level, max_risk_level : float
        Bounds on the tolerance fraction used to scale current risk
    """

    def __init__(self, min_risk_level: float = MIN_RISK_LEVEL, max_risk_level: float = MAX_RISK_LEVEL):
        if not 0 < min_risk_level <= max_risk_level:
            raise ValueError("Require 0 < min_risk_level <= max_risk_level")
        self.min_risk_level = min_risk_level
        self.max_risk_level = max_risk_level

    @classmethod
    def from_config(cls, config: EngineConfig) -> 'RiskOptimizer':
        """Build with the risk-level clamps from an EngineConfig."""
        return cls(min_risk_level=config.min_risk_level, max_risk_level=config.max_risk_level)

    def optimize(self, portfolio: Portfolio,
                 market_prediction: MarketPrediction,
                 security_predictions: Sequence[SecurityPrediction],
                 risk_profile: RiskProfile) -> RiskOptimizationResult:
        """
        Compare current risk with the tolerance-scaled target.

        Parameters:
        -----------
        portfolio : Portfolio
        market_prediction : MarketPrediction
        security_predictions : Sequence[SecurityPrediction]
        risk_profile : RiskProfile

        Returns:
        --------
        RiskOptimizationResult with per-component adjustments (current - target)
        and prioritized recommendations
        """
        portfolio = require_portfolio(portfolio)
        current = self.calculate_current_risk(portfolio, market_prediction, security_predictions)
        factor = self.target_factor(risk_profile)
        target = current.scaled(factor)

        adjustments = {
            'portfolio': current.portfolio_risk - target.portfolio_risk,
            'market': current.market_risk - target.market_risk,
            'correlation': current.correlation_risk - target.correlation_risk,
            'concentration': current.concentration_risk - target.concentration_risk,
        }
        for symbol, risk in current.security_risks.items():
            adjustments[symbol] = risk - target.security_risks[symbol]

        result = RiskOptimizationResult(
            current=current,
            target=target,
            risk_reduction=current.total_risk - target.total_risk,
            adjustments=adjustments,
            recommendations=self.generate_recommendations(current, target),
        )
        logging.info(f"RiskOptimizer: total risk {current.total_risk:.4f} -> {target.total_risk:.4f} "
                     f"({len(result.recommendations)} recommendations)")
        return result

    def target_factor(self, risk_profile: RiskProfile) -> float:
        return float(np.clip(risk_profile.tolerance_fraction, self.min_risk_level, self.max_risk_level))

    # =========================================================================
    # CURRENT RISK
    # =========================================================================

    def calculate_current_risk(self, portfolio: Portfolio,
                               market_prediction: MarketPrediction,
                               security_predictions: Sequence[SecurityPrediction]) -> RiskMetrics:
        return RiskMetrics(
            portfolio_risk=self.portfolio_risk(portfolio),
            market_risk=market_prediction.volatility * market_prediction.risk_level,
            security_risks={p.symbol: p.volatility * p.risk_level for p in security_predictions},
            correlation_risk=self.correlation_risk(portfolio, security_predictions),
            concentration_risk=self.concentration_risk(portfolio),
        )

    @staticmethod
    def portfolio_risk(portfolio: Portfolio) -> float:
        """Population std of position returns since purchase, as a percentage."""
        returns = [p.position_return for p in portfolio.positions.values()]
        if not returns:
            return 0.0
        return float(np.std(returns) * 100)

    @staticmethod
    def correlation_risk(portfolio: Portfolio,
                         security_predictions: Sequence[SecurityPrediction]) -> float:
        """Mean pairwise correlation over symbols that have a forecast."""
        correlations = pairwise_correlations(portfolio, security_predictions)
        return float(np.mean(correlations)) if correlations else 0.0

    @staticmethod
    def concentration_risk(portfolio: Portfolio) -> float:
        return calculate_gini(list(portfolio.get_weights().values())) * portfolio.risk_level

    # =========================================================================
    # RECOMMENDATIONS
    # =========================================================================

    @staticmethod
    def generate_recommendations(current: RiskMetrics, target: RiskMetrics) -> List[RiskRecommendation]:
        recommendations = []
        if current.total_risk > target.total_risk:
            recommendations.append(RiskRecommendation(
                1, 'total', "Overall risk exceeds the target",
                "Cut exposure to the highest-risk holdings"))
        if current.portfolio_risk > target.portfolio_risk:
            recommendations.append(RiskRecommendation(
                2, 'portfolio', "Portfolio risk exceeds the target",
                "Rebalance toward the target risk level"))
        if current.correlation_risk > target.correlation_risk:
            recommendations.append(RiskRecommendation(
                3, 'correlation', "Holdings move together too closely",
                "Add assets with lower correlation to the existing holdings"))
        if current.concentration_risk > target.concentration_risk:
            recommendations.append(RiskRecommendation(
                4, 'concentration', "Holdings are concentrated in a few positions",
                "Spread capital across more positions"))
        return recommendations
