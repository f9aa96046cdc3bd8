#!/usr/bin/env python3
"""
Statistical prediction model.

Forecasts from the moments of the return series: mean, sample volatility,
least-squares trend, and a beta/alpha adjustment against an assumed market
return.
"""

import logging
import numpy as np
from typing import Dict, Optional, Sequence
from scipy import stats

from ..exceptions import MissingPortfolioError, ValidationError, require_symbol
from ..metrics.risk import classify_risk_level
from ..schemas.profiles import ModelType
from .base import (
    PredictionModel, MarketPrediction, SecurityPrediction, PortfolioPrediction,
    Recommendation, calculate_returns, sample_volatility, direction_of
)


class StatisticalModel(PredictionModel):
    """
    Moment-based forecaster.

    Parameters:
    -----------
    market_return_assumption : float
        Market return used as the reference for beta and alpha (default 1%)
    """

    model_type = ModelType.STATISTICAL
    baseline_metrics = {'accuracy': 0.75, 'precision': 0.70, 'recall': 0.72, 'f1_score': 0.71}
    rationale = "Based on statistical analysis of returns and volatility"

    def __init__(self, market_return_assumption: float = 0.01, name: Optional[str] = None):
        if market_return_assumption == 0:
            raise ValueError("market_return_assumption must be non-zero")
        self.market_return_assumption = market_return_assumption
        super().__init__(name)

    # =========================================================================
    # STATISTICS
    # =========================================================================

    @staticmethod
    def calculate_trend(returns: np.ndarray) -> float:
        """Least-squares slope of returns against x = 1..n (0 for fewer than 2 points)."""
        if len(returns) < 2:
            return 0.0
        x = np.arange(1, len(returns) + 1)
        if np.all(returns == returns[0]):
            return 0.0
        return float(stats.linregress(x, returns).slope)

    def calculate_beta(self, returns: np.ndarray) -> float:
        return float(np.mean(returns)) / self.market_return_assumption

    def calculate_alpha(self, returns: np.ndarray) -> float:
        return float(np.mean(returns)) - self.market_return_assumption

    @staticmethod
    def calculate_confidence(trend: float, volatility: float) -> float:
        trend_score = 0.8 if trend > 0 else 0.2
        return float(np.clip((trend_score + (1 - volatility)) / 2, 0.0, 1.0))

    @staticmethod
    def calculate_technical_score(trend: float, volatility: float) -> float:
        return trend / volatility if volatility > 0 else 0.0

    # =========================================================================
    # FORECASTS
    # =========================================================================

    def predict_market(self, prices: Sequence[float],
                       economic_context: Optional[Dict[str, float]] = None,
                       horizon: int = 1) -> MarketPrediction:
        returns = calculate_returns(prices)
        volatility = sample_volatility(returns)
        trend = self.calculate_trend(returns)
        confidence = self._remember_confidence(self.calculate_confidence(trend, volatility))

        return MarketPrediction(
            expected_return=float(np.mean(returns)),
            volatility=volatility,
            risk_level=classify_risk_level(volatility),
            confidence=confidence,
            time_horizon=horizon,
            direction=direction_of(trend),
            technical_score=self.calculate_technical_score(trend, volatility),
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            trend_strength=trend,
            economic_context=dict(economic_context or {}),
        )

    def predict_security(self, symbol: str, prices: Sequence[float],
                         factors: Optional[Dict[str, float]] = None,
                         horizon: int = 1,
                         volumes: Optional[Sequence[float]] = None) -> SecurityPrediction:
        symbol = require_symbol(symbol)
        returns = calculate_returns(prices)
        volatility = sample_volatility(returns)
        trend = self.calculate_trend(returns)
        beta = self.calculate_beta(returns)
        alpha = self.calculate_alpha(returns)
        confidence = self._remember_confidence(self.calculate_confidence(trend, volatility))

        if beta > 1 and volatility < 0.1:
            action = Recommendation.BUY
        elif beta < 1 and volatility > 0.2:
            action = Recommendation.SELL
        else:
            action = Recommendation.HOLD

        return SecurityPrediction(
            expected_return=float(np.mean(returns)) * beta + alpha,
            volatility=volatility,
            risk_level=classify_risk_level(volatility),
            confidence=confidence,
            time_horizon=horizon,
            direction=direction_of(trend),
            technical_score=self.calculate_technical_score(trend, volatility),
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            symbol=symbol,
            recommendation=action,
        )

    def predict_portfolio(self, portfolio,
                          market_prediction: Optional[MarketPrediction] = None,
                          horizon: int = 1) -> PortfolioPrediction:
        """
        Weighted beta-adjusted return, covariance volatility and inverse-volatility allocation.

        Each position contributes mean * beta + alpha, the same adjustment
        predict_security applies, so the market return assumption moves the
        portfolio forecast.
        Every position needs at least two prices; histories are aligned on
        their common trailing length for the covariance.
        """
        if portfolio is None:
            raise MissingPortfolioError("Portfolio cannot be None")
        positions = list(portfolio.positions.values())
        if not positions:
            raise ValidationError("Portfolio has no positions to forecast")

        weights_by_symbol = portfolio.get_weights()
        weights = np.array([weights_by_symbol[p.symbol] for p in positions])
        series = [calculate_returns(p.price_history) for p in positions]

        means = np.array([np.mean(r) for r in series])
        vols = np.array([sample_volatility(r) for r in series])
        betas = means / self.market_return_assumption
        alphas = means - self.market_return_assumption

        length = min(len(r) for r in series)
        if length >= 2:
            aligned = np.column_stack([r[-length:] for r in series])
            cov = np.atleast_2d(np.cov(aligned, rowvar=False, ddof=0))
            volatility = float(np.sqrt(max(weights @ cov @ weights, 0.0)))
        else:
            volatility = float(weights @ vols)

        expected = float(weights @ (means * betas + alphas))
        portfolio_beta = float(weights @ betas)
        trend = float(weights @ np.array([self.calculate_trend(r) for r in series]))
        confidence = self._remember_confidence(self.calculate_confidence(trend, volatility))

        if np.all(vols > 0):
            inverse = 1.0 / vols
            allocation = inverse / inverse.sum()
        else:
            allocation = np.full(len(positions), 1.0 / len(positions))

        logging.debug(f"{self.name}: portfolio beta {portfolio_beta:.3f}, vol {volatility:.4f}")

        return PortfolioPrediction(
            expected_return=expected,
            volatility=volatility,
            risk_level=classify_risk_level(volatility),
            confidence=confidence,
            time_horizon=horizon,
            direction=direction_of(expected),
            technical_score=self.calculate_technical_score(trend, volatility),
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            asset_allocation={p.symbol: float(w) for p, w in zip(positions, allocation)},
        )

