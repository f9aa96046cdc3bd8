#!/usr/bin/env python3
"""
Trend-following prediction model.

Scores securities by the spread between short and long moving averages,
momentum and volume trend. Deterministic: the same history always gives the
same forecast.
"""

import logging
import math
import numpy as np
from typing import Dict, List, Optional, Sequence

from ..exceptions import (
    InsufficientHistoryError, MissingPortfolioError, ValidationError, require_symbol
)
from ..schemas.profiles import ModelType
from .base import (
    PredictionModel, MarketPrediction, SecurityPrediction, PortfolioPrediction,
    Recommendation, calculate_returns, sample_volatility, direction_of
)
from .features import moving_average, moving_averages

MIN_HISTORY = 20
VOLUME_RECENT = 20
VOLUME_PRIOR = 80


class TrendFollowingModel(PredictionModel):
    """
    Moving-average trend forecaster.

    Parameters:
    -----------
    periods : List[int]
        Moving-average windows (default 20/50/100/200)
    """

    model_type = ModelType.TREND_FOLLOWING
    baseline_metrics = {'accuracy': 0.70, 'precision': 0.65, 'recall': 0.68, 'f1_score': 0.66}
    rationale = "Based on moving-average trend, momentum and volume analysis"

    def __init__(self, periods: Optional[List[int]] = None, name: Optional[str] = None):
        self.periods = sorted(periods or [20, 50, 100, 200])
        super().__init__(name)

    # =========================================================================
    # INDICATORS
    # =========================================================================

    def calculate_trend_strength(self, prices: Sequence[float]) -> float:
        """Mean relative spread (MA[p] - MA[2p]) / MA[2p] over windows whose double fits the history."""
        averages = moving_averages(prices, self.periods + [2 * p for p in self.periods])
        spreads = [
            (averages[p] - averages[2 * p]) / averages[2 * p]
            for p in self.periods
            if 2 * p in averages and averages[2 * p] != 0
        ]
        return float(np.mean(spreads)) if spreads else 0.0

    @staticmethod
    def calculate_momentum(prices: Sequence[float]) -> float:
        """(MA20 - MA50) / MA50, with the long window shortened to the history."""
        short = moving_average(prices, min(20, len(prices)))
        long = moving_average(prices, min(50, len(prices)))
        return (short - long) / long if long != 0 else 0.0

    @staticmethod
    def calculate_volume_trend(volumes: Optional[Sequence[float]]) -> float:
        """Relative change of the last 20 volumes against up to 80 before them."""
        if volumes is None or len(volumes) <= VOLUME_RECENT:
            return 0.0
        volumes = np.asarray(volumes, dtype=float)
        recent = volumes[-VOLUME_RECENT:]
        prior = volumes[:-VOLUME_RECENT][-VOLUME_PRIOR:]
        prior_mean = prior.mean()
        if prior_mean == 0:
            return 0.0
        return float((recent.mean() - prior_mean) / prior_mean)

    @staticmethod
    def volatility_score(volatility: float) -> int:
        if volatility < 0.1:
            return 1
        if volatility < 0.2:
            return 2
        return 3

    @staticmethod
    def trend_score(trend: float) -> int:
        if trend > 0.1:
            return 1
        if trend < -0.1:
            return 3
        return 2

    def calculate_risk_level(self, volatility: float, trend: float) -> int:
        return int(math.ceil((self.volatility_score(volatility) + self.trend_score(trend)) / 2))

    @staticmethod
    def calculate_confidence(trend: float, volatility: float, volume_trend: float) -> float:
        scores = [
            0.8 if trend > 0 else 0.2,
            1 - volatility,
            0.8 if volume_trend > 0 else 0.2,
        ]
        return float(np.clip(np.mean(scores), 0.0, 1.0))

    @staticmethod
    def expected_return(trend: float, volatility: float, volume_trend: float) -> float:
        return trend * 0.01 * (1 - volatility / 0.2) * (1 + 0.5 * volume_trend)

    def _analyze(self, prices: Sequence[float], volumes: Optional[Sequence[float]] = None) -> Dict[str, float]:
        if len(prices) < MIN_HISTORY:
            raise InsufficientHistoryError(MIN_HISTORY, len(prices))
        volatility = sample_volatility(calculate_returns(prices))
        trend = self.calculate_trend_strength(prices)
        momentum = self.calculate_momentum(prices)
        volume_trend = self.calculate_volume_trend(volumes)
        return {
            'volatility': volatility,
            'trend': trend,
            'momentum': momentum,
            'volume_trend': volume_trend,
            'expected_return': self.expected_return(trend, volatility, volume_trend),
            'technical_score': (trend + momentum + volume_trend) / 3,
            'risk_level': self.calculate_risk_level(volatility, trend),
            'confidence': self.calculate_confidence(trend, volatility, volume_trend),
        }

    # =========================================================================
    # FORECASTS
    # =========================================================================

    def predict_market(self, prices: Sequence[float],
                       economic_context: Optional[Dict[str, float]] = None,
                       horizon: int = 1) -> MarketPrediction:
        a = self._analyze(prices)
        self._remember_confidence(a['confidence'])
        return MarketPrediction(
            expected_return=a['expected_return'],
            volatility=a['volatility'],
            risk_level=a['risk_level'],
            confidence=a['confidence'],
            time_horizon=horizon,
            direction=direction_of(a['trend']),
            technical_score=a['technical_score'],
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            trend_strength=a['trend'],
            economic_context=dict(economic_context or {}),
        )

    def predict_security(self, symbol: str, prices: Sequence[float],
                         factors: Optional[Dict[str, float]] = None,
                         horizon: int = 1,
                         volumes: Optional[Sequence[float]] = None) -> SecurityPrediction:
        symbol = require_symbol(symbol)
        a = self._analyze(prices, volumes)
        self._remember_confidence(a['confidence'])

        if a['trend'] > 0.1 and a['volatility'] < 0.2:
            action = Recommendation.BUY
        elif a['trend'] < -0.1 or a['volatility'] > 0.3:
            action = Recommendation.SELL
        else:
            action = Recommendation.HOLD

        return SecurityPrediction(
            expected_return=a['expected_return'],
            volatility=a['volatility'],
            risk_level=a['risk_level'],
            confidence=a['confidence'],
            time_horizon=horizon,
            direction=direction_of(a['trend']),
            technical_score=a['technical_score'],
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            symbol=symbol,
            recommendation=action,
        )

    def predict_portfolio(self, portfolio,
                          market_prediction: Optional[MarketPrediction] = None,
                          horizon: int = 1) -> PortfolioPrediction:
        """
        Weight-averaged security trends; allocation tilts toward positive momentum.

        Every position needs at least 20 prices.
        """
        if portfolio is None:
            raise MissingPortfolioError("Portfolio cannot be None")
        positions = list(portfolio.positions.values())
        if not positions:
            raise ValidationError("Portfolio has no positions to forecast")

        weights_by_symbol = portfolio.get_weights()
        weights = np.array([weights_by_symbol[p.symbol] for p in positions])
        total = weights.sum()
        if total > 0:
            weights = weights / total

        analyses = [self._analyze(p.price_history) for p in positions]
        trend = float(weights @ np.array([a['trend'] for a in analyses]))
        volatility = float(weights @ np.array([a['volatility'] for a in analyses]))
        expected = float(weights @ np.array([a['expected_return'] for a in analyses]))
        technical = float(weights @ np.array([a['technical_score'] for a in analyses]))

        tilt = np.array([max(0.0, 1 + a['momentum']) for a in analyses])
        if tilt.sum() > 0:
            allocation = tilt / tilt.sum()
        else:
            allocation = np.full(len(positions), 1.0 / len(positions))

        confidence = self._remember_confidence(self.calculate_confidence(trend, volatility, 0.0))
        logging.debug(f"{self.name}: portfolio trend {trend:.4f} over {len(positions)} positions")

        return PortfolioPrediction(
            expected_return=expected,
            volatility=volatility,
            risk_level=self.calculate_risk_level(volatility, trend),
            confidence=confidence,
            time_horizon=horizon,
            direction=direction_of(trend),
            technical_score=technical,
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            asset_allocation={p.symbol: float(w) for p, w in zip(positions, allocation)},
        )
