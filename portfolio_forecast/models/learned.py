#!/usr/bin/env python3
"""
Learned regression prediction model.

Maps a feature vector (trailing returns, economic indicators, technical
indicators, horizon) to an expected return with a trainable estimator.
The estimator is a seam: anything with fit/predict can be plugged in.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Any

from sklearn.linear_model import Ridge
from sklearn.metrics import (
    explained_variance_score, mean_absolute_error, mean_squared_error, r2_score
)
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import MinMaxScaler

from ..cancellation import check_cancelled
from ..exceptions import (
    MissingPortfolioError, ModelNotTrainedError,
    TrainingError, ValidationError, require_symbol
)
from ..metrics.risk import classify_risk_level
from ..schemas.profiles import ModelType
from .base import (
    PredictionModel, MarketPrediction, SecurityPrediction, PortfolioPrediction,
    Recommendation, calculate_returns, sample_volatility, direction_of
)
from .features import build_feature_vector, technical_indicators

DEFAULT_INDICATORS = ['gdp_growth', 'inflation', 'interest_rate', 'volatility', 'trend_strength']


class TrainableEstimator(ABC):
    """Minimal fit/predict contract for the regression backend."""

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray) -> 'TrainableEstimator':
        pass

    @abstractmethod
    def predict(self, X: np.ndarray) -> np.ndarray:
        pass


class SklearnRegressionEstimator(TrainableEstimator):
    """MinMax-scaled ridge regression."""

    def __init__(self, alpha: float = 1.0):
        self.alpha = alpha
        self.pipeline = Pipeline([
            ('scaler', MinMaxScaler()),
            ('ridge', Ridge(alpha=alpha)),
        ])

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'SklearnRegressionEstimator':
        self.pipeline.fit(X, y)
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.pipeline.predict(X)


@dataclass
class TrainingSample:
    """One supervised example: history up to a date and the realized forward return."""
    prices: Sequence[float]
    target_return: float
    indicators: Dict[str, float] = field(default_factory=dict)
    horizon: int = 1


def regression_metrics(actual: Sequence[float], predicted: Sequence[float]) -> Dict[str, float]:
    """R2, MAE, RMSE and explained variance of a regression fit."""
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if len(actual) < 2:
        r2 = 0.0
        explained = 0.0
    else:
        r2 = float(r2_score(actual, predicted))
        explained = float(explained_variance_score(actual, predicted))
    return {
        'r2': r2,
        'mae': float(mean_absolute_error(actual, predicted)),
        'rmse': float(np.sqrt(mean_squared_error(actual, predicted))),
        'explained_variance': explained,
    }


class LearnedRegressionModel(PredictionModel):
    """
    Regression forecaster trained through update().

    Parameters:
    -----------
    estimator : TrainableEstimator, optional
        Regression backend (default SklearnRegressionEstimator)
    lookback : int
        Trailing returns included in each feature vector
    indicator_names : List[str]
        Ordered economic indicators; missing values contribute 0
    """

    model_type = ModelType.LEARNED_REGRESSION
    baseline_metrics = {'accuracy': 0.85, 'precision': 0.80, 'recall': 0.82, 'f1_score': 0.81}
    rationale = "Based on regression over returns, economic and technical features"

    def __init__(self, estimator: Optional[TrainableEstimator] = None,
                 lookback: int = 10,
                 indicator_names: Optional[List[str]] = None,
                 ridge_alpha: float = 1.0,
                 name: Optional[str] = None):
        if lookback < 1:
            raise ValueError(f"lookback must be >= 1, got {lookback}")
        self.estimator = estimator or SklearnRegressionEstimator(alpha=ridge_alpha)
        self.lookback = lookback
        self.indicator_names = list(indicator_names or DEFAULT_INDICATORS)
        self.is_trained = False
        self.training_metrics: Dict[str, float] = {}
        super().__init__(name)

    def build_features(self, prices: Sequence[float],
                       indicators: Optional[Dict[str, float]] = None,
                       horizon: int = 1) -> np.ndarray:
        return build_feature_vector(prices, indicators, self.indicator_names, horizon, self.lookback)

    # =========================================================================
    # TRAINING
    # =========================================================================

    def update(self, training_data: List[TrainingSample], cancel_token=None) -> Dict[str, Any]:
        """
        Fit the estimator on the supplied samples.

        Validation problems (no samples, short histories) propagate as
        ValidationError; estimator failures are wrapped in TrainingError.
        """
        if not training_data:
            raise ValidationError("training_data must contain at least one sample")

        rows = []
        targets = []
        for sample in training_data:
            check_cancelled(cancel_token, f"{self.name} feature extraction")
            rows.append(self.build_features(sample.prices, sample.indicators, sample.horizon))
            targets.append(float(sample.target_return))
        X = np.vstack(rows)
        y = np.asarray(targets)

        check_cancelled(cancel_token, f"{self.name} training")
        try:
            self.estimator.fit(X, y)
            fitted = np.asarray(self.estimator.predict(X), dtype=float)
        except Exception as e:
            raise TrainingError(f"{self.name}: estimator failed to fit {len(y)} samples: {e}") from e

        self.training_metrics = regression_metrics(y, fitted)
        self.is_trained = True
        logging.info(f"{self.name}: trained on {len(y)} samples, R2={self.training_metrics['r2']:.4f}")
        return {'status': 'trained', 'samples': len(y), 'metrics': dict(self.training_metrics)}

    def _require_trained(self):
        if not self.is_trained:
            raise ModelNotTrainedError(f"{self.name} must be trained with update() before predicting")

    def _confidence(self) -> float:
        return self._remember_confidence(float(np.clip(self.training_metrics.get('r2', 0.0), 0.0, 1.0)))

    def _predict_return(self, prices: Sequence[float], indicators: Optional[Dict[str, float]], horizon: int) -> float:
        self._require_trained()
        features = self.build_features(prices, indicators, horizon).reshape(1, -1)
        return float(self.estimator.predict(features)[0])

    # =========================================================================
    # FORECASTS
    # =========================================================================

    def predict_market(self, prices: Sequence[float],
                       economic_context: Optional[Dict[str, float]] = None,
                       horizon: int = 1) -> MarketPrediction:
        expected = self._predict_return(prices, economic_context, horizon)
        technical = technical_indicators(prices)
        volatility = technical['volatility']
        return MarketPrediction(
            expected_return=expected,
            volatility=volatility,
            risk_level=classify_risk_level(volatility),
            confidence=self._confidence(),
            time_horizon=horizon,
            direction=direction_of(expected),
            technical_score=technical['ma_ratio'],
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            trend_strength=technical['ma_ratio'],
            economic_context=dict(economic_context or {}),
        )

    def predict_security(self, symbol: str, prices: Sequence[float],
                         factors: Optional[Dict[str, float]] = None,
                         horizon: int = 1,
                         volumes: Optional[Sequence[float]] = None) -> SecurityPrediction:
        symbol = require_symbol(symbol)
        expected = self._predict_return(prices, factors, horizon)
        technical = technical_indicators(prices)
        volatility = technical['volatility']
        confidence = self._confidence()

        if expected > 0 and confidence >= 0.5:
            action = Recommendation.BUY
        elif expected < 0 and confidence >= 0.5:
            action = Recommendation.SELL
        else:
            action = Recommendation.HOLD

        return SecurityPrediction(
            expected_return=expected,
            volatility=volatility,
            risk_level=classify_risk_level(volatility),
            confidence=confidence,
            time_horizon=horizon,
            direction=direction_of(expected),
            technical_score=technical['ma_ratio'],
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            symbol=symbol,
            recommendation=action,
        )

    def predict_portfolio(self, portfolio,
                          market_prediction: Optional[MarketPrediction] = None,
                          horizon: int = 1) -> PortfolioPrediction:
        """Weight-averaged security forecasts; allocation proportional to positive expected returns."""
        self._require_trained()
        if portfolio is None:
            raise MissingPortfolioError("Portfolio cannot be None")
        positions = list(portfolio.positions.values())
        if not positions:
            raise ValidationError("Portfolio has no positions to forecast")

        context = market_prediction.economic_context if market_prediction is not None else None
        weights_by_symbol = portfolio.get_weights()
        weights = np.array([weights_by_symbol[p.symbol] for p in positions])
        if weights.sum() > 0:
            weights = weights / weights.sum()

        expected = np.array([self._predict_return(p.price_history, context, horizon) for p in positions])
        vols = np.array([sample_volatility(calculate_returns(p.price_history)) for p in positions])
        portfolio_return = float(weights @ expected)
        volatility = float(weights @ vols)

        positive = np.clip(expected, 0.0, None)
        if positive.sum() > 0:
            allocation = positive / positive.sum()
        else:
            allocation = np.full(len(positions), 1.0 / len(positions))

        return PortfolioPrediction(
            expected_return=portfolio_return,
            volatility=volatility,
            risk_level=classify_risk_level(volatility),
            confidence=self._confidence(),
            time_horizon=horizon,
            direction=direction_of(portfolio_return),
            technical_score=None,
            model_type=self.model_type,
            metrics=self.get_performance_metrics(),
            asset_allocation={p.symbol: float(w) for p, w in zip(positions, allocation)},
        )
