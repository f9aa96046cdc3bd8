#!/usr/bin/env python3
"""
Base classes and result types for prediction models.

Every model variant implements the PredictionModel interface, so the
ensemble and the monitor never need to know which variant they hold.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Any

import numpy as np

from ..exceptions import (
    InsufficientHistoryError, ValidationError, require_same_length
)
from ..schemas.profiles import ModelType


class Direction(str, Enum):
    """Forecast direction labels."""
    UP = 'up'
    DOWN = 'down'
    FLAT = 'flat'


class Recommendation(str, Enum):
    """Security action labels."""
    BUY = 'buy'
    SELL = 'sell'
    HOLD = 'hold'


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class PredictionPerformanceMetrics:
    """Classification-style quality metrics reported by a model."""
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    confidence: float
    model_type: Optional[ModelType] = None


@dataclass
class ValidationResult:
    """Per-level accuracy of past forecasts against realized returns."""
    market_accuracy: float
    security_accuracy: float
    portfolio_accuracy: float

    def components(self) -> List[float]:
        return [self.market_accuracy, self.security_accuracy, self.portfolio_accuracy]


@dataclass
class ValidationData:
    """
    Paired predicted/realized returns for each forecast level.

    Each pair of lists must have the same, non-zero length.
    """
    market_predicted: Sequence[float]
    market_actual: Sequence[float]
    security_predicted: Sequence[float]
    security_actual: Sequence[float]
    portfolio_predicted: Sequence[float]
    portfolio_actual: Sequence[float]


@dataclass
class Prediction:
    """Fields shared by market, security and portfolio forecasts."""
    expected_return: float
    volatility: float
    risk_level: int
    confidence: float
    time_horizon: int
    direction: Direction = Direction.FLAT
    technical_score: Optional[float] = None
    model_type: Optional[ModelType] = None
    metrics: Optional[PredictionPerformanceMetrics] = None
    model_weights: Dict[str, float] = field(default_factory=dict)   # Ensemble forecasts only


@dataclass
class MarketPrediction(Prediction):
    trend_strength: float = 0.0
    economic_context: Dict[str, float] = field(default_factory=dict)


@dataclass
class SecurityPrediction(Prediction):
    symbol: str = ''
    recommendation: Recommendation = Recommendation.HOLD
    diversification_score: Optional[float] = None


@dataclass
class PortfolioPrediction(Prediction):
    asset_allocation: Dict[str, float] = field(default_factory=dict)
    diversification_score: float = 0.0
    sector_exposure: Dict[str, float] = field(default_factory=dict)


@dataclass
class PredictionRecommendation:
    """Action suggested for one holding by one model."""
    symbol: str
    action: Recommendation
    confidence: float
    model_type: ModelType
    rationale: str


# =============================================================================
# HELPERS
# =============================================================================

def calculate_returns(prices: Sequence[float]) -> np.ndarray:
    """
    Simple returns r_i = (p[i+1] - p[i]) / p[i].

    Raises InsufficientHistoryError for fewer than two prices and
    ValidationError for non-positive prices.
    """
    prices = np.asarray(prices, dtype=float)
    if len(prices) < 2:
        raise InsufficientHistoryError(2, len(prices))
    if np.any(prices <= 0):
        raise ValidationError("Prices must be positive")
    return np.diff(prices) / prices[:-1]


def sample_volatility(returns: np.ndarray) -> float:
    """Sample standard deviation (ddof=1); 0 for a single observation."""
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns, ddof=1))


def direction_of(value: float) -> Direction:
    if value > 0:
        return Direction.UP
    if value < 0:
        return Direction.DOWN
    return Direction.FLAT


def directional_accuracy(predicted: Sequence[float], actual: Sequence[float],
                         what: str = "returns") -> float:
    """Share of forecasts whose sign matches the realized sign (zero counts as non-negative)."""
    require_same_length(predicted, actual, f"Predicted and actual {what}")
    if len(predicted) == 0:
        raise InsufficientHistoryError(1, 0, f"predicted {what}")
    predicted = np.asarray(predicted, dtype=float) >= 0
    actual = np.asarray(actual, dtype=float) >= 0
    return float(np.mean(predicted == actual))


# =============================================================================
# MODEL INTERFACE
# =============================================================================

class PredictionModel(ABC):
    """
    Abstract base class for prediction model variants.

    Subclasses set `model_type` and `baseline_metrics` and implement the
    three forecast levels. Validation and recommendations are shared.
    """

    model_type: ModelType = None
    baseline_metrics: Dict[str, float] = {}

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.model_type.value
        self.last_validation: Optional[ValidationResult] = None
        self._last_confidence: Optional[float] = None
        logging.info(f"Initialized {self.__class__.__name__}: {self.name}")

    @abstractmethod
    def predict_market(self,
                       prices: Sequence[float],
                       economic_context: Optional[Dict[str, float]] = None,
                       horizon: int = 1) -> MarketPrediction:
        """
        Forecast the market from an index price history.

        Parameters:
        -----------
        prices : Sequence[float]
            Chronological index prices
        economic_context : Dict[str, float], optional
            Indicator name -> value for the forecast date
        horizon : int
            Forecast horizon in days

        Returns:
        --------
        MarketPrediction
        """
        pass

    @abstractmethod
    def predict_security(self,
                         symbol: str,
                         prices: Sequence[float],
                         factors: Optional[Dict[str, float]] = None,
                         horizon: int = 1,
                         volumes: Optional[Sequence[float]] = None) -> SecurityPrediction:
        """Forecast one security from its price (and optional volume) history."""
        pass

    @abstractmethod
    def predict_portfolio(self,
                          portfolio,
                          market_prediction: Optional[MarketPrediction] = None,
                          horizon: int = 1) -> PortfolioPrediction:
        """Forecast a portfolio from its positions' price histories."""
        pass

    def update(self, training_data: Any, cancel_token=None) -> Dict[str, Any]:
        """
        Incorporate new training data.

        Statistical variants recompute everything on each prediction, so the
        default only validates and acknowledges the data.
        """
        if training_data is None:
            raise ValidationError("training_data cannot be None")
        logging.debug(f"{self.name}: update is a no-op for {self.model_type.value}")
        return {'status': 'unchanged', 'model_type': self.model_type.value}

    def get_performance_metrics(self) -> PredictionPerformanceMetrics:
        """Baseline quality metrics; confidence tracks the latest forecast."""
        m = self.baseline_metrics
        confidence = self._last_confidence if self._last_confidence is not None else m['accuracy']
        return PredictionPerformanceMetrics(
            accuracy=m['accuracy'],
            precision=m['precision'],
            recall=m['recall'],
            f1_score=m['f1_score'],
            confidence=confidence,
            model_type=self.model_type,
        )

    def validate(self, validation_data: ValidationData) -> ValidationResult:
        """
        Directional accuracy of past forecasts at each level.

        Raises LengthMismatchError when predicted/actual counts differ and
        InsufficientHistoryError when a level has no observations.
        """
        result = ValidationResult(
            market_accuracy=directional_accuracy(
                validation_data.market_predicted, validation_data.market_actual, "market returns"),
            security_accuracy=directional_accuracy(
                validation_data.security_predicted, validation_data.security_actual, "security returns"),
            portfolio_accuracy=directional_accuracy(
                validation_data.portfolio_predicted, validation_data.portfolio_actual, "portfolio returns"),
        )
        self.last_validation = result
        return result

    def get_recommendations(self, portfolio,
                            market_prediction: Optional[MarketPrediction] = None,
                            horizon: int = 1) -> List[PredictionRecommendation]:
        """One recommendation per position with enough price history."""
        recommendations = []
        for symbol, position in portfolio.positions.items():
            try:
                prediction = self.predict_security(symbol, position.price_history, horizon=horizon)
            except InsufficientHistoryError as e:
                logging.debug(f"{self.name}: no recommendation for {symbol}: {e}")
                continue
            recommendations.append(PredictionRecommendation(
                symbol=symbol,
                action=prediction.recommendation,
                confidence=prediction.confidence,
                model_type=self.model_type,
                rationale=self.rationale,
            ))
        return recommendations

    rationale: str = ""

    def _remember_confidence(self, confidence: float) -> float:
        self._last_confidence = confidence
        return confidence
