#!/usr/bin/env python3
"""
Ensemble predictor.

Runs every registered model at each forecast level, blends them with weights
from ModelWeightCalculator, and combines the market, security and portfolio
forecasts into one signal. Optionally trains a regression combiner on
historical feature vectors and backtests it against portfolio snapshots.
"""

import logging
import numpy as np
import pandas as pd
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Any

from ..cancellation import check_cancelled
from ..config.system_config import EngineConfig
from ..engine.providers import HistoricalPortfolioProvider
from ..exceptions import (
    InsufficientHistoryError, MissingPortfolioError, TrainingError,
    ValidationError, require_same_length, require_symbol
)
from ..models.base import (
    PredictionModel, Prediction, MarketPrediction, SecurityPrediction, PortfolioPrediction,
    Direction, direction_of, directional_accuracy
)
from ..models.learned import SklearnRegressionEstimator, TrainableEstimator, regression_metrics
from ..models.registry import create_default_models
from ..schemas.profiles import ModelType, WeightingStrategy
from .weighting import ModelWeightCalculator

FEATURE_NAMES = [
    'market_expected_return', 'market_confidence', 'market_volatility',
    'security_expected_return', 'security_confidence', 'security_volatility',
    'portfolio_expected_return', 'portfolio_confidence', 'portfolio_risk_level',
    'portfolio_value', 'diversification_score',
]


@dataclass
class EnsemblePrediction:
    """Single blended signal from market, security and portfolio forecasts."""
    expected_return: float
    confidence: float
    risk_level: float
    diversification_score: float
    technical_score: float
    component_weights: Dict[str, float]
    market: MarketPrediction
    securities: Dict[str, SecurityPrediction]
    portfolio: PortfolioPrediction
    combiner_score: Optional[float] = None

    @property
    def direction(self) -> Direction:
        return direction_of(self.expected_return)


@dataclass
class EnsembleTrainingSample:
    """Sub-model forecasts on one date and the return realized afterwards."""
    market: MarketPrediction
    securities: Dict[str, SecurityPrediction]
    portfolio: PortfolioPrediction
    portfolio_value: float
    actual_return: float


@dataclass
class EnsembleBacktestResult:
    portfolio_id: str
    start: pd.Timestamp
    end: pd.Timestamp
    records: pd.DataFrame
    metrics: Dict[str, float] = field(default_factory=dict)
    stop_reason: str = 'end_of_period'


class EnsemblePredictor:
    """
    Weighted ensemble over PredictionModel variants.

    Parameters:
    -----------
    models : Dict[ModelType, PredictionModel], optional
        Participating models (default: one of each variant)
    config : EngineConfig, optional
        Weighting strategy, component weights and horizon settings
    weight_calculator : ModelWeightCalculator, optional
    combiner : TrainableEstimator, optional
        Regression combiner fitted by train()
    """

    def __init__(self,
                 models: Optional[Dict[ModelType, PredictionModel]] = None,
                 config: Optional[EngineConfig] = None,
                 weight_calculator: Optional[ModelWeightCalculator] = None,
                 combiner: Optional[TrainableEstimator] = None):
        self.config = config or EngineConfig()
        self.models = dict(models) if models is not None else create_default_models(self.config)
        if not self.models:
            raise ValidationError("EnsemblePredictor needs at least one model")
        self.weight_calculator = weight_calculator or ModelWeightCalculator(self.config.base_model_weights)
        self.strategy = WeightingStrategy(self.config.weighting_strategy)
        self.combiner = combiner or SklearnRegressionEstimator(alpha=self.config.ridge_alpha)
        self.combiner_trained = False
        self.training_metrics: Dict[str, Dict[str, float]] = {}
        logging.info(f"EnsemblePredictor initialized with {len(self.models)} models, "
                     f"strategy={self.strategy.value}")

    # =========================================================================
    # MODEL BLENDING
    # =========================================================================

    def get_model_weights(self, economic_context: Optional[Dict[str, float]] = None) -> Dict[ModelType, float]:
        metrics = {t: m.get_performance_metrics() for t, m in self.models.items()}
        return self.weight_calculator.calculate_weights(self.strategy, metrics, economic_context)

    def _run_models(self, level: str, economic_context: Optional[Dict[str, float]], run) -> Dict[ModelType, Any]:
        """
        Call `run(model)` on every model; models that fail validation are skipped.

        Returns predictions keyed by model type. If every model fails the
        last validation error is re-raised.
        """
        predictions = {}
        last_error = None
        for model_type, model in self.models.items():
            try:
                predictions[model_type] = run(model)
            except ValidationError as e:
                logging.debug(f"Ensemble {level}: skipping {model_type.value}: {e}")
                last_error = e
        if not predictions:
            raise last_error
        return predictions

    def _blend_weights(self, predictions: Dict[ModelType, Prediction],
                       economic_context: Optional[Dict[str, float]]) -> Dict[ModelType, float]:
        weights = self.get_model_weights(economic_context)
        subset = {t: weights.get(t, 0.0) for t in predictions}
        total = sum(subset.values())
        if total <= 0:
            return {t: 1.0 / len(subset) for t in subset}
        return {t: w / total for t, w in subset.items()}

    @staticmethod
    def _weighted(predictions: Dict[ModelType, Prediction], weights: Dict[ModelType, float], attr: str) -> float:
        return float(sum(weights[t] * (getattr(p, attr) or 0.0) for t, p in predictions.items()))

    def _blend_common(self, predictions, weights) -> Dict[str, Any]:
        expected = self._weighted(predictions, weights, 'expected_return')
        return dict(
            expected_return=expected,
            volatility=self._weighted(predictions, weights, 'volatility'),
            risk_level=int(round(self._weighted(predictions, weights, 'risk_level'))),
            confidence=self._weighted(predictions, weights, 'confidence'),
            direction=direction_of(expected),
            technical_score=self._weighted(predictions, weights, 'technical_score'),
            model_weights={t.value: w for t, w in weights.items()},
        )

    def predict_market(self, prices: Sequence[float],
                       economic_context: Optional[Dict[str, float]] = None,
                       horizon: Optional[int] = None) -> MarketPrediction:
        """Weighted blend of every model's market forecast."""
        horizon = horizon or self.config.prediction_horizon_days
        predictions = self._run_models(
            'market', economic_context, lambda m: m.predict_market(prices, economic_context, horizon))
        weights = self._blend_weights(predictions, economic_context)
        return MarketPrediction(
            time_horizon=horizon,
            trend_strength=self._weighted(predictions, weights, 'trend_strength'),
            economic_context=dict(economic_context or {}),
            **self._blend_common(predictions, weights),
        )

    def predict_security(self, symbol: str, prices: Sequence[float],
                         factors: Optional[Dict[str, float]] = None,
                         horizon: Optional[int] = None,
                         volumes: Optional[Sequence[float]] = None) -> SecurityPrediction:
        """Weighted blend of security forecasts; the recommendation is a weighted vote."""
        symbol = require_symbol(symbol)
        horizon = horizon or self.config.prediction_horizon_days
        predictions = self._run_models(
            'security', factors,
            lambda m: m.predict_security(symbol, prices, factors, horizon, volumes))
        weights = self._blend_weights(predictions, factors)

        votes = defaultdict(float)
        for model_type, prediction in predictions.items():
            votes[prediction.recommendation] += weights[model_type]
        recommendation = max(sorted(votes), key=lambda action: votes[action])

        return SecurityPrediction(
            time_horizon=horizon,
            symbol=symbol,
            recommendation=recommendation,
            **self._blend_common(predictions, weights),
        )

    def predict_portfolio(self, portfolio,
                          market_prediction: Optional[MarketPrediction] = None,
                          horizon: Optional[int] = None) -> PortfolioPrediction:
        """Weighted blend of portfolio forecasts and their asset allocations."""
        if portfolio is None:
            raise MissingPortfolioError("Portfolio cannot be None")
        horizon = horizon or self.config.prediction_horizon_days
        context = self._regime(market_prediction)
        predictions = self._run_models(
            'portfolio', context, lambda m: m.predict_portfolio(portfolio, market_prediction, horizon))
        weights = self._blend_weights(predictions, context)

        allocation = defaultdict(float)
        for model_type, prediction in predictions.items():
            for symbol, w in prediction.asset_allocation.items():
                allocation[symbol] += weights[model_type] * w
        total = sum(allocation.values())
        if total > 0:
            allocation = {s: w / total for s, w in allocation.items()}

        return PortfolioPrediction(
            time_horizon=horizon,
            asset_allocation=dict(allocation),
            diversification_score=self._weighted(predictions, weights, 'diversification_score'),
            **self._blend_common(predictions, weights),
        )

    @staticmethod
    def _regime(market_prediction: Optional[MarketPrediction]) -> Dict[str, float]:
        """Economic context of a market forecast, with its volatility and trend filled in."""
        if market_prediction is None:
            return {}
        context = dict(market_prediction.economic_context)
        context.setdefault('volatility', market_prediction.volatility)
        context.setdefault('trend_strength', market_prediction.trend_strength)
        return context

    # =========================================================================
    # COMBINATION
    # =========================================================================

    def combine(self, market: MarketPrediction,
                securities: Dict[str, SecurityPrediction],
                portfolio_prediction: PortfolioPrediction,
                portfolio_value: Optional[float] = None) -> EnsemblePrediction:
        """
        Blend the three forecast levels with the market/security/portfolio weight triple.

        Parameters:
        -----------
        market : MarketPrediction
        securities : Dict[str, SecurityPrediction]
            Per-symbol forecasts; when empty the security weight is
            redistributed to market and portfolio (equally when both
            of their weights are zero)
        portfolio_prediction : PortfolioPrediction
        portfolio_value : float, optional
            Used only when a trained combiner scores the feature vector

        Returns:
        --------
        EnsemblePrediction
        """
        weights = self.config.get_component_weights()
        if not securities:
            remaining = weights['market'] + weights['portfolio']
            if remaining > 0:
                weights = {'market': weights['market'] / remaining,
                           'security': 0.0,
                           'portfolio': weights['portfolio'] / remaining}
            else:
                logging.warning("No security forecasts and zero market/portfolio weight; "
                                "splitting the signal equally between market and portfolio")
                weights = {'market': 0.5, 'security': 0.0, 'portfolio': 0.5}

        security_list = list(securities.values())

        def security_mean(attr):
            if not security_list:
                return 0.0
            return float(np.mean([getattr(p, attr) or 0.0 for p in security_list]))

        def blend(market_value, security_value, portfolio_value_):
            return (weights['market'] * market_value
                    + weights['security'] * security_value
                    + weights['portfolio'] * portfolio_value_)

        expected = blend(market.expected_return, security_mean('expected_return'),
                         portfolio_prediction.expected_return)
        confidence = blend(market.confidence, security_mean('confidence'), portfolio_prediction.confidence)
        risk_level = blend(market.risk_level, security_mean('risk_level'), portfolio_prediction.risk_level)
        diversification = (weights['security'] * security_mean('diversification_score')
                           + weights['portfolio'] * portfolio_prediction.diversification_score)
        technical = (weights['security'] * security_mean('technical_score')
                     + weights['portfolio'] * (portfolio_prediction.technical_score or 0.0))

        combiner_score = None
        if self.combiner_trained and portfolio_value is not None:
            features = self.build_feature_vector(market, securities, portfolio_prediction, portfolio_value)
            combiner_score = float(self.combiner.predict(features.reshape(1, -1))[0])
            expected = combiner_score

        return EnsemblePrediction(
            expected_return=float(expected),
            confidence=float(np.clip(confidence, 0.0, 1.0)),
            risk_level=float(risk_level),
            diversification_score=float(diversification),
            technical_score=float(technical),
            component_weights=weights,
            market=market,
            securities=dict(securities),
            portfolio=portfolio_prediction,
            combiner_score=combiner_score,
        )

    def predict(self, market_prices: Sequence[float], portfolio,
                economic_context: Optional[Dict[str, float]] = None,
                horizon: Optional[int] = None) -> EnsemblePrediction:
        """Full pipeline: market, every held security, portfolio, then combine."""
        if portfolio is None:
            raise MissingPortfolioError("Portfolio cannot be None")
        market = self.predict_market(market_prices, economic_context, horizon)
        securities = {}
        for symbol, position in portfolio.positions.items():
            try:
                securities[symbol] = self.predict_security(symbol, position.price_history, economic_context, horizon)
            except InsufficientHistoryError as e:
                logging.debug(f"Ensemble: no security forecast for {symbol}: {e}")
        portfolio_prediction = self.predict_portfolio(portfolio, market, horizon)
        return self.combine(market, securities, portfolio_prediction, portfolio.total_value)

    @staticmethod
    def build_feature_vector(market: MarketPrediction,
                             securities: Dict[str, SecurityPrediction],
                             portfolio_prediction: PortfolioPrediction,
                             portfolio_value: float) -> np.ndarray:
        """Fixed-length vector ordered as FEATURE_NAMES; security features are averaged."""
        security_list = list(securities.values())
        if security_list:
            security = [float(np.mean([p.expected_return for p in security_list])),
                        float(np.mean([p.confidence for p in security_list])),
                        float(np.mean([p.volatility for p in security_list]))]
        else:
            security = [0.0, 0.0, 0.0]
        return np.array([
            market.expected_return, market.confidence, market.volatility,
            *security,
            portfolio_prediction.expected_return, portfolio_prediction.confidence,
            float(portfolio_prediction.risk_level),
            float(portfolio_value), portfolio_prediction.diversification_score,
        ], dtype=float)

    # =========================================================================
    # TRAINING AND EVALUATION
    # =========================================================================

    def train(self, samples: List[EnsembleTrainingSample],
              holdout_fraction: Optional[float] = None,
              cancel_token=None) -> Dict[str, Any]:
        """
        Fit the regression combiner on chronologically ordered samples.

        The last `holdout_fraction` of samples is held out and scored.
        Estimator failures raise TrainingError; no retry is attempted.

        Returns:
        --------
        Dict with status, sample counts and 'training'/'holdout' metric dicts
        """
        if holdout_fraction is None:
            holdout_fraction = self.config.holdout_fraction
        if not 0 <= holdout_fraction < 1:
            raise ValidationError(f"holdout_fraction must be in [0, 1), got {holdout_fraction}")
        if len(samples) < 2:
            raise InsufficientHistoryError(2, len(samples), "training samples")

        rows = []
        for sample in samples:
            check_cancelled(cancel_token, "ensemble feature extraction")
            rows.append(self.build_feature_vector(sample.market, sample.securities,
                                                  sample.portfolio, sample.portfolio_value))
        X = np.vstack(rows)
        y = np.array([s.actual_return for s in samples], dtype=float)

        n_holdout = int(len(samples) * holdout_fraction)
        n_train = len(samples) - n_holdout
        if n_train < 2:
            raise InsufficientHistoryError(2, n_train, "training samples after holdout")

        check_cancelled(cancel_token, "ensemble training")
        try:
            self.combiner.fit(X[:n_train], y[:n_train])
            fitted = np.asarray(self.combiner.predict(X[:n_train]), dtype=float)
            held = np.asarray(self.combiner.predict(X[n_train:]), dtype=float) if n_holdout else None
        except Exception as e:
            raise TrainingError(f"Ensemble combiner failed to fit {n_train} samples: {e}") from e

        self.combiner_trained = True
        self.training_metrics = {'training': regression_metrics(y[:n_train], fitted)}
        if held is not None:
            self.training_metrics['holdout'] = regression_metrics(y[n_train:], held)

        logging.info(f"Ensemble combiner trained on {n_train} samples ({n_holdout} held out), "
                     f"R2={self.training_metrics['training']['r2']:.4f}")
        return {'status': 'trained', 'training_samples': n_train, 'holdout_samples': n_holdout,
                **self.training_metrics}

    @staticmethod
    def evaluate(predicted: Sequence[float], actual: Sequence[float]) -> Dict[str, float]:
        """
        Error statistics of predicted against realized returns.

        MAPE skips observations whose realized return is zero.
        """
        require_same_length(predicted, actual, "Prediction and actual return counts")
        if len(actual) == 0:
            raise InsufficientHistoryError(1, 0, "predictions")
        predicted = np.asarray(predicted, dtype=float)
        actual = np.asarray(actual, dtype=float)
        errors = actual - predicted
        nonzero = actual != 0
        mape = float(np.mean(np.abs(errors[nonzero] / actual[nonzero])) * 100) if nonzero.any() else 0.0
        metrics = regression_metrics(actual, predicted)
        return {
            'mae': metrics['mae'],
            'rmse': metrics['rmse'],
            'mape': mape,
            'r2': metrics['r2'],
            'explained_variance': metrics['explained_variance'],
            'mean_error': float(errors.mean()),
            'directional_accuracy': directional_accuracy(predicted, actual),
            'count': int(len(actual)),
        }

    # =========================================================================
    # BACKTEST
    # =========================================================================

    def backtest(self, provider: HistoricalPortfolioProvider, portfolio_id: str,
                 start, end, horizon: Optional[int] = None, cancel_token=None) -> EnsembleBacktestResult:
        """
        Replay ensemble forecasts of a portfolio's value over [start, end].

        For each day the market-level ensemble forecasts the portfolio value
        series seen so far; the realized return over the next `horizon` days
        is (last - first) / first. The loop stops normally when the look-back
        window holds fewer than `horizon` snapshots or fewer than two
        look-ahead snapshots remain; the reason is recorded in the result.
        """
        if portfolio_id is None or not str(portfolio_id).strip():
            raise MissingPortfolioError("Portfolio ID cannot be null or empty")
        start, end = pd.Timestamp(start), pd.Timestamp(end)
        if start >= end:
            raise ValidationError("Start date must be before end date")
        horizon = horizon or self.config.prediction_horizon_days

        snapshots = provider.get_historical_portfolio_data(portfolio_id, start, end)
        if not snapshots:
            raise ValidationError(f"No historical data for portfolio {portfolio_id} between "
                                  f"{start.date()} and {end.date()}")
        values = pd.Series({s.date: s.total_value for s in snapshots}).sort_index()

        records = []
        stop_reason = 'end_of_period'
        current = start
        while current <= end:
            check_cancelled(cancel_token, "ensemble backtest")
            lookback = values.loc[current - pd.Timedelta(days=horizon):current]
            if len(lookback) < horizon:
                stop_reason = 'insufficient_lookback'
                break
            ahead = values.loc[current + pd.Timedelta(days=1):current + pd.Timedelta(days=horizon)]
            if len(ahead) < 2:
                stop_reason = 'insufficient_lookahead'
                break

            history = values.loc[:current].to_numpy()
            try:
                forecast = self.predict_market(history, horizon=horizon).expected_return
            except ValidationError as e:
                logging.debug(f"Ensemble backtest {current.date()}: warming up ({e})")
                current += pd.Timedelta(days=1)
                continue

            actual = (ahead.iloc[-1] - ahead.iloc[0]) / ahead.iloc[0]
            records.append({
                'date': current,
                'predicted_return': forecast,
                'actual_return': float(actual),
                'error': float(actual - forecast),
            })
            current += pd.Timedelta(days=1)

        frame = pd.DataFrame(records, columns=['date', 'predicted_return', 'actual_return', 'error'])
        metrics = {}
        if records:
            metrics = self.evaluate(frame['predicted_return'], frame['actual_return'])
        logging.info(f"Ensemble backtest {portfolio_id}: {len(records)} forecasts, stopped: {stop_reason}")
        return EnsembleBacktestResult(portfolio_id=portfolio_id, start=start, end=end,
                                      records=frame, metrics=metrics, stop_reason=stop_reason)
