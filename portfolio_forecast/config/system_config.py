#!/usr/bin/env python3
"""
Engine-level configuration for forecasting, optimization and backtesting.

Groups the constants every component reads:
- Prediction model parameters (market return assumption, MA windows, features)
- Ensemble weighting and combination settings
- Model monitor thresholds and retention
- Risk, rebalancing and backtest execution settings
"""

import json
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional


@dataclass
class EngineConfig:
    """
    Global configuration for the forecasting engine.

    Investor-specific settings (risk tolerance, tax rates, fee schedules)
    live in the pydantic profiles in portfolio_forecast.schemas.
    """

    # ============================================================================
    # Prediction Models
    # ============================================================================
    market_return_assumption: float = 0.01  # Assumed market return used for beta/alpha in the statistical model
    trend_periods: List[int] = field(default_factory=lambda: [20, 50, 100, 200])  # Moving-average windows (days)
    learned_lookback: int = 10              # Number of trailing returns in the learned model's feature vector
    learned_indicators: List[str] = field(default_factory=lambda: [
        'gdp_growth',
        'inflation',
        'interest_rate',
        'volatility',
        'trend_strength',
    ])
    ridge_alpha: float = 1.0                # Regularization for the default regression estimator
    default_horizon_days: int = 1           # Forecast horizon when none is given

    # ============================================================================
    # Ensemble
    # ============================================================================
    base_model_weights: Dict[str, float] = field(default_factory=lambda: {
        'learned_regression': 0.4,
        'statistical': 0.3,
        'trend_following': 0.3,
    })
    market_weight: float = 1.0              # Relative weight of the market forecast in the combined signal
    security_weight: float = 1.0            # Relative weight of the average security forecast
    portfolio_weight: float = 1.0           # Relative weight of the portfolio forecast
    weighting_strategy: str = 'market_condition_based'
    prediction_horizon_days: int = 5        # Window length for the ensemble walk-forward backtest
    holdout_fraction: float = 0.2           # Share of samples held out when training the combiner

    # ============================================================================
    # Model Monitor
    # ============================================================================
    monitor_retention_hours: float = 24.0   # Rolling window for retained metric history
    trend_change_threshold: float = 0.1     # Relative change that counts as improving/deteriorating

    # ============================================================================
    # Risk
    # ============================================================================
    min_risk_level: float = 0.01            # Lower clamp on the target-risk scaling factor
    max_risk_level: float = 0.3             # Upper clamp on the target-risk scaling factor
    max_repair_iterations: int = 100        # Bound on the allocation constraint-repair loop

    # ============================================================================
    # Rebalancing
    # ============================================================================
    rebalance_threshold: float = 0.05       # Base drift threshold (ThresholdBased and inflated policies)
    time_based_threshold: float = 0.01      # Threshold used by the TimeBased policy
    time_period_days: int = 30              # Cadence of the TimeBased policy
    min_transaction_amount: float = 1000.0
    max_transaction_amount: float = 100000.0

    # ============================================================================
    # Backtest Execution
    # ============================================================================
    initial_capital: Dict[str, float] = field(default_factory=lambda: {
        'USD': 100000.0,
        'EUR': 80000.0,
        'GBP': 70000.0,
    })
    transaction_cost_rates: Dict[str, float] = field(default_factory=lambda: {
        'stock': 0.001,
        'etf': 0.0005,
        'index': 0.0001,
    })
    slippage_rates: Dict[str, float] = field(default_factory=lambda: {
        'high': 0.0005,
        'medium': 0.001,
        'low': 0.002,
    })
    commission_rates: Dict[str, float] = field(default_factory=lambda: {
        'stock': 0.001,
        'etf': 0.0005,
        'index': 0.0001,
    })
    min_history_days: int = 20              # Trading days of look-back before predictions start
    training_window_days: int = 60          # Trading days of history before the learned model is trained
    retrain_interval_days: int = 20         # Trading days between walk-forward retrains
    min_trade_threshold: float = 0.01       # Minimum weight change worth trading
    risk_free_rate: float = 0.02            # Annual risk-free rate for Sharpe/Sortino
    max_workers: int = 1                    # Parallel scenarios (1 = sequential)
    results_directory: Optional[str] = None  # run_backtest exports CSVs here when set

    # ============================================================================
    # Validation
    # ============================================================================

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.market_return_assumption == 0:
            raise ValueError("market_return_assumption must be non-zero")

        if not self.trend_periods or any(p <= 0 for p in self.trend_periods):
            raise ValueError(f"trend_periods must be positive, got {self.trend_periods}")
        self.trend_periods = sorted(self.trend_periods)

        if self.learned_lookback < 1:
            raise ValueError(f"learned_lookback must be >= 1, got {self.learned_lookback}")

        if any(w < 0 for w in self.base_model_weights.values()):
            raise ValueError("base_model_weights must be non-negative")

        if min(self.market_weight, self.security_weight, self.portfolio_weight) < 0:
            raise ValueError("Component weights must be non-negative")
        if self.market_weight + self.security_weight + self.portfolio_weight <= 0:
            raise ValueError("At least one component weight must be positive")

        if not 0 <= self.holdout_fraction < 1:
            raise ValueError(f"holdout_fraction must be in [0, 1), got {self.holdout_fraction}")

        if self.prediction_horizon_days < 1:
            raise ValueError(f"prediction_horizon_days must be >= 1, got {self.prediction_horizon_days}")

        if self.monitor_retention_hours <= 0:
            raise ValueError("monitor_retention_hours must be positive")

        if not 0 < self.min_risk_level <= self.max_risk_level:
            raise ValueError(
                f"Require 0 < min_risk_level <= max_risk_level, got "
                f"{self.min_risk_level}, {self.max_risk_level}"
            )

        if self.max_repair_iterations < 1:
            raise ValueError("max_repair_iterations must be >= 1")

        if self.rebalance_threshold < 0 or self.time_based_threshold < 0:
            raise ValueError("Rebalancing thresholds must be non-negative")

        if self.min_transaction_amount > self.max_transaction_amount:
            raise ValueError(
                f"min_transaction_amount ({self.min_transaction_amount}) exceeds "
                f"max_transaction_amount ({self.max_transaction_amount})"
            )

        if self.min_history_days < 2:
            raise ValueError("min_history_days must be >= 2")

        if self.training_window_days <= self.learned_lookback + 1:
            raise ValueError("training_window_days must exceed learned_lookback + 1")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    # ============================================================================
    # Serialization
    # ============================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'EngineConfig':
        """Create EngineConfig from dictionary."""
        return cls(**config_dict)

    @classmethod
    def from_json(cls, filepath: str) -> 'EngineConfig':
        """Load EngineConfig from JSON file."""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        # Keys starting with '_' are comments
        config_dict = {k: v for k, v in config_dict.items() if not k.startswith('_')}
        return cls.from_dict(config_dict)

    def to_json(self, filepath: str, indent: int = 2) -> None:
        """Save EngineConfig to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=indent)

    # ============================================================================
    # Utility Methods
    # ============================================================================

    def get_component_weights(self) -> Dict[str, float]:
        """Market/security/portfolio weights normalized to sum to 1."""
        total = self.market_weight + self.security_weight + self.portfolio_weight
        return {
            'market': self.market_weight / total,
            'security': self.security_weight / total,
            'portfolio': self.portfolio_weight / total,
        }

    def get_execution_cost_rate(self, instrument_type: str, volume_bucket: str) -> float:
        """Combined transaction cost + slippage + commission rate for one trade."""
        instrument = instrument_type.lower()
        return (
            self.transaction_cost_rates.get(instrument, self.transaction_cost_rates.get('stock', 0.0))
            + self.slippage_rates.get(volume_bucket.lower(), self.slippage_rates.get('low', 0.0))
            + self.commission_rates.get(instrument, self.commission_rates.get('stock', 0.0))
        )


DEFAULT_ENGINE_CONFIG = EngineConfig()


def load_engine_config(filepath: str = None) -> EngineConfig:
    """
    Load engine configuration from file or return default.

    Parameters:
    -----------
    filepath : str, optional
        Path to JSON config file. If None, returns default config.

    Returns:
    --------
    EngineConfig instance
    """
    if filepath is None:
        return EngineConfig()
    return EngineConfig.from_json(filepath)
