#!/usr/bin/env python3
"""Configuration surface: strategy enums and investor profiles."""

from typing import Dict
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class ModelType(str, Enum):
    """Prediction model variants."""
    STATISTICAL = "statistical"
    TREND_FOLLOWING = "trend_following"
    LEARNED_REGRESSION = "learned_regression"


class WeightingStrategy(str, Enum):
    """Policies for blending model forecasts."""
    EQUAL = "equal"
    PERFORMANCE_BASED = "performance_based"
    MARKET_CONDITION_BASED = "market_condition_based"
    VOLATILITY_BASED = "volatility_based"
    CONFIDENCE_BASED = "confidence_based"


class RebalancingStrategyType(str, Enum):
    """Rebalancing threshold policies."""
    TIME_BASED = "time_based"
    THRESHOLD_BASED = "threshold_based"
    MARKET_CONDITION_BASED = "market_condition_based"
    VOLATILITY_BASED = "volatility_based"
    RISK_BASED = "risk_based"


class RiskProfile(BaseModel):
    """Investor risk preferences. risk_tolerance is on a 0-100 scale."""
    name: str = Field(default="default", description="Profile name")
    risk_tolerance: float = Field(
        default=50.0, ge=0, le=100, description="Risk tolerance (0 = none, 100 = maximum)"
    )

    @property
    def tolerance_fraction(self) -> float:
        """Risk tolerance scaled to [0, 1]."""
        return self.risk_tolerance / 100.0


class TaxProfile(BaseModel):
    """Tax rates per income category and holding-period rules."""
    short_term_rate: float = Field(default=0.25, ge=0, le=1, description="Short-term capital gains rate")
    long_term_rate: float = Field(default=0.15, ge=0, le=1, description="Long-term capital gains rate")
    dividend_rate: float = Field(default=0.15, ge=0, le=1, description="Dividend income rate")
    interest_rate: float = Field(default=0.25, ge=0, le=1, description="Interest income rate")
    default_rate: float = Field(default=0.15, ge=0, le=1, description="Rate used when there is no taxable income")
    short_term_holding_months: int = Field(default=1, ge=0, description="Minimum holding period tracked (months)")
    long_term_threshold_months: int = Field(default=12, gt=0, description="Holding period for long-term treatment")
    wash_sale_days: int = Field(default=30, ge=0, description="Wash-sale look-back period in days")
    wash_sale_window_days: int = Field(default=60, ge=0, description="Total wash-sale window in days")

    @field_validator('long_term_threshold_months')
    @classmethod
    def validate_threshold(cls, v: int, info) -> int:
        short = info.data.get('short_term_holding_months', 0)
        if v <= short:
            raise ValueError("long_term_threshold_months must exceed short_term_holding_months")
        return v

    def rates(self) -> Dict[str, float]:
        """Rates keyed by income category."""
        return {
            'short_term_gains': self.short_term_rate,
            'long_term_gains': self.long_term_rate,
            'dividends': self.dividend_rate,
            'interest': self.interest_rate,
        }


class TransactionCostProfile(BaseModel):
    """Fee schedule by instrument category, liquidity and market-impact bucket."""
    fee_rates: Dict[str, float] = Field(
        default_factory=lambda: {'equities': 0.001, 'bonds': 0.0005, 'etfs': 0.0005, 'options': 0.002},
        description="Transaction fee rate per instrument category"
    )
    slippage_rates: Dict[str, float] = Field(
        default_factory=lambda: {'high': 0.0005, 'medium': 0.001, 'low': 0.002},
        description="Slippage rate per liquidity (volume) bucket"
    )
    market_impact_rates: Dict[str, float] = Field(
        default_factory=lambda: {'high': 0.001, 'medium': 0.0005, 'low': 0.0002},
        description="Market impact rate per impact bucket"
    )
    min_transaction_amount: float = Field(default=1000.0, ge=0, description="Smallest trade worth executing")
    max_cost_rate: float = Field(default=0.01, gt=0, le=1, description="Maximum acceptable cost as a fraction of value")

    @field_validator('fee_rates', 'slippage_rates', 'market_impact_rates')
    @classmethod
    def validate_rates(cls, v: Dict[str, float]) -> Dict[str, float]:
        for key, rate in v.items():
            if rate < 0 or rate > 1:
                raise ValueError(f"Rate for '{key}' must be in [0, 1], got {rate}")
        return v

    def fee_rate(self, category: str) -> float:
        return self.fee_rates.get(category, self.fee_rates.get('equities', 0.0))

    def slippage_rate(self, bucket: str) -> float:
        return self.slippage_rates.get(bucket, 0.0)

    def impact_rate(self, bucket: str) -> float:
        return self.market_impact_rates.get(bucket, 0.0)
