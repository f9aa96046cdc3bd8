#!/usr/bin/env python3
"""
Diversification analyzer.

Scores how evenly a portfolio is spread across sectors, regions, market caps
and styles, discounted for correlated and concentrated holdings.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy import stats

from ..engine.portfolio import Portfolio, require_portfolio
from ..metrics.risk import calculate_gini, calculate_herfindahl
from ..models.base import SecurityPrediction
from .allocation import RISK_FACTORS
from .risk import RiskRecommendation, pairwise_correlations

CATEGORY_WEIGHTS = {'sector': 0.3, 'region': 0.3, 'market_cap': 0.2, 'style': 0.2}
MIN_DIVERSIFICATION_SCORE = 0.7
MAX_CONCENTRATION = 0.2
MAX_AVERAGE_CORRELATION = 0.5


@dataclass
class DiversificationResult:
    score: float
    distributions: Dict[str, Dict[str, float]]
    distribution_scores: Dict[str, float]
    correlation: Dict[str, float]
    concentration: Dict[str, float]
    risk: Dict[str, float]
    recommendations: List[RiskRecommendation] = field(default_factory=list)


def distribution_score(distribution: Dict[str, float]) -> float:
    """Shannon entropy normalized by log(category count); fewer than two categories give 0."""
    weights = np.array([w for w in distribution.values() if w > 0])
    if len(distribution) < 2 or len(weights) == 0:
        return 0.0
    return float(stats.entropy(weights) / np.log(len(distribution)))


class DiversificationAnalyzer:
    """Diversification score, supporting metrics and recommendations for one portfolio."""

    def __init__(self, category_weights: Optional[Dict[str, float]] = None):
        self.category_weights = dict(category_weights or CATEGORY_WEIGHTS)

    @staticmethod
    def calculate_distribution(portfolio: Portfolio, attribute: str) -> Dict[str, float]:
        """Share of invested value per tag value (sector, region, market_cap or style)."""
        invested = portfolio.market_value
        distribution: Dict[str, float] = {}
        if invested <= 0:
            return distribution
        for position in portfolio.positions.values():
            key = getattr(position, attribute)
            distribution[key] = distribution.get(key, 0.0) + position.market_value / invested
        return distribution

    def analyze(self, portfolio: Portfolio,
                security_predictions: Sequence[SecurityPrediction] = ()) -> DiversificationResult:
        """
        Full diversification analysis.

        Parameters:
        -----------
        portfolio : Portfolio
        security_predictions : Sequence[SecurityPrediction]
            Forecasts used for pairwise correlations

        Returns:
        --------
        DiversificationResult with score in [0, 1]
        """
        portfolio = require_portfolio(portfolio)
        distributions = {c: self.calculate_distribution(portfolio, c) for c in self.category_weights}
        scores = {c: distribution_score(d) for c, d in distributions.items()}

        correlations = pairwise_correlations(portfolio, security_predictions)
        correlation = {
            'average': float(np.mean(correlations)) if correlations else 0.0,
            'maximum': float(np.max(correlations)) if correlations else 0.0,
            'minimum': float(np.min(correlations)) if correlations else 0.0,
        }

        weights = list(portfolio.get_weights().values())
        concentration = {
            'gini': calculate_gini(weights),
            'herfindahl': calculate_herfindahl(weights),
            'maximum': max(weights) if weights else 0.0,
        }

        total_factor = sum(self.category_weights.values())
        score = sum(scores[c] * w / total_factor for c, w in self.category_weights.items())
        score *= (1 - correlation['average'] * 0.1)
        score *= (1 - concentration['maximum'] * 0.1)
        score = float(np.clip(score, 0.0, 1.0))

        result = DiversificationResult(
            score=score,
            distributions=distributions,
            distribution_scores=scores,
            correlation=correlation,
            concentration=concentration,
            risk=self.risk_metrics(portfolio, correlation['average'], concentration['maximum']),
            recommendations=self.generate_recommendations(score, correlation, concentration),
        )
        logging.info(f"DiversificationAnalyzer: score {score:.3f}, "
                     f"{len(result.recommendations)} recommendations")
        return result

    @staticmethod
    def risk_metrics(portfolio: Portfolio, average_correlation: float, max_concentration: float) -> Dict[str, float]:
        """Asset-class risk adjusted up for correlation and concentration."""
        factors = sum(RISK_FACTORS.values())
        class_weights = portfolio.get_asset_class_weights()
        class_risk = {c: w * RISK_FACTORS.get(c, 0.0) / factors for c, w in class_weights.items()}
        total = sum(class_risk.values())
        total *= (1 + average_correlation * 0.1)
        total *= (1 + max_concentration * 0.1)
        risk = {'total_risk': total,
                'correlation_risk': average_correlation,
                'concentration_risk': max_concentration}
        risk.update({f'{c.lower()}_risk': r for c, r in class_risk.items()})
        return risk

    @staticmethod
    def generate_recommendations(score: float, correlation: Dict[str, float],
                                 concentration: Dict[str, float]) -> List[RiskRecommendation]:
        recommendations = []
        if score < MIN_DIVERSIFICATION_SCORE:
            recommendations.append(RiskRecommendation(
                1, 'diversification', "Holdings are not spread widely enough",
                "Add positions in sectors and regions that are missing or light"))
        if concentration['maximum'] > MAX_CONCENTRATION:
            recommendations.append(RiskRecommendation(
                2, 'concentration', "A single position dominates the portfolio",
                "Trim the largest positions"))
        if correlation['average'] > MAX_AVERAGE_CORRELATION:
            recommendations.append(RiskRecommendation(
                3, 'correlation', "Holdings are highly correlated on average",
                "Add assets that move independently of the current holdings"))
        return recommendations
