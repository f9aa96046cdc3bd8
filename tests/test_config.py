#!/usr/bin/env python3
"""
Engine configuration and investor profile tests.
"""

import json
from pathlib import Path

import pytest

import portfolio_forecast
from portfolio_forecast.config import EngineConfig, load_engine_config
from portfolio_forecast.schemas import RiskProfile


def test_defaults():
    config = EngineConfig()
    assert config.trend_periods == [20, 50, 100, 200]
    assert config.initial_capital['USD'] == 100000.0
    assert config.get_component_weights() == {
        'market': pytest.approx(1 / 3), 'security': pytest.approx(1 / 3), 'portfolio': pytest.approx(1 / 3)}


def test_execution_cost_rate():
    config = EngineConfig()
    assert config.get_execution_cost_rate('stock', 'low') == pytest.approx(0.001 + 0.002 + 0.001)
    assert config.get_execution_cost_rate('ETF', 'HIGH') == pytest.approx(0.0005 + 0.0005 + 0.0005)
    # Unknown instruments are priced as stocks
    assert config.get_execution_cost_rate('warrant', 'medium') == pytest.approx(0.001 + 0.001 + 0.001)


@pytest.mark.parametrize('overrides', [
    {'market_return_assumption': 0.0},
    {'trend_periods': [20, -5]},
    {'market_weight': 0.0, 'security_weight': 0.0, 'portfolio_weight': 0.0},
    {'holdout_fraction': 1.0},
    {'min_risk_level': 0.5, 'max_risk_level': 0.3},
    {'min_transaction_amount': 5000.0, 'max_transaction_amount': 1000.0},
    {'training_window_days': 5},
    {'max_workers': 0},
])
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValueError):
        EngineConfig(**overrides)


def test_trend_periods_are_sorted():
    assert EngineConfig(trend_periods=[50, 10]).trend_periods == [10, 50]


@pytest.mark.parametrize('field_name', ['volatility_threshold', 'risk_threshold'])
def test_unused_rebalancing_fields_are_gone(field_name):
    with pytest.raises(TypeError):
        EngineConfig(**{field_name: 0.1})


def test_json_round_trip_skips_comment_keys(tmp_path):
    path = tmp_path / 'engine.json'
    data = EngineConfig(rebalance_threshold=0.08, max_workers=4).to_dict()
    data['_comment'] = 'tuned for weekly rebalancing'
    path.write_text(json.dumps(data))

    loaded = load_engine_config(str(path))
    assert loaded.rebalance_threshold == 0.08
    assert loaded.max_workers == 4
    assert load_engine_config() == EngineConfig()


def test_risk_profile_bounds():
    assert RiskProfile(risk_tolerance=35).tolerance_fraction == pytest.approx(0.35)
    with pytest.raises(ValueError):
        RiskProfile(risk_tolerance=120)


def test_package_modules_carry_script_header():
    package = Path(portfolio_forecast.__file__).parent
    modules = [p for p in package.rglob('*.py') if p.name != '__init__.py']

    assert modules
    missing = [str(p.relative_to(package)) for p in modules
               if p.read_text(encoding='utf-8').splitlines()[0] != '#!/usr/bin/env python3']
    assert missing == []
