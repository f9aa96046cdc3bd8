#!/usr/bin/env python3
"""
Backtesting framework tests: the scenario state machine, execution,
determinism, cancellation, aggregation and export.
"""

import os

import pandas as pd
import pytest

from portfolio_forecast.cancellation import CancellationToken
from portfolio_forecast.config import EngineConfig
from portfolio_forecast.engine.backtest import (
    PERFORMANCE_COLUMNS, BacktestingFramework, BacktestScenario, BacktestStatus,
    ScenarioResult, ScenarioRunner, TradeRecord
)
from portfolio_forecast.engine.portfolio import Portfolio
from portfolio_forecast.engine.providers import DataFrameMarketDataProvider, StaticEconomicContextProvider
from portfolio_forecast.exceptions import OperationCancelledError, ValidationError
from portfolio_forecast.optimization.plan import ActionSide
from portfolio_forecast.rebalancing import Never, Periodic
from portfolio_forecast.schemas.profiles import ModelType, RebalancingStrategyType, RiskProfile

START = '2024-01-01'
END = '2024-03-15'


def scenario(name='balanced', **kwargs):
    return BacktestScenario(name=name, symbols=['AAA', 'BBB', 'AGG.BOND'], market_symbol='^IDX', **kwargs)


@pytest.fixture
def framework(price_frame):
    return BacktestingFramework(DataFrameMarketDataProvider(price_frame),
                                StaticEconomicContextProvider({'inflation': 0.03}))


# ============================================================================
# Scenario Runs
# ============================================================================

def test_run_completes_with_daily_samples(framework):
    result = framework.run_backtest([scenario()], START, END)
    run = result.scenarios[0]

    assert run.status == BacktestStatus.COMPLETED
    assert list(run.performance.columns) == PERFORMANCE_COLUMNS
    assert len(run.performance) == 75
    assert run.performance['date'].iloc[-1] == pd.Timestamp(END)


def test_no_trading_before_minimum_history(framework):
    run = framework.run_backtest([scenario()], START, END).scenarios[0]

    assert run.trades
    assert min(t.date for t in run.trades) == pd.Timestamp('2024-01-20')
    assert (run.performance['value'].iloc[:19] == 100000.0).all()


def test_positions_follow_class_targets(framework):
    run = framework.run_backtest([scenario(risk_profile=RiskProfile(risk_tolerance=50))], START, END).scenarios[0]
    portfolio = run.final_portfolio

    assert portfolio.portfolio_id == 'balanced'
    assert portfolio.cash >= 0.0
    assert set(portfolio.positions) <= {'AAA', 'BBB', 'AGG.BOND'}
    # Positions opened mid-run carry the observed history from day one
    for position in portfolio.positions.values():
        assert len(position.price_history) == 75


def test_run_stops_at_end_of_data(framework):
    run = framework.run_backtest([scenario()], START, '2024-06-30').scenarios[0]

    assert run.status == BacktestStatus.STOPPED_END_OF_DATA
    assert len(run.performance) == 90


def test_never_trigger_holds_cash(framework):
    run = framework.run_backtest([scenario(trigger=Never())], START, END).scenarios[0]

    assert run.trades == []
    assert run.performance['cumulative_return'].iloc[-1] == 0.0


def test_periodic_trigger_spaces_rebalances(framework):
    trigger = Periodic(period_days=30)
    run = framework.run_backtest([scenario(trigger=trigger)], START, END).scenarios[0]
    dates = sorted({t.date for t in run.trades})

    assert dates[0] == pd.Timestamp('2024-01-20')
    assert all((b - a).days >= 30 for a, b in zip(dates, dates[1:]))
    # The scenario's trigger is copied per run
    assert trigger.last_rebalance_date is None


def test_runs_are_deterministic(price_frame):
    def run():
        framework = BacktestingFramework(DataFrameMarketDataProvider(price_frame))
        return framework.run_backtest([scenario()], START, END).scenarios[0]

    first, second = run(), run()
    pd.testing.assert_frame_equal(first.performance, second.performance)
    assert len(first.trades) == len(second.trades)


def test_parallel_matches_sequential(framework, price_frame):
    scenarios = [scenario('cautious', risk_profile=RiskProfile(risk_tolerance=20)),
                 scenario('bold', risk_profile=RiskProfile(risk_tolerance=80),
                          rebalancing_strategy=RebalancingStrategyType.RISK_BASED)]
    sequential = framework.run_backtest(scenarios, START, END, max_workers=1)
    parallel = BacktestingFramework(DataFrameMarketDataProvider(price_frame),
                                    StaticEconomicContextProvider({'inflation': 0.03})).run_backtest(
        scenarios, START, END, max_workers=2)

    assert [r.scenario.name for r in parallel.scenarios] == ['cautious', 'bold']
    for a, b in zip(sequential.scenarios, parallel.scenarios):
        pd.testing.assert_frame_equal(a.performance, b.performance)


def test_monitor_receives_validation(framework):
    framework.run_backtest([scenario()], START, END)

    current = framework.monitor.get_current_metrics(ModelType.STATISTICAL)
    assert current is not None
    assert current.timestamp.date() <= pd.Timestamp(END).date()
    assert framework.monitor.get_current_metrics(ModelType.LEARNED_REGRESSION) is not None


# ============================================================================
# Cancellation and Validation
# ============================================================================

def test_cancellation_marks_state(price_frame):
    token = CancellationToken()
    runner = ScenarioRunner(scenario(), START, END, DataFrameMarketDataProvider(price_frame), cancel_token=token)
    for _ in range(5):
        runner.step()
    token.cancel("user abort")

    with pytest.raises(OperationCancelledError):
        runner.step()
    assert runner.state.status == BacktestStatus.CANCELLED
    assert runner.step() is False


def test_cancelled_token_stops_framework(framework):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelledError):
        framework.run_backtest([scenario()], START, END, cancel_token=token)


def test_invalid_requests(framework):
    with pytest.raises(ValidationError):
        framework.run_backtest([], START, END)
    with pytest.raises(ValidationError):
        framework.run_backtest([scenario('a'), scenario('a')], START, END)
    with pytest.raises(ValidationError):
        framework.run_backtest([scenario()], END, START)
    with pytest.raises(ValidationError):
        framework.run_backtest([scenario(currency='JPY')], START, END)
    with pytest.raises(ValidationError):
        BacktestScenario(name='empty', symbols=[], market_symbol='^IDX')


def test_initial_capital_by_currency(framework):
    run = framework.run_backtest([scenario(currency='EUR', trigger=Never())], START, END).scenarios[0]
    assert run.performance['value'].iloc[0] == 80000.0


# ============================================================================
# Aggregation and Export
# ============================================================================

def test_trade_metrics_mark_to_final_prices():
    date = pd.Timestamp('2024-01-02')
    result = ScenarioResult(
        scenario=scenario(), status=BacktestStatus.COMPLETED, performance=pd.DataFrame(columns=PERFORMANCE_COLUMNS),
        trades=[TradeRecord(date, 'AAA', ActionSide.BUY, 10, 100.0, 1.0),
                TradeRecord(date, 'AAA', ActionSide.SELL, 5, 100.0, 1.0)],
        final_portfolio=Portfolio(), final_prices={'AAA': 110.0})
    metrics = BacktestingFramework.calculate_trade_metrics([result])

    assert metrics['total_trades'] == 2
    assert metrics['win_rate'] == pytest.approx(0.5)
    assert metrics['profit_factor'] == pytest.approx(99.0 / 51.0)
    assert metrics['total_profit'] == pytest.approx(48.0)


def test_aggregates(framework):
    result = framework.run_backtest([scenario('a'), scenario('b', trigger=Never())], START, END)

    assert result.risk_metrics['max_drawdown'] >= result.risk_metrics['average_drawdown'] >= 0.0
    assert result.risk_metrics['conditional_value_at_risk'] >= result.risk_metrics['value_at_risk']
    assert result.overall_performance['average_return'] == pytest.approx(
        result.scenarios[0].performance['cumulative_return'].iloc[-1] / 2)
    assert result.trade_metrics['total_trades'] == len(result.scenarios[0].trades)


def test_export_results(framework, tmp_path):
    result = framework.run_backtest([scenario()], START, END)
    paths = result.export_results(str(tmp_path / 'out'))

    assert len(paths) == 4
    assert all(os.path.exists(p) for p in paths)
    summary = pd.read_csv(tmp_path / 'out' / 'backtest_summary.csv', index_col='scenario')
    assert summary.loc['balanced', 'num_trades'] == len(result.scenarios[0].trades)
    trades = pd.read_csv(tmp_path / 'out' / 'balanced_trades.csv')
    assert set(trades['side']) <= {'buy', 'sell'}


def test_results_directory_exports_automatically(price_frame, tmp_path):
    out = tmp_path / 'auto'
    framework = BacktestingFramework(DataFrameMarketDataProvider(price_frame),
                                     StaticEconomicContextProvider({'inflation': 0.03}),
                                     EngineConfig(results_directory=str(out)))
    framework.run_backtest([scenario()], START, END)

    assert (out / 'backtest_summary.csv').exists()
    assert (out / 'balanced_performance.csv').exists()
