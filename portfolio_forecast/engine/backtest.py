#!/usr/bin/env python3
"""
Backtesting framework.

Replays the forecasting and rebalancing pipeline one calendar day at a time
for each scenario:

    market data -> ensemble forecasts -> model monitor -> target allocation
    -> rebalancing plan -> simulated execution -> performance sample

Each scenario is driven by its own ScenarioRunner state machine with fully
isolated state, so independent scenarios can run in parallel threads.
"""

import copy
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..cancellation import CancellationToken, check_cancelled
from ..config.system_config import EngineConfig
from ..ensemble.predictor import EnsemblePredictor
from ..exceptions import OperationCancelledError, ValidationError
from ..metrics.performance import information_ratio, sharpe_ratio, simple_return, sortino_ratio
from ..metrics.risk import calculate_cvar, calculate_var, calculate_volatility
from ..models.base import (
    PortfolioPrediction, Recommendation, SecurityPrediction, ValidationData
)
from ..models.features import RSI_PERIOD
from ..models.learned import LearnedRegressionModel, TrainingSample
from ..monitoring.monitor import ModelPerformanceMonitor
from ..optimization.costs import TransactionCostOptimizer
from ..optimization.diversification import DiversificationAnalyzer
from ..optimization.plan import ActionSide
from ..rebalancing.strategy import RebalancingEngine
from ..rebalancing.triggers import RebalancingTrigger
from ..schemas.profiles import (
    RebalancingStrategyType, RiskProfile, TransactionCostProfile
)
from .classification import asset_class_for, execution_instrument_for, liquidity_bucket_for
from .portfolio import Portfolio, Transaction, TransactionType
from .providers import DateLike, EconomicContextProvider, MarketDataProvider

PERFORMANCE_COLUMNS = [
    'date', 'value', 'return', 'cumulative_return', 'volatility', 'sharpe_ratio',
    'sortino_ratio', 'information_ratio', 'drawdown', 'risk_score', 'diversification_score',
]
TRADE_COLUMNS = ['date', 'symbol', 'side', 'quantity', 'price', 'fee', 'net_amount']


class BacktestStatus(Enum):
    """Lifecycle of a scenario run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED_END_OF_DATA = "stopped_end_of_data"
    CANCELLED = "cancelled"


# =============================================================================
# SCENARIO AND RESULT TYPES
# =============================================================================

@dataclass
class BacktestScenario:
    """
    One simulated investor.

    Parameters:
    -----------
    name : str
        Scenario name; also used as the portfolio id
    symbols : List[str]
        Tradable universe
    market_symbol : str
        Index whose history drives the market forecast and benchmark
    risk_profile : RiskProfile
    rebalancing_strategy : RebalancingStrategyType
    trigger : RebalancingTrigger, optional
        Decides on which days the rebalancing engine runs (default: every day)
    currency : str
        Key into EngineConfig.initial_capital
    initial_capital : float, optional
        Overrides the currency default
    cost_profile : TransactionCostProfile, optional
        Used to shade targets by round-trip cost
    """
    name: str
    symbols: List[str]
    market_symbol: str
    risk_profile: RiskProfile = field(default_factory=RiskProfile)
    rebalancing_strategy: RebalancingStrategyType = RebalancingStrategyType.THRESHOLD_BASED
    trigger: Optional[RebalancingTrigger] = None
    currency: str = 'USD'
    initial_capital: Optional[float] = None
    cost_profile: Optional[TransactionCostProfile] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValidationError("Scenario name cannot be empty")
        if not self.symbols:
            raise ValidationError(f"Scenario {self.name} has no symbols")
        if not self.market_symbol or not self.market_symbol.strip():
            raise ValidationError(f"Scenario {self.name} has no market symbol")
        self.rebalancing_strategy = RebalancingStrategyType(self.rebalancing_strategy)


@dataclass
class TradeRecord:
    """An executed simulated trade."""
    date: pd.Timestamp
    symbol: str
    side: ActionSide
    quantity: float
    price: float
    fee: float

    @property
    def net_amount(self) -> float:
        """Cash effect: sale proceeds less fee, or minus purchase cost and fee."""
        gross = self.quantity * self.price
        return gross - self.fee if self.side == ActionSide.SELL else -(gross + self.fee)

    def profit(self, final_price: float) -> float:
        """P&L of the trade marked to `final_price`, net of its fee."""
        move = (final_price - self.price) * self.quantity
        return (move if self.side == ActionSide.BUY else -move) - self.fee


@dataclass
class BacktestState:
    """Mutable state of one scenario; never shared between runners."""
    current_date: pd.Timestamp
    portfolio: Portfolio
    status: BacktestStatus = BacktestStatus.PENDING
    dates: List[pd.Timestamp] = field(default_factory=list)
    market_history: List[float] = field(default_factory=list)
    closes: List[Dict[str, float]] = field(default_factory=list)
    volumes: Dict[str, List[float]] = field(default_factory=dict)
    economic_history: List[Dict[str, float]] = field(default_factory=list)
    values: List[float] = field(default_factory=list)
    samples: List[Dict[str, float]] = field(default_factory=list)
    trades: List[TradeRecord] = field(default_factory=list)
    forecast_log: List[Dict] = field(default_factory=list)
    last_train_index: Optional[int] = None
    steps: int = 0

    def price_history(self, symbol: str) -> List[float]:
        return [c[symbol] for c in self.closes if symbol in c]


@dataclass
class ScenarioResult:
    scenario: BacktestScenario
    status: BacktestStatus
    performance: pd.DataFrame
    trades: List[TradeRecord]
    final_portfolio: Portfolio
    final_prices: Dict[str, float] = field(default_factory=dict)

    def trades_frame(self) -> pd.DataFrame:
        return pd.DataFrame([{
            'date': t.date, 'symbol': t.symbol, 'side': t.side.value, 'quantity': t.quantity,
            'price': t.price, 'fee': t.fee, 'net_amount': t.net_amount,
        } for t in self.trades], columns=TRADE_COLUMNS)


@dataclass
class BacktestResult:
    """Per-scenario results plus statistics aggregated across scenarios."""
    scenarios: List[ScenarioResult]
    overall_performance: Dict[str, float]
    risk_metrics: Dict[str, float]
    trade_metrics: Dict[str, float]

    def summary(self) -> pd.DataFrame:
        """One row per scenario: status, final value, return and risk."""
        rows = []
        for result in self.scenarios:
            perf = result.performance
            last = perf.iloc[-1] if len(perf) else None
            rows.append({
                'scenario': result.scenario.name,
                'status': result.status.value,
                'final_value': last['value'] if last is not None else result.final_portfolio.total_value,
                'cumulative_return': last['cumulative_return'] if last is not None else 0.0,
                'volatility': last['volatility'] if last is not None else 0.0,
                'sharpe_ratio': last['sharpe_ratio'] if last is not None else 0.0,
                'max_drawdown': perf['drawdown'].max() if len(perf) else 0.0,
                'num_trades': len(result.trades),
            })
        return pd.DataFrame(rows).set_index('scenario')

    def export_results(self, output_dir: str) -> List[str]:
        """
        Write CSV files for the summary and each scenario's performance and trades.

        Returns:
        --------
        Paths of the files written
        """
        os.makedirs(output_dir, exist_ok=True)
        paths = []

        path = os.path.join(output_dir, 'backtest_summary.csv')
        self.summary().to_csv(path)
        paths.append(path)

        aggregates = {**{f'performance_{k}': v for k, v in self.overall_performance.items()},
                      **{f'risk_{k}': v for k, v in self.risk_metrics.items()},
                      **{f'trades_{k}': v for k, v in self.trade_metrics.items()}}
        path = os.path.join(output_dir, 'backtest_aggregates.csv')
        pd.Series(aggregates, name='value').to_csv(path, index_label='metric')
        paths.append(path)

        for result in self.scenarios:
            path = os.path.join(output_dir, f'{result.scenario.name}_performance.csv')
            result.performance.to_csv(path, index=False)
            paths.append(path)
            path = os.path.join(output_dir, f'{result.scenario.name}_trades.csv')
            result.trades_frame().to_csv(path, index=False)
            paths.append(path)

        logging.info(f"Exported {len(paths)} backtest files to {output_dir}")
        return paths


# =============================================================================
# SCENARIO RUNNER
# =============================================================================

class ScenarioRunner:
    """
    Day-by-day state machine for one scenario.

    PENDING -> RUNNING -> COMPLETED | STOPPED_END_OF_DATA | CANCELLED.
    Every collaborator that holds state (portfolio, models, trigger) is
    created or copied per runner.
    """

    def __init__(self,
                 scenario: BacktestScenario,
                 start: DateLike,
                 end: DateLike,
                 market_data: MarketDataProvider,
                 economic_context: Optional[EconomicContextProvider] = None,
                 config: Optional[EngineConfig] = None,
                 monitor: Optional[ModelPerformanceMonitor] = None,
                 cancel_token: Optional[CancellationToken] = None):
        self.scenario = scenario
        self.start = pd.Timestamp(start).normalize()
        self.end = pd.Timestamp(end).normalize()
        if self.start > self.end:
            raise ValidationError("Start date must not be after end date")
        self.market_data = market_data
        self.economic_context = economic_context
        self.config = config or EngineConfig()
        self.monitor = monitor
        self.cancel_token = cancel_token
        self.horizon = self.config.default_horizon_days

        self.predictor = EnsemblePredictor(config=self.config)
        self.rebalancing_engine = RebalancingEngine(self.config)
        self.policy = self.rebalancing_engine.get_policy(scenario.rebalancing_strategy)
        self.cost_optimizer = TransactionCostOptimizer(scenario.cost_profile)
        self.diversification = DiversificationAnalyzer()
        self.trigger = copy.deepcopy(scenario.trigger)

        capital = scenario.initial_capital
        if capital is None:
            capital = self.config.initial_capital.get(scenario.currency)
            if capital is None:
                raise ValidationError(f"No initial capital configured for currency {scenario.currency}")
        portfolio = Portfolio(cash=capital, name=scenario.name, portfolio_id=scenario.name)
        self.state = BacktestState(current_date=self.start, portfolio=portfolio)
        self.last_available = market_data.last_available_date()

    @property
    def universe(self) -> List[str]:
        return list(dict.fromkeys(self.scenario.symbols + [self.scenario.market_symbol]))

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def run(self) -> ScenarioResult:
        """Step until a terminal status is reached."""
        logging.info(f"Scenario {self.scenario.name}: running {self.start.date()} -> {self.end.date()}")
        while self.step():
            pass
        logging.info(f"Scenario {self.scenario.name}: {self.state.status.value} after {self.state.steps} "
                     f"trading days, final value {self.state.portfolio.total_value:,.2f}")
        return self.result()

    def step(self) -> bool:
        """
        Process the current calendar day and advance the cursor.

        Returns:
        --------
        False once the scenario reached a terminal status

        Raises OperationCancelledError (after marking the state CANCELLED)
        when the cancellation token fires.
        """
        state = self.state
        if state.status in (BacktestStatus.COMPLETED, BacktestStatus.STOPPED_END_OF_DATA,
                            BacktestStatus.CANCELLED):
            return False
        state.status = BacktestStatus.RUNNING

        try:
            check_cancelled(self.cancel_token, f"backtest {self.scenario.name}")
        except OperationCancelledError:
            state.status = BacktestStatus.CANCELLED
            logging.warning(f"Scenario {self.scenario.name}: cancelled on {state.current_date.date()}")
            raise

        if state.current_date > self.end:
            state.status = BacktestStatus.COMPLETED
            return False
        if self.last_available is None or state.current_date > self.last_available:
            state.status = BacktestStatus.STOPPED_END_OF_DATA
            logging.info(f"Scenario {self.scenario.name}: no data after "
                         f"{self.last_available.date() if self.last_available is not None else 'start'}")
            return False

        today = state.current_date
        bars = self.market_data.get_market_data(today, self.universe)
        if bars and self.scenario.market_symbol in bars:
            self._process_day(today, bars)
        else:
            logging.debug(f"Scenario {self.scenario.name}: no market data on {today.date()}")

        state.current_date = today + pd.Timedelta(days=1)
        return True

    def _process_day(self, today: pd.Timestamp, bars) -> None:
        state = self.state
        state.steps += 1
        previous = state.closes[-1] if state.closes else {}
        closes = dict(previous)
        closes.update({s: bar.close for s, bar in bars.items()})
        state.dates.append(today)
        state.closes.append(closes)
        state.market_history.append(closes[self.scenario.market_symbol])
        for symbol, bar in bars.items():
            state.volumes.setdefault(symbol, []).append(bar.volume)
        context = self.economic_context.get_economic_context(today) if self.economic_context else {}
        state.economic_history.append(context)

        state.portfolio.update_prices({s: p for s, p in closes.items() if s in state.portfolio.positions})

        risk_score = 0.0
        diversification_score = 0.0
        if len(state.market_history) >= self.config.min_history_days:
            self._train_learned_models()
            try:
                ensemble, securities = self._forecast(context)
            except ValidationError as e:
                logging.debug(f"Scenario {self.scenario.name} {today.date()}: no forecast ({e})")
            else:
                risk_score = ensemble.risk_level
                self._update_monitor(today)
                self._rebalance(today, ensemble, securities, closes)
                diversification_score = self.diversification.analyze(
                    state.portfolio, list(securities.values())).score

        self._record_sample(today, risk_score, diversification_score)

    # =========================================================================
    # FORECASTING
    # =========================================================================

    def _train_learned_models(self) -> None:
        """Walk-forward training on realized returns up to today only."""
        state = self.state
        today_index = len(state.market_history) - 1
        if today_index + 1 < self.config.training_window_days:
            return
        if state.last_train_index is not None and \
                today_index - state.last_train_index < self.config.retrain_interval_days:
            return

        learned = [m for m in self.predictor.models.values() if isinstance(m, LearnedRegressionModel)]
        if not learned:
            return

        first = max(self.config.learned_lookback, RSI_PERIOD)
        last = today_index - self.horizon
        indices = list(range(first, last + 1))[-self.config.training_window_days:]
        samples = []
        for i in indices:
            price = state.market_history[i]
            target = (state.market_history[i + self.horizon] - price) / price
            samples.append(TrainingSample(prices=state.market_history[:i + 1], target_return=target,
                                          indicators=state.economic_history[i], horizon=self.horizon))
        if not samples:
            return
        for model in learned:
            model.update(samples, cancel_token=self.cancel_token)
        state.last_train_index = today_index

    def _forecast(self, context: Dict[str, float]):
        """Ensemble forecast of the market, every scenario symbol and the portfolio."""
        state = self.state
        market = self.predictor.predict_market(state.market_history, context, self.horizon)

        securities: Dict[str, SecurityPrediction] = {}
        for symbol in self.scenario.symbols:
            history = state.price_history(symbol)
            try:
                securities[symbol] = self.predictor.predict_security(
                    symbol, history, context, self.horizon, state.volumes.get(symbol))
            except ValidationError as e:
                logging.debug(f"Scenario {self.scenario.name}: no forecast for {symbol} ({e})")

        portfolio = state.portfolio
        if portfolio.positions:
            portfolio_prediction = self.predictor.predict_portfolio(portfolio, market, self.horizon)
        else:
            portfolio_prediction = self._cash_prediction()
        ensemble = self.predictor.combine(market, securities, portfolio_prediction, portfolio.total_value)

        model_forecasts = {}
        for model_type, model in self.predictor.models.items():
            try:
                forecast = model.predict_market(state.market_history, context, self.horizon)
                model_forecasts[model_type] = forecast.expected_return
            except ValidationError:
                continue
        state.forecast_log.append({
            'index': len(state.market_history) - 1,
            'market': model_forecasts,
            'security': {s: p.expected_return for s, p in securities.items()},
            'portfolio': portfolio_prediction.expected_return,
        })
        return ensemble, securities

    def _cash_prediction(self) -> PortfolioPrediction:
        """Forecast for a portfolio holding only cash."""
        return PortfolioPrediction(expected_return=0.0, volatility=0.0, risk_level=1, confidence=1.0,
                                   time_horizon=self.horizon, asset_allocation={}, diversification_score=0.0)

    def _update_monitor(self, today: pd.Timestamp) -> None:
        """Report each model's realized directional accuracy over the recent window."""
        if self.monitor is None:
            return
        state = self.state
        last_index = len(state.market_history) - 1
        realized = [e for e in state.forecast_log if e['index'] + self.horizon <= last_index]
        realized = realized[-self.config.min_history_days:]
        if not realized:
            return

        def forward_return(series, i):
            return (series[i + self.horizon] - series[i]) / series[i] if series[i] else 0.0

        security_pairs = []
        portfolio_pairs = []
        for entry in realized:
            i = entry['index']
            start, finish = state.closes[i], state.closes[i + self.horizon]
            for symbol, predicted in entry['security'].items():
                if symbol in start and symbol in finish:
                    security_pairs.append((predicted, (finish[symbol] - start[symbol]) / start[symbol]))
            if i + self.horizon < len(state.values):
                portfolio_pairs.append((entry['portfolio'], forward_return(state.values, i)))
        if not security_pairs or not portfolio_pairs:
            return

        for model_type, model in self.predictor.models.items():
            market_pairs = [(e['market'][model_type], forward_return(state.market_history, e['index']))
                            for e in realized if model_type in e['market']]
            if not market_pairs:
                continue
            data = ValidationData(
                market_predicted=[p for p, _ in market_pairs],
                market_actual=[a for _, a in market_pairs],
                security_predicted=[p for p, _ in security_pairs],
                security_actual=[a for _, a in security_pairs],
                portfolio_predicted=[p for p, _ in portfolio_pairs],
                portfolio_actual=[a for _, a in portfolio_pairs],
            )
            self.monitor.update_metrics(model_type, model.get_performance_metrics(), model.validate(data),
                                        timestamp=today.to_pydatetime())

    # =========================================================================
    # ALLOCATION AND EXECUTION
    # =========================================================================

    def target_weights(self, class_targets: Dict[str, float],
                       securities: Dict[str, SecurityPrediction]) -> Dict[str, float]:
        """
        Split class targets across scenario symbols by forecast confidence, then shade by cost.

        Symbols with a Sell recommendation get nothing; a class with no
        eligible symbol stays in cash.
        """
        weights = {}
        for asset_class, class_weight in class_targets.items():
            scores = {s: p.confidence for s, p in securities.items()
                      if asset_class_for(s) == asset_class and p.recommendation != Recommendation.SELL
                      and p.confidence > 0}
            total = sum(scores.values())
            if total <= 0:
                continue
            for symbol, score in scores.items():
                estimate = self.cost_optimizer.estimate_cost(symbol, 0.0)
                shading = (1 - estimate.fee_rate) * (1 - estimate.slippage_rate) * (1 - estimate.impact_rate)
                weights[symbol] = class_weight * score / total * shading
        return weights

    def _rebalance(self, today: pd.Timestamp, ensemble, securities: Dict[str, SecurityPrediction],
                   closes: Dict[str, float]) -> None:
        state = self.state
        portfolio = state.portfolio
        class_targets = self.rebalancing_engine.calculate_target_allocation(
            self.scenario.risk_profile, ensemble.market.volatility)

        if self.trigger is not None and not self.trigger.should_rebalance(
                today, portfolio.get_asset_class_weights(), class_targets):
            return

        target = self.target_weights(class_targets, securities)
        actions = self.policy.generate_actions(portfolio, portfolio.get_weights(), target)
        actions = [a for a in actions if abs(a.weight_delta) > self.config.min_trade_threshold]
        if not actions:
            return

        # Sells first so their proceeds fund the buys
        executed = 0
        for action in sorted(actions, key=lambda a: a.side != ActionSide.SELL):
            price = closes.get(action.asset)
            if price is None or price <= 0:
                continue
            if self._execute(today, action.asset, action.side, action.amount, price):
                executed += 1

        if executed and self.trigger is not None:
            self.trigger.record_rebalance(today)
        logging.debug(f"Scenario {self.scenario.name} {today.date()}: executed {executed}/{len(actions)} actions")

    def execution_cost_rate(self, symbol: str) -> float:
        return self.config.get_execution_cost_rate(execution_instrument_for(symbol), liquidity_bucket_for(symbol))

    def _execute(self, today: pd.Timestamp, symbol: str, side: ActionSide, amount: float, price: float) -> bool:
        """Apply one trade with transaction cost, slippage and commission. Returns False if nothing traded."""
        portfolio = self.state.portfolio
        rate = self.execution_cost_rate(symbol)
        quantity = amount / price

        if side == ActionSide.SELL:
            position = portfolio.positions.get(symbol)
            if position is None:
                return False
            quantity = min(quantity, position.quantity)
            transaction_type = TransactionType.SELL
        else:
            quantity = min(quantity, portfolio.cash / (price * (1 + rate)))
            transaction_type = TransactionType.BUY
        if quantity * price < 1e-6:
            return False

        fee = quantity * price * rate
        is_new = symbol not in portfolio.positions
        portfolio.apply_transaction(Transaction(transaction_type, symbol, quantity, price, fee=fee,
                                                timestamp=today.to_pydatetime()))
        if is_new and symbol in portfolio.positions:
            # Positions opened mid-run carry the full observed history
            portfolio.positions[symbol].price_history = self.state.price_history(symbol)
        self.state.trades.append(TradeRecord(today, symbol, side, quantity, price, fee))
        return True

    # =========================================================================
    # PERFORMANCE
    # =========================================================================

    def _record_sample(self, today: pd.Timestamp, risk_score: float, diversification_score: float) -> None:
        state = self.state
        portfolio = state.portfolio
        value = portfolio.record_value(today)
        portfolio.refresh_metrics()
        state.values.append(value)

        values = np.asarray(state.values, dtype=float)
        returns = np.diff(values) / values[:-1] if len(values) > 1 else np.array([])
        market = np.asarray(state.market_history, dtype=float)
        benchmark = np.diff(market) / market[:-1] if len(market) > 1 else np.array([])
        peak = values.max()

        state.samples.append({
            'date': today,
            'value': value,
            'return': float(returns[-1]) if len(returns) else 0.0,
            'cumulative_return': simple_return(portfolio.initial_value, value),
            'volatility': calculate_volatility(returns),
            'sharpe_ratio': sharpe_ratio(returns, self.config.risk_free_rate),
            'sortino_ratio': sortino_ratio(returns, self.config.risk_free_rate),
            'information_ratio': information_ratio(returns, benchmark),
            'drawdown': float((peak - value) / peak) if peak > 0 else 0.0,
            'risk_score': float(risk_score),
            'diversification_score': float(diversification_score),
        })

    def result(self) -> ScenarioResult:
        state = self.state
        return ScenarioResult(
            scenario=self.scenario,
            status=state.status,
            performance=pd.DataFrame(state.samples, columns=PERFORMANCE_COLUMNS),
            trades=list(state.trades),
            final_portfolio=state.portfolio,
            final_prices=dict(state.closes[-1]) if state.closes else {},
        )


# =============================================================================
# FRAMEWORK
# =============================================================================

class BacktestingFramework:
    """
    Runs scenarios over a date range and aggregates their results.

    Parameters:
    -----------
    market_data : MarketDataProvider
    economic_context : EconomicContextProvider, optional
    config : EngineConfig, optional
    monitor : ModelPerformanceMonitor, optional
        Shared by all scenarios (default: a new monitor)
    """

    def __init__(self,
                 market_data: MarketDataProvider,
                 economic_context: Optional[EconomicContextProvider] = None,
                 config: Optional[EngineConfig] = None,
                 monitor: Optional[ModelPerformanceMonitor] = None):
        self.market_data = market_data
        self.economic_context = economic_context
        self.config = config or EngineConfig()
        self.monitor = monitor or ModelPerformanceMonitor(
            retention_hours=self.config.monitor_retention_hours,
            trend_threshold=self.config.trend_change_threshold)
        logging.info("BacktestingFramework initialized")

    def run_backtest(self,
                     scenarios: Sequence[BacktestScenario],
                     start: DateLike,
                     end: DateLike,
                     cancel_token: Optional[CancellationToken] = None,
                     max_workers: Optional[int] = None) -> BacktestResult:
        """
        Run every scenario over [start, end].

        Parameters:
        -----------
        scenarios : Sequence[BacktestScenario]
        start, end : date-like
        cancel_token : CancellationToken, optional
            Checked at every step; cancellation raises OperationCancelledError
        max_workers : int, optional
            Threads for independent scenarios (default from config; 1 = sequential)

        Returns:
        --------
        BacktestResult with scenario results in input order; exported as CSV
        when config.results_directory is set
        """
        if not scenarios:
            raise ValidationError("At least one scenario is required")
        names = [s.name for s in scenarios]
        if len(set(names)) != len(names):
            raise ValidationError("Scenario names must be unique")
        max_workers = max_workers or self.config.max_workers

        runners = [ScenarioRunner(s, start, end, self.market_data, self.economic_context,
                                  self.config, self.monitor, cancel_token) for s in scenarios]
        logging.info(f"Running {len(runners)} scenarios with {max_workers} worker(s)")

        if max_workers <= 1 or len(runners) == 1:
            results = [runner.run() for runner in runners]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(lambda r: r.run(), runners))

        result = BacktestResult(
            scenarios=results,
            overall_performance=self.calculate_overall_performance(results),
            risk_metrics=self.calculate_risk_metrics(results),
            trade_metrics=self.calculate_trade_metrics(results),
        )
        if self.config.results_directory:
            result.export_results(self.config.results_directory)
        return result

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    @staticmethod
    def calculate_overall_performance(results: List[ScenarioResult]) -> Dict[str, float]:
        finals = [r.performance.iloc[-1] for r in results if len(r.performance)]
        if not finals:
            return {'average_return': 0.0, 'average_volatility': 0.0, 'average_sharpe_ratio': 0.0,
                    'average_sortino_ratio': 0.0, 'average_information_ratio': 0.0}
        return {
            'average_return': float(np.mean([f['cumulative_return'] for f in finals])),
            'average_volatility': float(np.mean([f['volatility'] for f in finals])),
            'average_sharpe_ratio': float(np.mean([f['sharpe_ratio'] for f in finals])),
            'average_sortino_ratio': float(np.mean([f['sortino_ratio'] for f in finals])),
            'average_information_ratio': float(np.mean([f['information_ratio'] for f in finals])),
        }

    @staticmethod
    def calculate_risk_metrics(results: List[ScenarioResult], confidence: float = 0.95) -> Dict[str, float]:
        """Drawdowns per scenario and historical VaR/CVaR of the pooled daily returns."""
        frames = [r.performance for r in results if len(r.performance)]
        if not frames:
            return {'max_drawdown': 0.0, 'average_drawdown': 0.0, 'average_volatility': 0.0,
                    'value_at_risk': 0.0, 'conditional_value_at_risk': 0.0}
        # The first sample of each scenario has no prior day
        pooled = np.concatenate([f['return'].to_numpy()[1:] for f in frames])
        return {
            'max_drawdown': float(max(f['drawdown'].max() for f in frames)),
            'average_drawdown': float(np.mean([f['drawdown'].mean() for f in frames])),
            'average_volatility': float(np.mean([f['volatility'].mean() for f in frames])),
            'value_at_risk': calculate_var(pooled, confidence),
            'conditional_value_at_risk': calculate_cvar(pooled, confidence),
        }

    @staticmethod
    def calculate_trade_metrics(results: List[ScenarioResult]) -> Dict[str, float]:
        """Win rate and profit factor of every trade marked to its scenario's final prices."""
        profits = []
        for result in results:
            for trade in result.trades:
                final_price = result.final_prices.get(trade.symbol, trade.price)
                profits.append(trade.profit(final_price))
        gains = sum(p for p in profits if p > 0)
        losses = sum(p for p in profits if p < 0)
        return {
            'total_trades': float(len(profits)),
            'win_rate': sum(1 for p in profits if p > 0) / len(profits) if profits else 0.0,
            'profit_factor': gains / abs(losses) if losses != 0 else 0.0,
            'total_profit': float(gains + losses),
        }
