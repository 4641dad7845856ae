# tests/conftest.py
import os
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tradesim.config import SimulationConfig
from tradesim.context import SimulationContext
from tradesim.ledger import PositionLedger
from tradesim.marketdata import AssetProfile, Bar, Timeframe
from tradesim.performance import PerformanceTracker
from tradesim.recording import InMemoryBlobStore, TradeHistory


class ScriptedRandom:
    """Random source returning a fixed cycle of draws."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


def make_bar(time=60, open=1.1, high=None, low=None, close=None):
    close = open if close is None else close
    high = max(open, close) if high is None else high
    low = min(open, close) if low is None else low
    return Bar(time=time, open=open, high=high, low=low, close=close)


# Spread-free EURUSD-like asset keeps entry prices equal to the market close.
FLAT_FX = AssetProfile(
    symbol="FLATFX", name="Flat FX", pip_value=0.0001, lot_unit_size=100000,
    price_precision=5, volume_precision=2, min_volume=0.01, default_volume=0.10,
    step_volume=0.01, spread_pips=0.0, volatility_factor=0.00018,
    min_sl_pips=5, min_tp_pips=10, seed_price=1.1, seed_offset=0.005,
)

ONE_MINUTE = Timeframe("1m", "1 Min", 60)


@pytest.fixture
def config():
    return SimulationConfig()


@pytest.fixture
def store():
    return InMemoryBlobStore()


@pytest.fixture
def context(config):
    ctx = SimulationContext(config=config, asset=FLAT_FX, timeframe=ONE_MINUTE)
    bar = make_bar(time=600, open=1.1, close=1.1)
    ctx.market.window.add_bar(bar)
    ctx.market.last_bar = bar
    return ctx


@pytest.fixture
def tracker(config):
    return PerformanceTracker(config)


@pytest.fixture
def history(store):
    return TradeHistory(store)


@pytest.fixture
def session_over():
    return MagicMock()


@pytest.fixture
def ledger(context, tracker, history, session_over):
    return PositionLedger(context, tracker, history, on_session_over=session_over)
