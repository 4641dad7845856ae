# examples/sma_crossover.py
"""Trade SMA crosses on a simulated market with ATR-based stops."""
import logging
from pathlib import Path

from tradesim import RiskMethod, Side, SimulationClock, run_simulation
from tradesim.recording import JsonFileBlobStore
from tradesim.sinks import NullRenderSink

log = logging.getLogger(__name__)


class CrossoverTrader(NullRenderSink):
    """
    Opens a position whenever the close crosses the SMA.

    Only one position is held at a time; stops and targets are left to
    the simulation's SL/TP handling.
    """

    def __init__(self, clock: SimulationClock, lots: float = 0.1):
        self.clock = clock
        self.lots = lots
        self.prev_side = None

    def on_indicator(self, name, point) -> None:
        if name != "sma" or not self.clock.is_running:
            return

        close = self.clock.context.market.last_close
        side = Side.BUY if close > point.value else Side.SELL
        crossed = self.prev_side is not None and side != self.prev_side
        self.prev_side = side

        if not crossed or self.clock.positions:
            return

        asset = self.clock.context.asset
        result = self.clock.open_position(side, asset.lots_to_units(self.lots), self.clock.stop_spec(1.5, 3.0))
        log.debug("SMA cross to %s: %s", side.value, result)


if __name__ == "__main__":
    clock = SimulationClock.from_store(JsonFileBlobStore(Path("state")))
    clock.set_risk_method(RiskMethod.ATR)
    clock.render = CrossoverTrader(clock)

    run_simulation(clock, max_ticks=500, log_level="DEBUG")
