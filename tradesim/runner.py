"""
Synchronous entry point: logging setup and an asyncio loop driving a
SimulationClock, with a performance summary logged on shutdown.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from tradesim.clock import SimulationClock
from tradesim.config import SimulationConfig
from tradesim.performance import PerformanceSummary
from tradesim.recording import JsonFileBlobStore


log = logging.getLogger(__name__)


__all__ = [
    "configure_logging",
    "run_simulation",
]


def configure_logging(level: str = "INFO", force: bool = False) -> None:
    """
    Configure root logger with console output.

    By default, this is non-destructive: if the root logger already has handlers,
    it will do nothing (assuming the application has configured logging).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        force: If True, clear existing handlers and force this configuration
    """
    root_logger = logging.getLogger()

    if root_logger.hasHandlers() and not force:
        return

    root_logger.setLevel(level.upper())

    if force:
        root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def _log_summary(clock: SimulationClock) -> None:
    s = clock.summary()
    a = clock.account
    log.info("-" * 70)
    log.info("Capital: %.2f  Equity: %.2f  Discipline: %d", a.capital, a.equity, a.discipline)
    log.info(
        "Trades: %d  Win rate: %.1f%%  Profit factor: %.2f  Max DD: %.2f%%",
        s.total_trades,
        s.win_rate,
        s.profit_factor,
        s.max_drawdown_percent,
    )


def run_simulation(
    clock: Optional[SimulationClock] = None,
    *,
    config: Optional[SimulationConfig] = None,
    store_dir: Optional[Path] = None,
    max_ticks: Optional[int] = None,
    log_level: Optional[str] = None,
    setup_logging: bool = True,
) -> Optional[PerformanceSummary]:
    """
    Run a simulation until it is stopped, interrupted or ``max_ticks`` elapse.

    This is the main synchronous entry point. It owns the asyncio event loop
    that drives the clock.

    Args:
        clock: A pre-built clock. If omitted, one is built from ``config``,
            restoring preferences and history from ``store_dir`` when given.
        config: Simulation configuration used when building the clock.
        store_dir: Directory for the JSON blob store.
        max_ticks: Stop after this many ticks (None = run until stopped).
        log_level: The logging level to configure. Defaults to "INFO".
        setup_logging: If `True`, configures the root logger.

    Returns:
        The final PerformanceSummary, or None if the run failed.
    """
    if setup_logging:
        configure_logging(log_level or "INFO")

    if clock is None:
        if store_dir is not None:
            clock = SimulationClock.from_store(JsonFileBlobStore(store_dir), config)
        else:
            clock = SimulationClock(config)

    log.info("=" * 70)
    log.info("Trading Simulator")
    log.info("=" * 70)

    exit_code = 0
    summary: Optional[PerformanceSummary] = None

    try:
        ticks = asyncio.run(clock.run(max_ticks))
        log.info("Completed %d ticks", ticks)

    except KeyboardInterrupt:
        log.info("")
        log.info("-" * 70)
        log.info("Interrupted by user - shutting down gracefully")

    except Exception as e:
        log.exception("Fatal error in simulation: %s", e)
        exit_code = 1

    finally:
        clock.stop()
        if not exit_code:
            _log_summary(clock)
            summary = clock.summary()
        log.info("=" * 70)
        log.info("Simulation shut down complete")
        log.info("=" * 70)

    if exit_code:
        sys.exit(exit_code)
    return summary
