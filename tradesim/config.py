from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping


__all__ = ["SimulationConfig"]


@dataclass(frozen=True)
class SimulationConfig:
    initial_capital: float = 10000.0
    initial_discipline: int = 10
    max_discipline: int = 20
    update_interval: float = 1.0  # seconds between ticks
    initial_bars: int = 250
    atr_period: int = 14
    sma_period: int = 20
    window_margin: int = 5
    equity_history_max_points: int = 500
    max_history_items: int = 200
    max_risk_percent: float = 1.0
    min_atr_sl_multiple: float = 0.5
    min_atr_tp_multiple: float = 1.0
    target_margin: float = 0.01
    history_key: str = "proSimHistory"
    settings_key: str = "proSimSettings"

    @property
    def window_size(self) -> int:
        """Bars retained in the rolling window: enough for both indicators plus margin."""
        return max(self.atr_period + 1, self.sma_period) + self.window_margin

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> SimulationConfig:
        """Validate and construct from a raw config mapping.

        Missing keys take their defaults. Raises ``ValueError`` with a clear
        message on non-numeric or out-of-range values instead of letting
        ``TypeError`` propagate.
        """
        raw = dict(raw or {})
        known = {f.name: f for f in fields(cls)}

        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ValueError(f"unknown simulation config keys: {', '.join(unknown)}")

        values: dict[str, Any] = {}
        for name, f in known.items():
            if name not in raw:
                continue
            default = f.default
            try:
                if isinstance(default, str):
                    values[name] = str(raw[name])
                elif isinstance(default, int):
                    values[name] = int(raw[name])
                else:
                    values[name] = float(raw[name])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"simulation.{name} is not numeric: {raw[name]!r}") from exc

        config = cls(**values)
        config._validate()
        return config

    def _validate(self) -> None:
        if self.initial_capital <= 0:
            raise ValueError("simulation.initial_capital must be > 0")
        if self.max_discipline < 1:
            raise ValueError("simulation.max_discipline must be >= 1")
        if not 1 <= self.initial_discipline <= self.max_discipline:
            raise ValueError(
                f"simulation.initial_discipline must be in [1, {self.max_discipline}]"
            )
        for name in ("atr_period", "sma_period", "initial_bars", "equity_history_max_points", "max_history_items"):
            if getattr(self, name) <= 0:
                raise ValueError(f"simulation.{name} must be > 0")
        if self.window_margin < 0:
            raise ValueError("simulation.window_margin must be >= 0")
        if self.update_interval <= 0:
            raise ValueError("simulation.update_interval must be > 0")
        if self.max_risk_percent <= 0:
            raise ValueError("simulation.max_risk_percent must be > 0")
        if self.target_margin < 0:
            raise ValueError("simulation.target_margin must be >= 0")
