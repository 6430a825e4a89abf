"""Random market data generation: prices, spreads, volumes and message mix."""

from __future__ import annotations

import math
import random

_MIN_SPREAD_PCT = 0.0005
_MAX_SPREAD_PCT = 0.002
_QUOTE_PROBABILITY = 0.7
_PRICE_FLOOR = 0.1


class TickGenerator:
    """Produces simulated ticks; seeded from the OS unless ``seed`` is given."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)
        self._spare_normal: float | None = None

    def generate_next_price(
        self, current_price: float, drift: float, volatility: float, dt: float
    ) -> float:
        """Advance a price one step of Geometric Brownian Motion.

        dS = mu * S * dt + sigma * S * sqrt(dt) * N(0, 1). A negative result is
        replaced by 0.1 so the price stays positive.
        """
        normal = self._generate_normal()
        drift_component = drift * current_price * dt
        diffusion_component = volatility * current_price * math.sqrt(dt) * normal
        new_price = current_price + drift_component + diffusion_component
        return _PRICE_FLOOR if new_price < 0.0 else new_price

    def generate_spread(self, price: float) -> float:
        """Return a bid-ask spread between 0.05% and 0.2% of ``price``."""
        spread_pct = _MIN_SPREAD_PCT + self._rng.random() * (_MAX_SPREAD_PCT - _MIN_SPREAD_PCT)
        return price * spread_pct

    def generate_volume(self) -> int:
        """Return a log-uniform volume between 100 and 100,000."""
        log_volume = 2.0 + self._rng.random() * 3.0
        return int(10.0**log_volume)

    def should_generate_quote(self) -> bool:
        """True about 70% of the time (quote), otherwise a trade."""
        return self._rng.random() < _QUOTE_PROBABILITY

    def _generate_normal(self) -> float:
        # Box-Muller transform; the second value is kept for the next call.
        if self._spare_normal is not None:
            spare, self._spare_normal = self._spare_normal, None
            return spare
        u1 = 0.0
        while u1 == 0.0:
            u1 = self._rng.random()
        u2 = self._rng.random()
        radius = math.sqrt(-2.0 * math.log(u1))
        angle = 2.0 * math.pi * u2
        self._spare_normal = radius * math.sin(angle)
        return radius * math.cos(angle)