"""
Purpose: Central configuration for ETA estimation (single source of truth).
What it does:

Stores all tunable constants the estimator and event processor use:

TRAFFIC_MULTIPLIERS = low 1.0 / medium 1.2 / high 1.4

BUFFER_TIMES = 4 min under 5 km, 7 min from 5 km up

RIDER_ASSIGNMENT_WINDOW = 3-5 min

ETA_RANGE = +/- 3 min

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from orders.models import EtaWindow


@dataclass(frozen=True)
class EtaPolicy:
    """
    Central configuration for ETA estimation and event classification.
    """

    # --- Traffic ---
    traffic_multipliers: Dict[str, float] = field(
        default_factory=lambda: {"low": 1.0, "medium": 1.2, "high": 1.4}
    )

    # --- Buffer (packaging, curb time, minor uncertainty) ---
    short_buffer_minutes: int = 4
    long_buffer_minutes: int = 7
    long_distance_km: float = 5.0  # total distance >= this uses the long buffer

    # --- Rider assignment ---
    # Time to find a rider when none is assigned yet; the midpoint is used.
    rider_assignment_min_minutes: int = 3
    rider_assignment_max_minutes: int = 5

    # Without a rider we assume one nearby: rider -> restaurant costs this
    # share of the restaurant -> customer duration.
    unassigned_rider_leg_ratio: float = 0.3

    # --- Restaurant ---
    default_prep_minutes: int = 25  # prep text missing or unparseable
    missing_restaurant_prep_minutes: int = 15
    parallel_capacity: float = 2.5  # orders a kitchen cooks at once
    avg_prep_per_order_minutes: int = 15
    max_load_delay_minutes: int = 30

    # --- Published window ---
    eta_range: int = 3
    min_eta_floor: int = 1
    default_min_eta: int = 25  # conservative answer when estimation fails
    default_max_eta: int = 30

    # --- Last stretch ---
    urban_speed_kmh: float = 30.0
    nearing_drop_threshold_km: float = 0.5
    nearing_drop_min_offset: int = 1
    nearing_drop_max_offset: int = 2

    # --- Event classification (minutes) ---
    expected_acceptance_minutes: float = 2.0
    early_assignment_minutes: float = 2.0
    expected_assignment_minutes: float = 5.0

    @property
    def default_window(self) -> EtaWindow:
        return EtaWindow(min=self.default_min_eta, max=self.default_max_eta)

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        for level in ("low", "medium", "high"):
            if level not in self.traffic_multipliers:
                raise ValueError(f"traffic_multipliers is missing '{level}'")
            if self.traffic_multipliers[level] < 1.0:
                raise ValueError("traffic multipliers must be >= 1.0")

        if self.short_buffer_minutes < 0 or self.long_buffer_minutes < self.short_buffer_minutes:
            raise ValueError("long buffer must be >= short buffer >= 0")

        if self.rider_assignment_min_minutes > self.rider_assignment_max_minutes:
            raise ValueError("rider assignment window is inverted")

        if self.parallel_capacity <= 0:
            raise ValueError("parallel_capacity must be > 0")

        if self.min_eta_floor < 1:
            raise ValueError("min_eta_floor must be >= 1")

        if self.default_min_eta > self.default_max_eta:
            raise ValueError("default ETA window is inverted")

        if self.urban_speed_kmh <= 0:
            raise ValueError("urban_speed_kmh must be > 0")

        if self.early_assignment_minutes > self.expected_assignment_minutes:
            raise ValueError("early assignment threshold must be <= expected assignment time")


def default_eta_policy() -> EtaPolicy:
    """
    Convenience factory for the default policy.
    """
    p = EtaPolicy()
    p.validate()
    return p
