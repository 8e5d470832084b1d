"""
Purpose: Refine coarse lifecycle events into timing-aware subtypes.
What it does:

Holds the business policy "was this on time?" as small decision tables of
timing bands instead of nested conditionals:

acceptance:  elapsed <= 2 min          -> RESTAURANT_ACCEPTED
             otherwise                 -> RESTAURANT_ACCEPTED_LATE (+ delay)

assignment:  elapsed <  2 min          -> RIDER_ASSIGNED_EARLY
             elapsed <= 5 min          -> RIDER_ASSIGNED
             otherwise                 -> RIDER_ASSIGNED_LATE (+ delay)

Rule: pure functions of elapsed minutes and the policy; no stores, no clocks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from orders.models import EtaEventType
from .policy import EtaPolicy


@dataclass(frozen=True)
class TimingBand:
    """
    One row of a decision table. A band matches when elapsed minutes are below
    `upper_minutes` (or equal to it when `upper_inclusive`). A band with no
    upper bound matches everything that reaches it.

    `delay_from` marks late bands: the reported delay is elapsed minus this value.
    """
    event_type: EtaEventType
    upper_minutes: Optional[float] = None
    upper_inclusive: bool = True
    delay_from: Optional[float] = None

    def matches(self, elapsed_minutes: float) -> bool:
        if self.upper_minutes is None:
            return True
        if self.upper_inclusive:
            return elapsed_minutes <= self.upper_minutes
        return elapsed_minutes < self.upper_minutes


@dataclass(frozen=True)
class Classification:
    event_type: EtaEventType
    elapsed_minutes: float
    delay_minutes: int = 0


def acceptance_bands(policy: EtaPolicy) -> Tuple[TimingBand, ...]:
    return (
        TimingBand(EtaEventType.RESTAURANT_ACCEPTED, upper_minutes=policy.expected_acceptance_minutes),
        TimingBand(EtaEventType.RESTAURANT_ACCEPTED_LATE, delay_from=policy.expected_acceptance_minutes),
    )


def assignment_bands(policy: EtaPolicy) -> Tuple[TimingBand, ...]:
    return (
        TimingBand(EtaEventType.RIDER_ASSIGNED_EARLY, upper_minutes=policy.early_assignment_minutes,
                   upper_inclusive=False),
        TimingBand(EtaEventType.RIDER_ASSIGNED, upper_minutes=policy.expected_assignment_minutes),
        TimingBand(EtaEventType.RIDER_ASSIGNED_LATE, delay_from=policy.expected_assignment_minutes),
    )


def classify(elapsed_minutes: float, bands: Sequence[TimingBand]) -> Classification:
    """
    First matching band wins. Late bands carry the excess over their
    expectation, rounded up to whole minutes.
    """
    for band in bands:
        if band.matches(elapsed_minutes):
            delay = 0
            if band.delay_from is not None:
                delay = max(0, math.ceil(elapsed_minutes - band.delay_from))
            return Classification(band.event_type, elapsed_minutes, delay)
    raise ValueError("decision table has no catch-all band")


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes from start to end, never negative."""
    return max(0.0, (end - start).total_seconds() / 60)


def classify_acceptance(created_at: datetime, accepted_at: datetime, policy: EtaPolicy) -> Classification:
    return classify(minutes_between(created_at, accepted_at), acceptance_bands(policy))


def classify_assignment(reference_at: datetime, assigned_at: datetime, policy: EtaPolicy) -> Classification:
    """
    `reference_at` is when the restaurant accepted the order, or its creation
    time when acceptance was never recorded.
    """
    return classify(minutes_between(reference_at, assigned_at), assignment_bands(policy))
