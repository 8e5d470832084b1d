"""
Purpose: Live (time-decayed) ETA read model.
What it does:

Answers "how long from now?" instead of "what did we promise?": the order's last
persisted window minus the whole minutes elapsed since the order was placed,
floored at zero. Delivered orders always answer 0/0.

Rule: a derived query; never writes the order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from orders.models import Order, OrderStatus, utcnow
from .policy import EtaPolicy, default_eta_policy


@dataclass(frozen=True)
class LiveEta:
    min_eta: int
    max_eta: int
    status: str
    elapsed_minutes: Optional[int] = None

    @property
    def formatted(self) -> str:
        return f"{self.min_eta}-{self.max_eta} mins"

    def as_payload(self) -> Dict[str, Any]:
        payload = {
            "min_eta": self.min_eta,
            "max_eta": self.max_eta,
            "status": self.status,
            "formatted": self.formatted,
        }
        if self.elapsed_minutes is not None:
            payload["elapsed_minutes"] = self.elapsed_minutes
        return payload


def compute_live_eta(order: Order, now: Optional[datetime] = None,
                     policy: Optional[EtaPolicy] = None) -> LiveEta:
    if order.status == OrderStatus.DELIVERED:
        return LiveEta(min_eta=0, max_eta=0, status=OrderStatus.DELIVERED.value)

    policy = policy or default_eta_policy()
    now = now or utcnow()
    elapsed = max(0, math.floor((now - order.created_at).total_seconds() / 60))
    window = order.current_window(policy)

    return LiveEta(
        min_eta=max(0, window.min - elapsed),
        max_eta=max(0, window.max - elapsed),
        status=order.status.value,
        elapsed_minutes=elapsed,
    )
