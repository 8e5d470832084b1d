"""
Purpose: Live Update Publisher.
What it does:

After every ETA change, pushes the new estimate to everyone watching the order:

  order:<order_id>            the tracking screen
  user:<customer_id>          the customer's app
  restaurant:<restaurant_id>  the restaurant dashboard
  delivery:<rider_id>         the assigned rider, if any

Each room is attempted on its own; one failing room is logged and skipped,
never retried and never raised, so the ETA transition that triggered the
publish always stands.

Also drives the periodic refresh: while an order is active, republish its live
(time-decayed) ETA on a fixed interval through an injected RefreshScheduler.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from orders.models import Order
from orders.store import OrderStore
from eta.live import compute_live_eta
from eta.policy import EtaPolicy, default_eta_policy
from .refresh import RefreshScheduler
from .transport import Transport

logger = logging.getLogger(__name__)


class PublishEvent(str, Enum):
    ETA_UPDATED = "eta_updated"
    RIDER_ASSIGNED = "rider_assigned"
    PICKED_UP = "picked_up"
    NEARBY = "nearby"


def rooms_for(order: Order) -> List[str]:
    rooms = [
        f"order:{order.id}",
        f"user:{order.customer_id}",
        f"restaurant:{order.restaurant_id}",
    ]
    if order.rider_id:
        rooms.append(f"delivery:{order.rider_id}")
    return rooms


class LiveUpdatePublisher:
    def __init__(self, transport: Transport, *,
                 orders: Optional[OrderStore] = None,
                 scheduler: Optional[RefreshScheduler] = None,
                 policy: Optional[EtaPolicy] = None,
                 clock: Optional[Callable] = None):
        self.transport = transport
        self.orders = orders
        self.scheduler = scheduler
        self.policy = policy or default_eta_policy()
        self.clock = clock

    def publish(self, order: Order, payload: Dict[str, Any],
                event: PublishEvent = PublishEvent.ETA_UPDATED) -> int:
        """
        Fan `payload` out to every room of `order`. Returns how many rooms
        accepted the message.
        """
        delivered = 0
        for room in rooms_for(order):
            try:
                self.transport.emit(room, event.value, payload)
                delivered += 1
            except Exception as e:
                logger.error("Failed to publish %s to %s for order %s: %s", event.value, room, order.id, e)
        return delivered

    # --- Periodic refresh ---

    def refresh_once(self, order_id: str) -> bool:
        """
        Republish the live ETA once. Returns False when the order is gone or
        finished, which ends its refresh task.
        """
        if self.orders is None:
            return False

        order = self.orders.get(order_id)
        if order is None or order.is_terminal:
            return False

        now = self.clock() if self.clock else None
        live = compute_live_eta(order, now=now, policy=self.policy)
        self.publish(order, {"order_id": order.id, **live.as_payload()}, PublishEvent.ETA_UPDATED)
        return True

    def start_periodic_refresh(self, order_id: str) -> bool:
        if self.scheduler is None or self.orders is None:
            return False
        return self.scheduler.start(order_id, lambda: self.refresh_once(order_id))

    def stop_periodic_refresh(self, order_id: str) -> bool:
        if self.scheduler is None:
            return False
        return self.scheduler.cancel(order_id)
