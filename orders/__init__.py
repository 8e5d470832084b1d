"""
Purpose: Package entry + stable exports.
What it does:

Orders domain package: the order, restaurant and rider records the ETA engine
reads, the event / ETA log records it writes, and the store contracts.

from orders import Order, OrderStatus, InMemoryOrderStore

Should not contain business logic.
"""
from .models import (
    DeliveryPartner,
    EtaBreakdown,
    EtaEventType,
    EtaLogEntry,
    EtaReason,
    EtaWindow,
    Order,
    OrderEvent,
    OrderStatus,
    Restaurant,
)
from .store import (
    DeliveryPartnerDirectory,
    EtaLogStore,
    InMemoryDeliveryPartnerDirectory,
    InMemoryEtaLogStore,
    InMemoryOrderEventLog,
    InMemoryOrderStore,
    InMemoryRestaurantDirectory,
    OrderEventLog,
    OrderStore,
    RestaurantDirectory,
)

__all__ = ["Order",
           "OrderStatus",
           "OrderEvent",
           "EtaLogEntry",
           "EtaWindow",
           "EtaBreakdown",
           "EtaEventType",
           "EtaReason",
           "Restaurant",
           "DeliveryPartner",
           "OrderStore",
           "RestaurantDirectory",
           "DeliveryPartnerDirectory",
           "OrderEventLog",
           "EtaLogStore",
           "InMemoryOrderStore",
           "InMemoryRestaurantDirectory",
           "InMemoryDeliveryPartnerDirectory",
           "InMemoryOrderEventLog",
           "InMemoryEtaLogStore",
           ]
