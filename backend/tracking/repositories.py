"""
Purpose: ORM-backed implementations of the stores the ETA engine consumes.
What it does:

Each class satisfies one protocol from orders.store and converts between Django
rows and the engine's dataclasses, so eta/ never imports Django.

Ids cross the boundary as strings; an id that is not a valid primary key is
simply "not found".
"""

from dataclasses import replace
from typing import List, Optional

from django.utils import timezone

from orders.models import (
    DeliveryPartner as DeliveryPartnerRecord,
    EtaEventType,
    EtaLogEntry,
    EtaReason,
    EtaWindow,
    KITCHEN_LOAD_STATUSES,
    Order as OrderRecord,
    OrderEvent as OrderEventRecord,
    OrderStatus,
    Restaurant as RestaurantRecord,
)

from . import models


def _pk(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _location(lat, lng):
    if lat is None or lng is None:
        return None
    return (lat, lng)


def order_record(row: models.Order) -> OrderRecord:
    eta = None
    if row.eta_min is not None and row.eta_max is not None:
        eta = EtaWindow(min=row.eta_min, max=row.eta_max)
    return OrderRecord(
        id=str(row.pk),
        customer_id=row.customer_id,
        restaurant_id=str(row.restaurant_id),
        drop_location=(row.delivery_lat, row.delivery_lng),
        status=OrderStatus(row.status),
        created_at=row.created_at,
        accepted_at=row.accepted_at,
        rider_id=str(row.rider_id) if row.rider_id else None,
        eta=eta,
        eta_last_updated=row.eta_last_updated,
        estimated_delivery_time=row.estimated_delivery_time,
    )


class DjangoOrderStore:
    def get(self, order_id: str) -> Optional[OrderRecord]:
        pk = _pk(order_id)
        if pk is None:
            return None
        row = models.Order.objects.filter(pk=pk).first()
        return order_record(row) if row else None

    def save(self, order: OrderRecord) -> None:
        """
        Writes back only the fields the ETA engine owns.
        """
        models.Order.objects.filter(pk=_pk(order.id)).update(
            accepted_at=order.accepted_at,
            rider_id=_pk(order.rider_id),
            eta_min=order.eta.min if order.eta else None,
            eta_max=order.eta.max if order.eta else None,
            eta_last_updated=order.eta_last_updated,
            estimated_delivery_time=order.estimated_delivery_time,
            updated_at=timezone.now(),
        )


class DjangoRestaurantDirectory:
    def get(self, restaurant_id: str) -> Optional[RestaurantRecord]:
        pk = _pk(restaurant_id)
        row = models.Restaurant.objects.filter(pk=pk).first() if pk is not None else None
        if row is None:
            return None
        return RestaurantRecord(
            id=str(row.pk),
            name=row.name,
            location=_location(row.lat, row.lng),
            estimated_delivery_time=row.estimated_delivery_time,
        )

    def pending_order_count(self, restaurant_id: str) -> int:
        pk = _pk(restaurant_id)
        if pk is None:
            return 0
        return models.Order.objects.filter(
            restaurant_id=pk,
            status__in=[status.value for status in KITCHEN_LOAD_STATUSES],
        ).count()


class DjangoDeliveryPartnerDirectory:
    def get(self, rider_id: str) -> Optional[DeliveryPartnerRecord]:
        pk = _pk(rider_id)
        row = models.DeliveryPartner.objects.filter(pk=pk).first() if pk is not None else None
        if row is None:
            return None
        return DeliveryPartnerRecord(
            id=str(row.pk),
            name=row.name,
            location=_location(row.lat, row.lng),
            is_online=row.is_online,
        )


class DjangoOrderEventLog:
    def append(self, event: OrderEventRecord) -> OrderEventRecord:
        row = models.OrderEvent.objects.create(
            order_id=_pk(event.order_id),
            event_type=event.event_type.value,
            data=event.data,
            timestamp=event.timestamp,
        )
        return replace(event, id=str(row.pk))

    def recent(self, order_id: str, limit: int = 100) -> List[OrderEventRecord]:
        rows = models.OrderEvent.objects.filter(order_id=_pk(order_id)).order_by("-timestamp", "-id")[:limit]
        return [
            OrderEventRecord(
                order_id=str(row.order_id),
                event_type=EtaEventType(row.event_type),
                data=row.data,
                timestamp=row.timestamp,
                id=str(row.pk),
            )
            for row in rows
        ]


class DjangoEtaLogStore:
    def append(self, entry: EtaLogEntry) -> EtaLogEntry:
        row = models.EtaLog.objects.create(
            order_id=_pk(entry.order_id),
            previous_eta_min=entry.previous_eta.min,
            previous_eta_max=entry.previous_eta.max,
            new_eta_min=entry.new_eta.min,
            new_eta_max=entry.new_eta.max,
            reason=entry.reason.value,
            breakdown=entry.breakdown,
            event_type=entry.event_type.value if entry.event_type else None,
            triggered_by_id=_pk(entry.triggered_by),
            calculated_at=entry.calculated_at,
        )
        return replace(entry, id=str(row.pk))

    def recent(self, order_id: str, limit: int = 50) -> List[EtaLogEntry]:
        rows = models.EtaLog.objects.filter(order_id=_pk(order_id)).order_by("-calculated_at", "-id")[:limit]
        return [
            EtaLogEntry(
                order_id=str(row.order_id),
                previous_eta=EtaWindow(min=row.previous_eta_min, max=row.previous_eta_max),
                new_eta=EtaWindow(min=row.new_eta_min, max=row.new_eta_max),
                reason=EtaReason(row.reason),
                breakdown=row.breakdown,
                event_type=EtaEventType(row.event_type) if row.event_type else None,
                triggered_by=str(row.triggered_by_id) if row.triggered_by_id else None,
                calculated_at=row.calculated_at,
                id=str(row.pk),
            )
            for row in rows
        ]
