"""
Purpose: Wires the ETA engine to the ORM stores for the HTTP layer.
What it does:

get_processor() builds one EtaEventProcessor per process (travel-time provider,
push transport, refresh scheduler and stores from configuration) and reuses it,
so every request shares the same per-order locks. Event, log and order writes
for one update commit together in a single database transaction.
"""

from functools import lru_cache

from django.conf import settings
from django.db import transaction

from eta.estimator import EtaEstimator
from eta.policy import default_eta_policy
from eta.processor import EtaEventProcessor
from notifications.publisher import LiveUpdatePublisher
from notifications.refresh import RefreshScheduler
from notifications.transport import build_transport
from routing.travel_time import build_travel_time_provider

from .repositories import (
    DjangoDeliveryPartnerDirectory,
    DjangoEtaLogStore,
    DjangoOrderEventLog,
    DjangoOrderStore,
    DjangoRestaurantDirectory,
)


def build_processor(travel_times=None, transport=None, scheduler=None, clock=None) -> EtaEventProcessor:
    policy = default_eta_policy()
    orders = DjangoOrderStore()

    estimator = EtaEstimator(
        travel_times=travel_times or build_travel_time_provider(),
        restaurants=DjangoRestaurantDirectory(),
        policy=policy,
    )
    publisher = LiveUpdatePublisher(
        transport or build_transport(),
        orders=orders,
        scheduler=scheduler,
        policy=policy,
        clock=clock,
    )

    kwargs = {"clock": clock} if clock else {}
    return EtaEventProcessor(
        orders=orders,
        riders=DjangoDeliveryPartnerDirectory(),
        events=DjangoOrderEventLog(),
        eta_logs=DjangoEtaLogStore(),
        estimator=estimator,
        publisher=publisher,
        atomic=transaction.atomic,
        **kwargs,
    )


@lru_cache(maxsize=1)
def get_processor() -> EtaEventProcessor:
    scheduler = RefreshScheduler() if settings.ETA_PERIODIC_REFRESH else None
    return build_processor(scheduler=scheduler)
