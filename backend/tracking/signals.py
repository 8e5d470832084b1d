"""
New orders get their first ETA once the creating transaction commits.
"""
import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from eta.errors import EtaError

from . import services
from .models import Order

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Order, dispatch_uid="tracking.order_created_eta")
def order_created(sender, instance, created, **kwargs):
    if not created:
        return

    order_id = str(instance.pk)

    def initialise_eta():
        try:
            services.get_processor().handle_order_created(order_id)
        except EtaError as e:
            logger.error("Initial ETA failed for order %s: %s", order_id, e)

    transaction.on_commit(initialise_eta)
