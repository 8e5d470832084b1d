from django.db import models
from django.utils import timezone


class Restaurant(models.Model):
    """
    A kitchen orders are prepared in.
    estimated_delivery_time is the free-text estimate the restaurant advertises
    (e.g. "25-30 mins"); its first number is used as the prep time.
    """
    name = models.CharField(max_length=255)
    address_text = models.TextField(blank=True, help_text="Landmark based address")

    # Pickup point for travel-time lookups
    lat = models.FloatField(blank=True, null=True)
    lng = models.FloatField(blank=True, null=True)

    estimated_delivery_time = models.CharField(max_length=50, blank=True, null=True)
    is_open = models.BooleanField(default=True)

    def __str__(self):
        return self.name


class DeliveryPartner(models.Model):
    """
    A rider. lat/lng is the last position the rider app reported.
    """
    name = models.CharField(max_length=255)
    lat = models.FloatField(blank=True, null=True)
    lng = models.FloatField(blank=True, null=True)
    is_online = models.BooleanField(default=True)

    def __str__(self):
        return self.name


class Order(models.Model):
    """
    Order as far as ETA tracking is concerned.
    Lifecycle: pending -> confirmed -> preparing -> ready -> out_for_delivery -> delivered
    (or cancelled at any point).
    """
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        PREPARING = "preparing", "Preparing"
        READY = "ready", "Ready for Pickup"
        OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    customer_id = models.CharField(max_length=64)
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='orders')
    # Set when a rider accepts the job
    rider = models.ForeignKey(DeliveryPartner, on_delete=models.SET_NULL, null=True, blank=True,
                              related_name='deliveries')

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    delivery_address = models.TextField(blank=True)
    # Coordinates where the rider needs to go
    delivery_lat = models.FloatField()
    delivery_lng = models.FloatField()

    created_at = models.DateTimeField(default=timezone.now)
    accepted_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Live ETA window in minutes, written only by the ETA engine
    eta_min = models.PositiveIntegerField(blank=True, null=True)
    eta_max = models.PositiveIntegerField(blank=True, null=True)
    eta_last_updated = models.DateTimeField(blank=True, null=True)
    estimated_delivery_time = models.PositiveIntegerField(blank=True, null=True)

    def __str__(self):
        return f"Order #{self.id} - {self.status}"


class OrderEvent(models.Model):
    """
    Append-only record of what happened to an order.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='events')
    event_type = models.CharField(max_length=40)
    data = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [models.Index(fields=["order", "-timestamp"])]

    def __str__(self):
        return f"{self.event_type} on order #{self.order_id}"


class EtaLog(models.Model):
    """
    Append-only record of every ETA transition and the breakdown behind it.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='eta_logs')
    previous_eta_min = models.PositiveIntegerField()
    previous_eta_max = models.PositiveIntegerField()
    new_eta_min = models.PositiveIntegerField()
    new_eta_max = models.PositiveIntegerField()
    reason = models.CharField(max_length=40)
    breakdown = models.JSONField(default=dict, blank=True)
    event_type = models.CharField(max_length=40, blank=True, null=True)
    triggered_by = models.ForeignKey(OrderEvent, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='eta_logs')
    calculated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [models.Index(fields=["order", "-calculated_at"])]

    def __str__(self):
        return (f"Order #{self.order_id}: {self.previous_eta_min}-{self.previous_eta_max}"
                f" -> {self.new_eta_min}-{self.new_eta_max} ({self.reason})")
