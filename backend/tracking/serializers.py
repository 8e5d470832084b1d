from rest_framework import serializers

from routing.travel_time import TrafficLevel


class LocationSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


# --- Request payloads ---

class CalculateEtaSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField()
    restaurant_location = LocationSerializer(required=False, allow_null=True)
    user_location = LocationSerializer()
    rider_location = LocationSerializer(required=False, allow_null=True)


class RecalculateSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)


class RestaurantAcceptedSerializer(serializers.Serializer):
    accepted_at = serializers.DateTimeField(required=False)


class RiderAssignedSerializer(serializers.Serializer):
    rider_id = serializers.CharField()
    assigned_at = serializers.DateTimeField(required=False)


class FoodNotReadySerializer(serializers.Serializer):
    waiting_time = serializers.IntegerField(min_value=0)


class TrafficDetectedSerializer(serializers.Serializer):
    traffic_level = serializers.ChoiceField(choices=[level.value for level in TrafficLevel])


class RiderNearingDropSerializer(serializers.Serializer):
    distance_to_drop = serializers.FloatField(min_value=0)


# --- Responses (engine dataclasses -> JSON) ---

class EtaWindowField(serializers.Field):
    def to_representation(self, value):
        return value.as_dict()


class EnumValueField(serializers.Field):
    def to_representation(self, value):
        return value.value if value is not None else None


class OrderEventSerializer(serializers.Serializer):
    id = serializers.CharField()
    order_id = serializers.CharField()
    event_type = EnumValueField()
    data = serializers.DictField()
    timestamp = serializers.DateTimeField()


class EtaLogEntrySerializer(serializers.Serializer):
    id = serializers.CharField()
    order_id = serializers.CharField()
    previous_eta = EtaWindowField()
    new_eta = EtaWindowField()
    reason = EnumValueField()
    event_type = EnumValueField()
    breakdown = serializers.DictField()
    triggered_by = serializers.CharField(allow_null=True)
    calculated_at = serializers.DateTimeField()


class EtaUpdateSerializer(serializers.Serializer):
    order_id = serializers.CharField()
    eta = EtaWindowField()
    estimated_delivery_time = serializers.IntegerField()
    reason = serializers.SerializerMethodField()
    breakdown = serializers.DictField()
    event = OrderEventSerializer()

    def get_reason(self, update):
        return update.log_entry.reason.value
