from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from eta.estimator import as_latlon

from . import services
from .serializers import (
    CalculateEtaSerializer,
    EtaLogEntrySerializer,
    EtaUpdateSerializer,
    FoodNotReadySerializer,
    OrderEventSerializer,
    RecalculateSerializer,
    RestaurantAcceptedSerializer,
    RiderAssignedSerializer,
    RiderNearingDropSerializer,
    TrafficDetectedSerializer,
)


def _validated(serializer_class, request):
    serializer = serializer_class(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class OrderEtaViewSet(viewsets.ViewSet):
    """
    ETA endpoints for an order.
    - Reads: live ETA, ETA history, event history
    - Lifecycle events: one POST action per event, each returning the new ETA
    Error mapping lives in tracking.exceptions.
    """

    def _update_response(self, update):
        return Response(EtaUpdateSerializer(update).data)

    # --- Reads ---

    @action(detail=True, methods=['get'], url_path='eta')
    def eta(self, request, pk=None):
        live = services.get_processor().live_eta(pk)
        return Response({"order_id": pk, **live.as_payload()})

    @action(detail=True, methods=['get'], url_path='eta/history')
    def eta_history(self, request, pk=None):
        entries = services.get_processor().eta_history(pk)
        return Response({"order_id": pk, "history": EtaLogEntrySerializer(entries, many=True).data})

    @action(detail=True, methods=['get'], url_path='events')
    def events(self, request, pk=None):
        events = services.get_processor().order_events(pk)
        return Response({"order_id": pk, "events": OrderEventSerializer(events, many=True).data})

    @action(detail=False, methods=['post'], url_path='calculate-eta')
    def calculate_eta(self, request):
        """
        Quote an ETA before the order exists (checkout screen).
        """
        data = _validated(CalculateEtaSerializer, request)
        estimate = services.get_processor().calculate_eta(
            restaurant_id=data["restaurant_id"],
            restaurant_location=as_latlon(data.get("restaurant_location")),
            drop_location=as_latlon(data["user_location"]),
            rider_location=as_latlon(data.get("rider_location")),
        )
        return Response({
            "eta": estimate.window.as_dict(),
            "estimated_delivery_time": estimate.window.midpoint,
            "breakdown": estimate.breakdown.as_dict(),
        })

    # --- Lifecycle events ---

    @action(detail=True, methods=['post'], url_path='eta/recalculate')
    def recalculate(self, request, pk=None):
        data = _validated(RecalculateSerializer, request)
        return self._update_response(services.get_processor().recalculate(pk, data.get("reason") or None))

    @action(detail=True, methods=['post'], url_path='eta/restaurant-accepted')
    def restaurant_accepted(self, request, pk=None):
        data = _validated(RestaurantAcceptedSerializer, request)
        return self._update_response(
            services.get_processor().handle_restaurant_accepted(pk, accepted_at=data.get("accepted_at"))
        )

    @action(detail=True, methods=['post'], url_path='eta/rider-assigned')
    def rider_assigned(self, request, pk=None):
        data = _validated(RiderAssignedSerializer, request)
        return self._update_response(
            services.get_processor().handle_rider_assigned(
                pk, data["rider_id"], assigned_at=data.get("assigned_at")
            )
        )

    @action(detail=True, methods=['post'], url_path='eta/rider-reached-restaurant')
    def rider_reached_restaurant(self, request, pk=None):
        return self._update_response(services.get_processor().handle_rider_reached_restaurant(pk))

    @action(detail=True, methods=['post'], url_path='eta/food-not-ready')
    def food_not_ready(self, request, pk=None):
        data = _validated(FoodNotReadySerializer, request)
        return self._update_response(services.get_processor().handle_food_not_ready(pk, data["waiting_time"]))

    @action(detail=True, methods=['post'], url_path='eta/rider-started-delivery')
    def rider_started_delivery(self, request, pk=None):
        return self._update_response(services.get_processor().handle_rider_started_delivery(pk))

    @action(detail=True, methods=['post'], url_path='eta/traffic-detected')
    def traffic_detected(self, request, pk=None):
        data = _validated(TrafficDetectedSerializer, request)
        return self._update_response(
            services.get_processor().handle_traffic_detected(pk, data["traffic_level"])
        )

    @action(detail=True, methods=['post'], url_path='eta/rider-nearing-drop')
    def rider_nearing_drop(self, request, pk=None):
        data = _validated(RiderNearingDropSerializer, request)
        update = services.get_processor().handle_rider_nearing_drop(pk, data["distance_to_drop"])
        if update is None:
            # still too far out; nothing changed
            return Response(status=status.HTTP_204_NO_CONTENT)
        return self._update_response(update)
