from django.urls import path, include
from rest_framework.routers import DefaultRouter
from tracking.views import OrderEtaViewSet

router = DefaultRouter()
router.register(r'orders', OrderEtaViewSet, basename='order-eta')

urlpatterns = [
    path('api/v1/', include(router.urls)),
]
