from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import InventoryStockViewSet

router = DefaultRouter()
router.register(r'', InventoryStockViewSet, basename='inventory')

urlpatterns = [
    path('', include(router.urls)),
]
