from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from apps.accounts.permissions import PolicyPermission
from apps.accounts.policies import Action

from .models import InventoryStock
from .serializers import (
    InventoryStockSerializer,
    StockMovementLogSerializer,
    StockAdjustmentSerializer,
)
from .services import InventoryService


class InventoryStockViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = InventoryStock.objects.select_related('product').order_by('product__name')
    serializer_class = InventoryStockSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    filterset_fields = ['product__category', 'product__seller']
    policy_actions = {
        "list": Action.INVENTORY_VIEW,
        "retrieve": Action.INVENTORY_VIEW,
        "low_stock": Action.INVENTORY_VIEW,
        "history": Action.INVENTORY_VIEW,
        "adjust": Action.INVENTORY_ADJUST,
    }

    @action(detail=False, methods=['get'], url_path='low-stock')
    def low_stock(self, request):
        stocks = self.filter_queryset(InventoryService.low_stock())
        page = self.paginate_queryset(stocks)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        stock = self.get_object()
        logs = stock.logs.select_related('created_by')[:100]
        return Response(StockMovementLogSerializer(logs, many=True).data)

    @action(detail=False, methods=['post'])
    def adjust(self, request):
        """
        Manual override for admins (cycle counts, damaged goods).
        """
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        d = serializer.validated_data
        stock = InventoryService.manual_adjustment(
            product_id=d['product_id'],
            delta_qty=d['delta_quantity'],
            user=request.user,
            reason=d['reason']
        )
        return Response(InventoryStockSerializer(stock).data, status=status.HTTP_200_OK)
