# apps/analytics/views.py
from datetime import datetime, time

from django.utils import timezone
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import PolicyPermission
from apps.accounts.policies import Action

from . import services
from .serializers import (
    AnalyticsQuerySerializer,
    CategoryRevenueSerializer,
    DailySalesSerializer,
    InventoryStatusSerializer,
    SalesOverviewSerializer,
    StatusBreakdownSerializer,
    TopCustomerSerializer,
    TopProductSerializer,
)


class AnalyticsView(APIView):
    """
    Base for date-ranged reports: validates ?start_date=&end_date=
    (inclusive days) plus optional seller / category / limit.
    """
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_actions = {"get": Action.ANALYTICS_VIEW}

    report = None
    serializer_class = None
    many = True
    uses_limit = False

    def get_params(self, request):
        query = AnalyticsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        params = {
            "start": timezone.make_aware(datetime.combine(data["start_date"], time.min)),
            "end": timezone.make_aware(datetime.combine(data["end_date"], time.max)),
            "seller": data.get("seller"),
            "category": data.get("category"),
        }
        if self.uses_limit:
            params["limit"] = data["limit"]
        return params

    def get(self, request):
        result = type(self).report(**self.get_params(request))
        return Response(self.serializer_class(result, many=self.many).data)


class SalesOverviewView(AnalyticsView):
    report = services.sales_overview
    serializer_class = SalesOverviewSerializer
    many = False


class DailySalesView(AnalyticsView):
    report = services.daily_sales
    serializer_class = DailySalesSerializer


class TopProductsView(AnalyticsView):
    report = services.top_products
    serializer_class = TopProductSerializer
    uses_limit = True


class CategoryRevenueView(AnalyticsView):
    report = services.revenue_by_category
    serializer_class = CategoryRevenueSerializer


class OrderStatusBreakdownView(AnalyticsView):
    report = services.order_status_breakdown
    serializer_class = StatusBreakdownSerializer


class TopCustomersView(AnalyticsView):
    report = services.top_customers
    serializer_class = TopCustomerSerializer
    uses_limit = True


class InventoryStatusView(APIView):
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_actions = {"get": Action.ANALYTICS_VIEW}

    def get(self, request):
        return Response(InventoryStatusSerializer(services.inventory_status()).data)
