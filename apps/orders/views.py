import csv

from django.http import HttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import PolicyPermission
from apps.accounts.policies import Action, is_allowed
from apps.payments.serializers import PaymentSerializer, RecordPaymentSerializer, RefundSerializer
from apps.payments.services import PaymentService
from apps.utils.exceptions import ValidationError
from apps.utils.throttle import BurstRateThrottle, SustainedRateThrottle

from .models import Order
from .serializers import (
    HistoryEntrySerializer,
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderDetailSerializer,
    OrderHistorySerializer,
    OrderItemSerializer,
    OrderItemUpdateSerializer,
    OrderListSerializer,
    OrderStatusSerializer,
)
from .services import OrderService

EXPORT_COLUMNS = [
    "order_number", "created_at", "status", "payment_status", "total_amount",
    "customer_email", "customer_name", "shipping_city", "shipping_country", "item_count",
]


class OrderViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Thin HTTP adapter over OrderService / PaymentService.
    Customers only ever see their own orders; staff roles see all.
    """
    permission_classes = [IsAuthenticated, PolicyPermission]
    throttle_classes = [BurstRateThrottle, SustainedRateThrottle]
    serializer_class = OrderDetailSerializer
    policy_actions = {
        "list": Action.ORDER_VIEW,
        "retrieve": Action.ORDER_VIEW,
        "create": Action.ORDER_CREATE,
        "update_status": Action.ORDER_UPDATE_STATUS,
        "cancel": Action.ORDER_CANCEL,
        "refund": Action.ORDER_REFUND,
        "payment": Action.ORDER_VIEW,
        "record_payment": Action.ORDER_PAY,
        "history": Action.ORDER_HISTORY,
        "add_history": Action.ORDER_HISTORY,
        "update_item": Action.ORDER_EDIT_ITEMS,
        "export": Action.ORDER_EXPORT,
    }

    def get_queryset(self):
        user = self.request.user
        qs = Order.objects.select_related("user")
        if not is_allowed(user, Action.ORDER_VIEW_ALL):
            qs = qs.filter(user=user)
        return qs

    def list(self, request):
        if is_allowed(request.user, Action.ORDER_VIEW_ALL):
            orders = OrderService.list_orders(request.query_params)
        else:
            orders = OrderService.get_orders_for_user(request.user, request.query_params)

        page = self.paginate_queryset(orders)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        self.get_object()
        order = OrderService.get_order_by_id(pk)
        return Response(OrderDetailSerializer(order).data)

    def create(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.create_order(user=request.user, **serializer.validated_data)
        order = OrderService.get_order_by_id(order.id)
        return Response(OrderDetailSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='status')
    def update_status(self, request, pk=None):
        self.get_object()
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        OrderService.transition_status(
            pk,
            serializer.validated_data['status'],
            comment=serializer.validated_data.get('comment'),
            actor=request.user,
        )
        return Response(OrderDetailSerializer(OrderService.get_order_by_id(pk)).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        order = self.get_object()
        if (
            order.can_cancel
            and order.status not in Order.OWNER_CANCELLABLE_STATUSES
            and not is_allowed(request.user, Action.ORDER_CANCEL_ANY_STATUS, order)
        ):
            raise ValidationError(f"Order in status {order.status} can no longer be cancelled by its owner")
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        OrderService.cancel_order(pk, actor=request.user, reason=serializer.validated_data.get('reason'))
        return Response(OrderDetailSerializer(OrderService.get_order_by_id(pk)).data)

    @action(detail=True, methods=['post'])
    def refund(self, request, pk=None):
        self.get_object()
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        refund = OrderService.refund_order(pk, serializer.validated_data, actor=request.user)
        return Response(PaymentSerializer(refund).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def payment(self, request, pk=None):
        self.get_object()
        payments = OrderService.get_payment_details(pk)
        return Response(PaymentSerializer(payments, many=True).data)

    @payment.mapping.post
    def record_payment(self, request, pk=None):
        self.get_object()
        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment = PaymentService.record_payment(pk, serializer.validated_data, actor=request.user)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        self.get_object()
        entries = OrderService.get_order_history(pk)
        return Response(OrderHistorySerializer(entries, many=True).data)

    @history.mapping.post
    def add_history(self, request, pk=None):
        self.get_object()
        serializer = HistoryEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        entry = OrderService.add_history_entry(
            pk,
            serializer.validated_data['status'],
            comment=serializer.validated_data.get('comment', ''),
            actor=request.user,
        )
        return Response(OrderHistorySerializer(entry).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['patch'], url_path=r'items/(?P<item_id>[^/.]+)')
    def update_item(self, request, pk=None, item_id=None):
        self.get_object()
        serializer = OrderItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = OrderService.update_order_item(pk, item_id, actor=request.user, **serializer.validated_data)
        return Response(OrderItemSerializer(item).data)

    @action(detail=False, methods=['get'])
    def export(self, request):
        rows = OrderService.export_orders(request.query_params)

        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="orders.csv"'
        writer = csv.DictWriter(response, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
        return response
