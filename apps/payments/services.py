import logging
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Sum

from apps.orders.models import Order, OrderHistory
from apps.utils.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    translate_db_errors,
)
from apps.utils.utils import to_money

from .models import Payment, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Service to handle the payment side of the order lifecycle.
    """

    @staticmethod
    def _order_payment_status(payment_status: str) -> str:
        # A completed payment means the order is paid; other states copy through.
        if payment_status == PaymentStatus.COMPLETED:
            return Order.PaymentStatus.PAID
        return payment_status

    @staticmethod
    @translate_db_errors("Failed to process payment")
    @transaction.atomic
    def record_payment(order_id, payment_data: dict, actor=None) -> Payment:
        """
        payment_data: amount, payment_method, payment_provider,
        transaction_id, status (default 'completed'), provider_response.
        """
        try:
            order = Order.objects.select_for_update().get(id=order_id)
        except (Order.DoesNotExist, DjangoValidationError):
            raise NotFoundError(f"Order not found with ID: {order_id}")

        if order.payment_status == Order.PaymentStatus.PAID:
            raise ConflictError("Order has already been paid")

        amount = to_money(payment_data.get("amount"))
        if amount < 0:
            raise ValidationError("Payment amount cannot be negative.")

        method = payment_data.get("payment_method") or order.payment_method
        status = payment_data.get("status") or PaymentStatus.COMPLETED
        if status not in PaymentStatus.values:
            raise ValidationError(f"Invalid payment status: {status}")

        payment = Payment.objects.create(
            order=order,
            amount=amount,
            payment_method=method,
            payment_provider=payment_data.get("payment_provider") or "",
            transaction_id=payment_data.get("transaction_id"),
            status=status,
            provider_response=payment_data.get("provider_response") or {},
        )

        order.payment_status = PaymentService._order_payment_status(status)
        update_fields = ["payment_status", "updated_at"]
        if status == PaymentStatus.COMPLETED and order.status == Order.Status.PENDING:
            order.status = Order.Status.PROCESSING
            update_fields.append("status")
        order.save(update_fields=update_fields)

        OrderHistory.objects.create(
            order=order,
            status=f"payment_{order.payment_status}",
            comment=f"Payment processed via {method}",
            created_by=actor or order.user,
        )

        logger.info(
            f"Payment recorded for order {order.order_number}: {amount} ({status})",
            extra={"order_id": str(order.id), "order_number": order.order_number},
        )
        return payment

    @staticmethod
    def paid_total(order) -> Decimal:
        total = order.payments.filter(status=PaymentStatus.COMPLETED).aggregate(s=Sum("amount"))["s"]
        return total or Decimal("0.00")

    @staticmethod
    def refunded_total(order) -> Decimal:
        total = order.payments.filter(status=PaymentStatus.REFUNDED).aggregate(s=Sum("amount"))["s"]
        return total or Decimal("0.00")

    @staticmethod
    def refundable_amount(order) -> Decimal:
        return max(PaymentService.paid_total(order) - PaymentService.refunded_total(order), Decimal("0.00"))

    @staticmethod
    def get_payment_details(order_id):
        try:
            found = Order.objects.filter(id=order_id).exists()
        except DjangoValidationError:
            found = False
        if not found:
            raise NotFoundError(f"Order not found with ID: {order_id}")
        return Payment.objects.filter(order_id=order_id).order_by("-created_at")
