import logging
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, Prefetch, Sum
from django.utils import timezone

from apps.catalog.models import Product
from apps.catalog.serializers import ProductSnapshotSerializer
from apps.inventory.services import InventoryService
from apps.payments.models import Payment, PaymentStatus
from apps.payments.services import PaymentService
from apps.utils.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    translate_db_errors,
)
from apps.utils.utils import generate_order_number, to_money

from .filters import OrderFilter
from .models import Order, OrderHistory, OrderItem

logger = logging.getLogger(__name__)

REFUND_POLICY_CAPPED = "capped"
REFUND_POLICY_UNRESTRICTED = "unrestricted"


def _log_extra(order):
    return {"order_id": str(order.id), "order_number": order.order_number}


class OrderService:
    """
    Order lifecycle: creation, status transitions, cancellation, refund.
    Every write runs in one transaction; inventory moves in the same one.
    """

    @staticmethod
    def _get_order(order_id, lock=False) -> Order:
        qs = Order.objects.select_for_update() if lock else Order.objects.all()
        try:
            return qs.get(id=order_id)
        except (Order.DoesNotExist, DjangoValidationError):
            raise NotFoundError(f"Order not found with ID: {order_id}")

    @staticmethod
    def _normalize_items(items) -> list:
        lines = []
        for raw in items:
            product_id = raw.get("product_id")
            quantity = raw.get("quantity")
            if not product_id:
                raise ValidationError("Each item requires a product_id.")
            try:
                product_id = uuid.UUID(str(product_id))
            except ValueError:
                raise ValidationError(f"Invalid product ID: {product_id}")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise ValidationError(f"Invalid quantity for product {product_id}: {quantity}")

            tax = to_money(raw.get("tax_amount", 0))
            discount = to_money(raw.get("discount_amount", 0))
            if tax < 0 or discount < 0:
                raise ValidationError(f"Line adjustments cannot be negative (product {product_id}).")

            lines.append({
                "product_id": str(product_id),
                "quantity": quantity,
                "tax_amount": tax,
                "discount_amount": discount,
            })
        return lines

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    @translate_db_errors("Failed to create order", conflict_message="Order number already exists, please retry.")
    def create_order(
        user,
        items,
        shipping_address,
        payment_method,
        billing_address=None,
        notes=None,
        tax_amount=0,
        shipping_amount=0,
        discount_amount=0,
    ) -> Order:
        """
        Secure Order Creation:
        1. Validate the request shape (no DB access)
        2. Price every line from the product record (Prevents Price Tampering)
        3. Insert order + items, decrement stock, write history (Atomic)
        """
        if not items:
            raise ValidationError("Order must contain at least one item.")
        if not shipping_address:
            raise ValidationError("Shipping address is required.")
        if not payment_method:
            raise ValidationError("Payment method is required.")

        lines = OrderService._normalize_items(items)
        tax_amount = to_money(tax_amount)
        shipping_amount = to_money(shipping_amount)
        discount_amount = to_money(discount_amount)
        if min(tax_amount, shipping_amount, discount_amount) < 0:
            raise ValidationError("Order adjustments cannot be negative.")

        with transaction.atomic():
            products = Product.objects.select_related("category").in_bulk(
                {line["product_id"] for line in lines}
            )
            products = {str(pk): product for pk, product in products.items()}

            order_items = []
            subtotal = Decimal("0.00")
            for line in lines:
                product = products.get(line["product_id"])
                if product is None:
                    raise ValidationError(f"Product not found with ID: {line['product_id']}")
                if not product.is_active:
                    raise ValidationError(f"Product {product.name} is currently unavailable.")

                item = OrderItem(
                    product=product,
                    name=product.name,
                    sku=product.sku,
                    unit_price=product.price,
                    product_data=ProductSnapshotSerializer(product).data,
                    quantity=line["quantity"],
                    tax_amount=line["tax_amount"],
                    discount_amount=line["discount_amount"],
                )
                if item.recalculate() < 0:
                    raise ValidationError(f"Discount exceeds line value for product {product.name}.")
                subtotal += item.subtotal
                order_items.append(item)

            order = Order(
                user=user,
                order_number=generate_order_number(),
                status=Order.Status.PENDING,
                payment_status=Order.PaymentStatus.PENDING,
                subtotal=subtotal,
                tax_amount=tax_amount,
                shipping_amount=shipping_amount,
                discount_amount=discount_amount,
                shipping_address=shipping_address,
                billing_address=billing_address or shipping_address,
                payment_method=payment_method,
                notes=notes,
            )
            if order.recalculate_total() < 0:
                raise ValidationError("Order total cannot be negative.")
            order.save()

            for item in order_items:
                item.order = order
            OrderItem.objects.bulk_create(order_items)

            InventoryService.decrement_items(
                [
                    {"product_id": item.product_id, "quantity": item.quantity}
                    for item in order_items
                    if item.product.is_physical
                ],
                reference=order.order_number,
                actor=user,
            )

            OrderHistory.objects.create(
                order=order,
                status=Order.Status.PENDING,
                comment="Order created",
                created_by=user,
            )

        logger.info(f"Order {order.order_number} created for user {user.id}", extra=_log_extra(order))
        return order

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @staticmethod
    @translate_db_errors("Failed to update order status")
    @transaction.atomic
    def transition_status(order_id, status: str, comment=None, actor=None) -> Order:
        """
        Generic move to any known status. Only terminal orders are protected;
        cancellation and refund enforce their own preconditions.
        """
        if status not in Order.Status.values:
            raise ValidationError(f"Invalid order status: {status}")

        order = OrderService._get_order(order_id, lock=True)
        if order.is_terminal:
            raise ConflictError(f"Cannot change status of order in terminal status: {order.status}")

        previous = order.status
        order.status = status
        update_fields = ["status", "updated_at"]
        if status == Order.Status.COMPLETED:
            order.completed_at = timezone.now()
            update_fields.append("completed_at")
        order.save(update_fields=update_fields)

        OrderHistory.objects.create(
            order=order,
            status=status,
            comment=comment or f"Status changed from {previous} to {status}",
            created_by=actor,
        )

        logger.info(f"Order {order.order_number}: {previous} -> {status}", extra=_log_extra(order))
        return order

    @staticmethod
    @translate_db_errors("Failed to cancel order")
    @transaction.atomic
    def cancel_order(order_id, actor=None, reason=None) -> Order:
        """
        Cancellation & inventory release, all-or-nothing.
        """
        order = OrderService._get_order(order_id, lock=True)

        if not order.can_cancel:
            raise ConflictError(f"Cannot cancel order with status: {order.status}")

        order.status = Order.Status.CANCELLED
        order.save(update_fields=["status", "updated_at"])

        OrderHistory.objects.create(
            order=order,
            status=Order.Status.CANCELLED,
            comment=reason or "Order cancelled",
            created_by=actor,
        )

        restocked = InventoryService.restock_order(order, reference=order.order_number, actor=actor)

        logger.info(
            f"Order {order.order_number} cancelled, {restocked} unit(s) returned to stock",
            extra=_log_extra(order),
        )
        return order

    @staticmethod
    @translate_db_errors("Failed to process refund")
    @transaction.atomic
    def refund_order(order_id, refund_data: dict, actor=None) -> Payment:
        """
        refund_data: amount, reason, return_to_inventory, payment_method,
        payment_provider, transaction_id, provider_response.

        Under the "capped" ORDER_REFUND_POLICY the amount may not exceed
        completed payments minus earlier refunds.
        """
        order = OrderService._get_order(order_id, lock=True)

        if not order.can_refund:
            raise ConflictError(f"Cannot refund order with status: {order.status}")

        if refund_data.get("amount") in (None, ""):
            raise ValidationError("Refund amount is required.")
        amount = to_money(refund_data["amount"])
        if amount < 0:
            raise ValidationError("Refund amount cannot be negative.")

        policy = getattr(settings, "ORDER_REFUND_POLICY", REFUND_POLICY_CAPPED)
        if policy == REFUND_POLICY_CAPPED:
            refundable = PaymentService.refundable_amount(order)
            if amount > refundable:
                raise ValidationError(
                    f"Refund amount {amount} exceeds refundable balance {refundable}."
                )

        refund = Payment.objects.create(
            order=order,
            amount=amount,
            payment_method=refund_data.get("payment_method") or order.payment_method,
            payment_provider=refund_data.get("payment_provider") or "",
            transaction_id=refund_data.get("transaction_id"),
            status=PaymentStatus.REFUNDED,
            provider_response=refund_data.get("provider_response") or {},
        )

        order.status = Order.Status.REFUNDED
        if PaymentService.refunded_total(order) >= PaymentService.paid_total(order):
            order.payment_status = Order.PaymentStatus.REFUNDED
        else:
            order.payment_status = Order.PaymentStatus.PARTIALLY_REFUNDED
        order.save(update_fields=["status", "payment_status", "updated_at"])

        OrderHistory.objects.create(
            order=order,
            status=Order.Status.REFUNDED,
            comment=refund_data.get("reason") or "Order refunded",
            created_by=actor,
        )

        if refund_data.get("return_to_inventory"):
            InventoryService.restock_order(order, reference=order.order_number, actor=actor)

        logger.info(
            f"Order {order.order_number} refunded {amount} ({order.payment_status})",
            extra=_log_extra(order),
        )
        return refund

    # ------------------------------------------------------------------
    # Item edits
    # ------------------------------------------------------------------

    @staticmethod
    def _update_order_totals(order):
        subtotal = order.items.aggregate(s=Sum("subtotal"))["s"] or Decimal("0.00")
        order.subtotal = subtotal
        if order.recalculate_total() < 0:
            raise ValidationError("Order total cannot be negative.")
        order.save(update_fields=["subtotal", "total_amount", "updated_at"])

    @staticmethod
    @translate_db_errors("Failed to update order item")
    @transaction.atomic
    def update_order_item(order_id, item_id, quantity=None, unit_price=None, actor=None) -> OrderItem:
        if quantity is None and unit_price is None:
            raise ValidationError("Nothing to update: provide quantity and/or unit_price.")

        order = OrderService._get_order(order_id, lock=True)
        if order.is_terminal:
            raise ConflictError(f"Cannot edit items for order with status: {order.status}")

        try:
            item = order.items.select_related("product").get(id=item_id)
        except (OrderItem.DoesNotExist, DjangoValidationError):
            raise NotFoundError(f"Order item not found with ID: {item_id}")

        if quantity is not None:
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise ValidationError(f"Invalid quantity: {quantity}")
            delta = quantity - item.quantity
            if item.product.is_physical and delta > 0:
                InventoryService.decrement(item.product_id, delta, order.order_number, actor)
            elif item.product.is_physical and delta < 0:
                InventoryService.restock(item.product_id, -delta, order.order_number, actor)
            item.quantity = quantity

        if unit_price is not None:
            unit_price = to_money(unit_price)
            if unit_price < 0:
                raise ValidationError("Unit price cannot be negative.")
            item.unit_price = unit_price

        if item.recalculate() < 0:
            raise ValidationError("Discount exceeds line value.")
        item.save(update_fields=["quantity", "unit_price", "subtotal", "total"])

        OrderService._update_order_totals(order)

        OrderHistory.objects.create(
            order=order,
            status=order.status,
            comment=f"Item {item.sku} updated: quantity {item.quantity}, unit price {item.unit_price}",
            created_by=actor,
        )
        return item

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def get_order_by_id(order_id) -> Order:
        qs = (
            Order.objects
            .select_related("user")
            .prefetch_related(
                "items",
                Prefetch("history", queryset=OrderHistory.objects.select_related("created_by").order_by("-created_at")),
                Prefetch("payments", queryset=Payment.objects.order_by("-created_at")),
            )
        )
        try:
            return qs.get(id=order_id)
        except (Order.DoesNotExist, DjangoValidationError):
            raise NotFoundError(f"Order not found with ID: {order_id}")

    @staticmethod
    def list_orders(filters=None, queryset=None):
        """
        Filtered listing. `filters` is a dict / QueryDict of OrderFilter params.
        """
        if queryset is None:
            queryset = Order.objects.select_related("user").annotate(item_count=Count("items"))
        order_filter = OrderFilter(filters or {}, queryset=queryset)
        if not order_filter.is_valid():
            raise ValidationError(f"Invalid filters: {dict(order_filter.errors)}")
        return order_filter.qs

    @staticmethod
    def get_orders_for_user(user, filters=None):
        queryset = Order.objects.filter(user=user).annotate(item_count=Count("items"))
        return OrderService.list_orders(filters, queryset=queryset)

    @staticmethod
    def get_order_history(order_id):
        OrderService._get_order(order_id)
        return OrderHistory.objects.filter(order_id=order_id).select_related("created_by").order_by("-created_at")

    @staticmethod
    @translate_db_errors("Failed to add order history")
    def add_history_entry(order_id, status: str, comment="", actor=None) -> OrderHistory:
        if not status:
            raise ValidationError("History status is required.")
        order = OrderService._get_order(order_id)
        return OrderHistory.objects.create(
            order=order, status=status, comment=comment or "", created_by=actor
        )

    @staticmethod
    def get_payment_details(order_id):
        return PaymentService.get_payment_details(order_id)

    @staticmethod
    def export_orders(filters=None) -> list:
        """
        Flat rows for CSV export, one per order.
        """
        rows = []
        for order in OrderService.list_orders(filters).order_by("-created_at"):
            shipping = order.shipping_address or {}
            rows.append({
                "order_number": order.order_number,
                "created_at": order.created_at.isoformat(),
                "status": order.status,
                "payment_status": order.payment_status,
                "total_amount": str(order.total_amount),
                "customer_email": order.user.email,
                "customer_name": order.user.full_name,
                "shipping_city": shipping.get("city", ""),
                "shipping_country": shipping.get("country", ""),
                "item_count": order.item_count,
            })
        return rows
