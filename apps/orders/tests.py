import threading
import unittest
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Category, Product
from apps.inventory.models import InventoryStock, StockMovementLog
from apps.payments.models import Payment
from apps.payments.services import PaymentService
from apps.utils.exceptions import (
    BusinessLogicException,
    ConflictError,
    NotFoundError,
    ValidationError,
)

from .models import Order, OrderHistory, OrderItem
from .services import OrderService
from .tasks import expire_stale_orders

User = get_user_model()

ADDRESS = {"line1": "1 Main St", "city": "Springfield", "country": "US"}


class OrderFixtureMixin:
    def make_fixtures(self):
        self.customer = User.objects.create_user(email="buyer@example.com", password="pw")
        self.admin = User.objects.create_user(email="admin@example.com", password="pw", role="admin")
        self.category = Category.objects.create(name="Kitchen")
        self.kettle = Product.objects.create(
            name="Kettle", sku="KT-1", price=Decimal("40.00"), category=self.category
        )
        self.mug = Product.objects.create(
            name="Mug", sku="MG-1", price=Decimal("7.50"), category=self.category
        )
        self.ebook = Product.objects.create(
            name="Recipes eBook", sku="EB-1", price=Decimal("9.99"), is_physical=False
        )
        self.kettle_stock = InventoryStock.objects.create(product=self.kettle, quantity=5)
        self.mug_stock = InventoryStock.objects.create(product=self.mug, quantity=20)

    def place_order(self, items=None, **kwargs):
        if items is None:
            items = [
                {"product_id": self.kettle.id, "quantity": 1},
                {"product_id": self.mug.id, "quantity": 4},
            ]
        kwargs.setdefault("shipping_address", ADDRESS)
        kwargs.setdefault("payment_method", "card")
        return OrderService.create_order(self.customer, items, **kwargs)

    def stock_of(self, product):
        return InventoryStock.objects.get(product=product).quantity


class CreateOrderTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_happy_path_creates_order_items_history_and_decrements_stock(self):
        order = self.place_order()

        self.assertTrue(order.order_number.startswith("ORD-"))
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(order.subtotal, Decimal("70.00"))
        self.assertEqual(order.total_amount, Decimal("70.00"))
        self.assertEqual(order.billing_address, ADDRESS)

        self.assertEqual(order.items.count(), 2)
        self.assertEqual(self.stock_of(self.kettle), 4)
        self.assertEqual(self.stock_of(self.mug), 16)

        history = list(order.history.all())
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].comment, "Order created")
        self.assertEqual(history[0].created_by, self.customer)

    def test_item_snapshot_is_frozen(self):
        order = self.place_order([{"product_id": self.kettle.id, "quantity": 2}])

        self.kettle.price = Decimal("55.00")
        self.kettle.name = "Kettle Pro"
        self.kettle.save()

        item = order.items.get()
        self.assertEqual(item.unit_price, Decimal("40.00"))
        self.assertEqual(item.name, "Kettle")
        self.assertEqual(item.product_data["sku"], "KT-1")
        self.assertEqual(item.subtotal, Decimal("80.00"))

    def test_totals_reconcile_with_adjustments(self):
        order = self.place_order(
            tax_amount="5.60", shipping_amount=Decimal("4.99"), discount_amount=10
        )

        self.assertEqual(order.total_amount, Decimal("70.59"))
        self.assertEqual(
            order.total_amount,
            order.subtotal + order.tax_amount + order.shipping_amount - order.discount_amount,
        )
        item_sum = sum(i.subtotal for i in order.items.all())
        self.assertEqual(order.subtotal, item_sum)

    def test_discount_larger_than_total_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.place_order(discount_amount="500.00")

        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.stock_of(self.kettle), 5)

    def test_empty_items_rejected_before_any_query(self):
        with self.assertNumQueries(0):
            with self.assertRaises(ValidationError):
                self.place_order(items=[])

    def test_oversell_is_rejected_and_nothing_persists(self):
        with self.assertRaises(ValidationError) as ctx:
            self.place_order([
                {"product_id": self.mug.id, "quantity": 2},
                {"product_id": self.kettle.id, "quantity": 6},
            ])

        self.assertIn("Insufficient inventory", ctx.exception.message)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.assertFalse(OrderHistory.objects.exists())
        self.assertFalse(StockMovementLog.objects.exists())
        self.assertEqual(self.stock_of(self.mug), 20)
        self.assertEqual(self.stock_of(self.kettle), 5)

    def test_unknown_product_rolls_back_whole_order(self):
        missing = "00000000-0000-0000-0000-000000000001"

        with self.assertRaises(ValidationError):
            self.place_order([
                {"product_id": self.mug.id, "quantity": 1},
                {"product_id": missing, "quantity": 1},
            ])

        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.stock_of(self.mug), 20)

    def test_non_numeric_adjustment_is_a_validation_error(self):
        with self.assertRaises(ValidationError):
            self.place_order(shipping_amount="abc")

        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.stock_of(self.kettle), 5)

    def test_product_without_inventory_row_is_rejected(self):
        plate = Product.objects.create(name="Plate", sku="PL-1", price=Decimal("3.00"))

        with self.assertRaises(ValidationError) as ctx:
            self.place_order([{"product_id": plate.id, "quantity": 1}])

        self.assertIn("No inventory found", ctx.exception.message)

    def test_duplicate_lines_are_decremented_independently(self):
        order = self.place_order([
            {"product_id": self.kettle.id, "quantity": 2},
            {"product_id": self.kettle.id, "quantity": 3},
        ])

        self.assertEqual(order.items.count(), 2)
        self.assertEqual(self.stock_of(self.kettle), 0)
        self.assertEqual(StockMovementLog.objects.filter(inventory=self.kettle_stock).count(), 2)

    def test_duplicate_lines_exceeding_stock_fail_as_a_whole(self):
        with self.assertRaises(ValidationError):
            self.place_order([
                {"product_id": self.kettle.id, "quantity": 3},
                {"product_id": self.kettle.id, "quantity": 3},
            ])

        self.assertEqual(self.stock_of(self.kettle), 5)

    def test_non_physical_product_skips_inventory(self):
        order = self.place_order([{"product_id": self.ebook.id, "quantity": 1}])

        self.assertEqual(order.total_amount, Decimal("9.99"))
        self.assertFalse(StockMovementLog.objects.exists())

    def test_invalid_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            self.place_order([{"product_id": self.kettle.id, "quantity": 0}])

    def test_order_number_collision_surfaces_as_conflict(self):
        with mock.patch("apps.orders.services.generate_order_number", return_value="ORD-12345678-0001"):
            self.place_order([{"product_id": self.mug.id, "quantity": 1}])
            with self.assertRaises(ConflictError):
                self.place_order([{"product_id": self.mug.id, "quantity": 1}])

        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(self.stock_of(self.mug), 19)


class TransitionStatusTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.place_order()

    def test_transition_appends_history(self):
        order = OrderService.transition_status(self.order.id, "processing", comment="Packed", actor=self.admin)

        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertIsNone(order.completed_at)
        latest = order.history.get(status="processing")
        self.assertEqual(latest.comment, "Packed")
        self.assertEqual(latest.created_by, self.admin)

    def test_completed_sets_completed_at(self):
        order = OrderService.transition_status(self.order.id, "completed")

        self.assertIsNotNone(order.completed_at)

    def test_terminal_order_cannot_transition(self):
        OrderService.transition_status(self.order.id, "delivered")

        with self.assertRaises(ConflictError):
            OrderService.transition_status(self.order.id, "processing")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.DELIVERED)

    def test_unknown_status_rejected(self):
        with self.assertRaises(ValidationError):
            OrderService.transition_status(self.order.id, "teleported")

    def test_missing_order(self):
        with self.assertRaises(NotFoundError):
            OrderService.transition_status("00000000-0000-0000-0000-000000000000", "processing")


class CancelOrderTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.place_order()

    def test_cancel_restocks_every_item(self):
        order = OrderService.cancel_order(self.order.id, actor=self.customer, reason="Changed my mind")

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(self.stock_of(self.kettle), 5)
        self.assertEqual(self.stock_of(self.mug), 20)
        entry = order.history.get(status="cancelled")
        self.assertEqual(entry.comment, "Changed my mind")

    def test_second_cancel_is_rejected_and_restock_happens_once(self):
        OrderService.cancel_order(self.order.id)

        with self.assertRaises(ConflictError):
            OrderService.cancel_order(self.order.id)

        self.assertEqual(self.stock_of(self.kettle), 5)
        self.assertEqual(self.stock_of(self.mug), 20)
        restocks = StockMovementLog.objects.filter(movement_type=StockMovementLog.MovementType.RESTOCK)
        self.assertEqual(restocks.count(), 2)

    def test_cancel_terminal_order_rejected_without_changes(self):
        OrderService.transition_status(self.order.id, "completed")
        history_before = self.order.history.count()

        with self.assertRaises(ConflictError) as ctx:
            OrderService.cancel_order(self.order.id)

        self.assertIn("completed", ctx.exception.message)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.COMPLETED)
        self.assertEqual(self.order.history.count(), history_before)
        self.assertEqual(self.stock_of(self.kettle), 4)

    def test_cancel_on_hold_order_is_allowed(self):
        OrderService.transition_status(self.order.id, "on_hold")

        order = OrderService.cancel_order(self.order.id)

        self.assertEqual(order.status, Order.Status.CANCELLED)


class PaymentTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.place_order()

    def pay(self, **overrides):
        data = {
            "amount": self.order.total_amount,
            "payment_method": "card",
            "payment_provider": "stripe",
            "transaction_id": "txn_1",
        }
        data.update(overrides)
        return PaymentService.record_payment(self.order.id, data)

    def test_completed_payment_marks_order_paid_and_processing(self):
        payment = self.pay()

        self.order.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(self.order.status, Order.Status.PROCESSING)
        entry = self.order.history.get(status="payment_paid")
        self.assertEqual(entry.comment, "Payment processed via card")

    def test_double_payment_rejected(self):
        self.pay()

        with self.assertRaises(ConflictError):
            self.pay(transaction_id="txn_2")

        self.assertEqual(self.order.payments.count(), 1)

    def test_failed_payment_status_copied_and_order_stays_pending(self):
        self.pay(status="failed")

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.FAILED)
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_payment_on_missing_order(self):
        with self.assertRaises(NotFoundError):
            PaymentService.record_payment(
                "00000000-0000-0000-0000-000000000000", {"amount": 1, "payment_method": "card"}
            )


class RefundOrderTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.place_order()
        PaymentService.record_payment(
            self.order.id, {"amount": "70.00", "payment_method": "card", "transaction_id": "txn_1"}
        )

    def test_full_refund(self):
        refund = OrderService.refund_order(self.order.id, {"amount": "70.00"}, actor=self.admin)

        self.order.refresh_from_db()
        self.assertEqual(refund.status, Payment.Status.REFUNDED)
        self.assertEqual(refund.payment_method, "card")
        self.assertEqual(self.order.status, Order.Status.REFUNDED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.REFUNDED)
        self.assertTrue(self.order.history.filter(status="refunded", comment="Order refunded").exists())
        # Stock stays out unless explicitly returned.
        self.assertEqual(self.stock_of(self.kettle), 4)

    def test_partial_refund_with_restock(self):
        OrderService.refund_order(
            self.order.id,
            {"amount": "30.00", "reason": "Damaged", "return_to_inventory": True},
        )

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PARTIALLY_REFUNDED)
        self.assertEqual(self.stock_of(self.kettle), 5)
        self.assertEqual(self.stock_of(self.mug), 20)

    def test_refund_above_paid_total_rejected_when_capped(self):
        with self.assertRaises(ValidationError):
            OrderService.refund_order(self.order.id, {"amount": "70.01"})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PROCESSING)
        self.assertEqual(self.order.payments.count(), 1)

    @override_settings(ORDER_REFUND_POLICY="unrestricted")
    def test_refund_above_paid_total_allowed_when_unrestricted(self):
        refund = OrderService.refund_order(self.order.id, {"amount": "100.00"})

        self.assertEqual(refund.amount, Decimal("100.00"))

    def test_refund_cancelled_order_rejected(self):
        other = self.place_order([{"product_id": self.mug.id, "quantity": 1}])
        OrderService.cancel_order(other.id)

        with self.assertRaises(ConflictError):
            OrderService.refund_order(other.id, {"amount": "0.00"})

    def test_refund_twice_rejected(self):
        OrderService.refund_order(self.order.id, {"amount": "10.00"})

        with self.assertRaises(ConflictError):
            OrderService.refund_order(self.order.id, {"amount": "10.00"})

    def test_refund_after_delivery_is_allowed(self):
        OrderService.transition_status(self.order.id, "delivered")

        OrderService.refund_order(self.order.id, {"amount": "70.00"})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.REFUNDED)


class UpdateOrderItemTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.place_order(shipping_amount="5.00")
        self.item = self.order.items.get(product=self.mug)

    def test_quantity_increase_moves_stock_and_totals(self):
        item = OrderService.update_order_item(self.order.id, self.item.id, quantity=6, actor=self.admin)

        self.order.refresh_from_db()
        self.assertEqual(item.subtotal, Decimal("45.00"))
        self.assertEqual(self.order.subtotal, Decimal("85.00"))
        self.assertEqual(self.order.total_amount, Decimal("90.00"))
        self.assertEqual(self.stock_of(self.mug), 14)

    def test_quantity_decrease_restocks_delta(self):
        OrderService.update_order_item(self.order.id, self.item.id, quantity=1)

        self.assertEqual(self.stock_of(self.mug), 19)

    def test_increase_beyond_stock_rolls_back(self):
        with self.assertRaises(ValidationError):
            OrderService.update_order_item(self.order.id, self.item.id, quantity=40)

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 4)
        self.assertEqual(self.stock_of(self.mug), 16)

    def test_terminal_order_items_are_frozen(self):
        OrderService.transition_status(self.order.id, "completed")

        with self.assertRaises(ConflictError):
            OrderService.update_order_item(self.order.id, self.item.id, unit_price="1.00")

    def test_unknown_item(self):
        with self.assertRaises(NotFoundError):
            OrderService.update_order_item(
                self.order.id, "00000000-0000-0000-0000-000000000000", quantity=1
            )


class OrderReadTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_get_order_by_id_returns_related_rows(self):
        order = self.place_order()
        PaymentService.record_payment(order.id, {"amount": "70.00", "payment_method": "card"})

        fetched = OrderService.get_order_by_id(order.id)

        self.assertEqual(len(fetched.items.all()), 2)
        statuses = {h.status for h in fetched.history.all()}
        self.assertEqual(statuses, {"pending", "payment_paid"})
        self.assertEqual(len(fetched.payments.all()), 1)

    def test_get_order_by_id_missing(self):
        with self.assertRaises(NotFoundError):
            OrderService.get_order_by_id("not-a-uuid")

    def test_list_orders_filters_by_status_list(self):
        first = self.place_order([{"product_id": self.mug.id, "quantity": 1}])
        second = self.place_order([{"product_id": self.mug.id, "quantity": 1}])
        third = self.place_order([{"product_id": self.mug.id, "quantity": 1}])
        OrderService.transition_status(second.id, "processing")
        OrderService.cancel_order(third.id)

        ids = set(OrderService.list_orders({"status": "pending,processing"}).values_list("id", flat=True))

        self.assertEqual(ids, {first.id, second.id})

    def test_get_orders_for_user_scopes_to_owner(self):
        self.place_order()
        other = User.objects.create_user(email="other@example.com", password="pw")

        self.assertEqual(OrderService.get_orders_for_user(other).count(), 0)
        self.assertEqual(OrderService.get_orders_for_user(self.customer).count(), 1)

    def test_export_rows(self):
        self.place_order()

        rows = OrderService.export_orders()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["customer_email"], "buyer@example.com")
        self.assertEqual(rows[0]["shipping_city"], "Springfield")
        self.assertEqual(rows[0]["item_count"], 2)

    def test_history_is_append_only(self):
        order = self.place_order()
        entry = OrderService.add_history_entry(order.id, "note", comment="Called customer", actor=self.admin)

        entry.comment = "edited"
        with self.assertRaises(RuntimeError):
            entry.save()
        with self.assertRaises(RuntimeError):
            entry.delete()
        self.assertEqual(OrderService.get_order_history(order.id).count(), 2)


class ExpireStaleOrdersTaskTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    @override_settings(ORDER_PAYMENT_TIMEOUT_MINUTES=30)
    def test_expires_only_old_unpaid_orders(self):
        stale = self.place_order([{"product_id": self.kettle.id, "quantity": 2}])
        fresh = self.place_order([{"product_id": self.kettle.id, "quantity": 1}])
        Order.objects.filter(id=stale.id).update(created_at=timezone.now() - timedelta(hours=1))

        result = expire_stale_orders()

        self.assertEqual(result, "Expired 1 orders")
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, Order.Status.CANCELLED)
        self.assertEqual(fresh.status, Order.Status.PENDING)
        self.assertEqual(self.stock_of(self.kettle), 4)


class OrderAPITests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.seller = User.objects.create_user(email="seller@example.com", password="pw", role="seller")

    def create_via_api(self, quantity=1):
        return self.client.post(
            "/api/v1/orders/",
            {
                "items": [{"product_id": str(self.kettle.id), "quantity": quantity}],
                "shipping_address": ADDRESS,
                "payment_method": "card",
                "shipping_amount": "3.00",
            },
            format="json",
        )

    def test_customer_creates_order(self):
        self.client.force_authenticate(self.customer)

        response = self.create_via_api()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_amount"], "43.00")
        self.assertEqual(len(response.data["items"]), 1)
        self.assertEqual(response.data["history"][0]["comment"], "Order created")

    def test_oversell_via_api_returns_400(self):
        self.client.force_authenticate(self.customer)

        response = self.create_via_api(quantity=99)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_error")

    def test_unauthenticated_request_rejected(self):
        response = self.client.get("/api/v1/orders/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_customer_sees_only_own_orders(self):
        own = self.place_order()
        stranger = User.objects.create_user(email="stranger@example.com", password="pw")
        self.client.force_authenticate(stranger)

        listing = self.client.get("/api/v1/orders/")
        detail = self.client.get(f"/api/v1/orders/{own.id}/")

        self.assertEqual(listing.data["count"], 0)
        self.assertEqual(detail.status_code, status.HTTP_404_NOT_FOUND)

    def test_seller_lists_all_orders(self):
        self.place_order()
        self.client.force_authenticate(self.seller)

        response = self.client.get("/api/v1/orders/", {"status": "pending"})

        self.assertEqual(response.data["count"], 1)

    def test_customer_can_cancel_own_order(self):
        order = self.place_order()
        self.client.force_authenticate(self.customer)

        response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {"reason": "oops"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "cancelled")

    def test_cancel_completed_order_returns_409(self):
        order = self.place_order()
        OrderService.transition_status(order.id, "completed")
        self.client.force_authenticate(self.admin)

        response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "conflict")

    def test_seller_cannot_cancel_another_customers_order(self):
        order = self.place_order()
        self.client.force_authenticate(self.seller)

        response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        order.refresh_from_db()
        self.assertEqual(order.status, "pending")
        self.assertEqual(self.stock_of(self.kettle), 4)

    def test_owner_cannot_cancel_shipped_order(self):
        order = self.place_order()
        OrderService.transition_status(order.id, "shipped")
        self.client.force_authenticate(self.customer)

        response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_error")
        order.refresh_from_db()
        self.assertEqual(order.status, "shipped")
        self.assertEqual(self.stock_of(self.kettle), 4)

    def test_admin_cancels_shipped_order(self):
        order = self.place_order()
        OrderService.transition_status(order.id, "shipped")
        self.client.force_authenticate(self.admin)

        response = self.client.post(f"/api/v1/orders/{order.id}/cancel/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "cancelled")
        self.assertEqual(self.stock_of(self.kettle), 5)

    def test_customer_cannot_change_status_or_refund(self):
        order = self.place_order()
        self.client.force_authenticate(self.customer)

        status_resp = self.client.post(
            f"/api/v1/orders/{order.id}/status/", {"status": "shipped"}, format="json"
        )
        refund_resp = self.client.post(f"/api/v1/orders/{order.id}/refund/", {"amount": "1.00"}, format="json")

        self.assertEqual(status_resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(refund_resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_status_returns_400(self):
        order = self.place_order()
        self.client.force_authenticate(self.seller)

        response = self.client.post(
            f"/api/v1/orders/{order.id}/status/", {"status": "lost"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_error")

    def test_customer_pays_then_double_payment_conflicts(self):
        order = self.place_order()
        self.client.force_authenticate(self.customer)
        url = f"/api/v1/orders/{order.id}/payment/"
        body = {"amount": "70.00", "payment_method": "card", "transaction_id": "txn_9"}

        first = self.client.post(url, body, format="json")
        second = self.client.post(url, body, format="json")
        listing = self.client.get(url)

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(len(listing.data), 1)

    def test_admin_edits_item(self):
        order = self.place_order()
        item = order.items.get(product=self.mug)
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            f"/api/v1/orders/{order.id}/items/{item.id}/", {"quantity": 2}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["quantity"], 2)
        self.assertEqual(self.stock_of(self.mug), 18)

    def test_history_endpoint(self):
        order = self.place_order()
        self.client.force_authenticate(self.seller)

        post = self.client.post(
            f"/api/v1/orders/{order.id}/history/", {"status": "note", "comment": "Called"}, format="json"
        )
        listing = self.client.get(f"/api/v1/orders/{order.id}/history/")

        self.assertEqual(post.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(listing.data), 2)

    def test_export_csv_admin_only(self):
        self.place_order()

        self.client.force_authenticate(self.seller)
        denied = self.client.get("/api/v1/orders/export/")
        self.client.force_authenticate(self.admin)
        allowed = self.client.get("/api/v1/orders/export/")

        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(allowed.status_code, status.HTTP_200_OK)
        self.assertEqual(allowed["Content-Type"], "text/csv")
        lines = allowed.content.decode().strip().splitlines()
        self.assertTrue(lines[0].startswith("order_number,created_at"))
        self.assertEqual(len(lines), 2)


@unittest.skipUnless(connection.vendor == "postgresql", "row-level locking needs PostgreSQL")
class ConcurrentOversellTests(OrderFixtureMixin, TransactionTestCase):
    """Two buyers racing for the last unit: exactly one order survives."""

    def setUp(self):
        self.make_fixtures()
        InventoryStock.objects.filter(product=self.kettle).update(quantity=1)
        self.second = User.objects.create_user(email="second@example.com", password="pw")

    def test_last_unit_sold_once(self):
        results = []
        barrier = threading.Barrier(2)

        def buy(user):
            barrier.wait()
            try:
                OrderService.create_order(
                    user, [{"product_id": self.kettle.id, "quantity": 1}], ADDRESS, "card"
                )
                results.append("ok")
            except BusinessLogicException:
                results.append("rejected")
            finally:
                connection.close()

        threads = [threading.Thread(target=buy, args=(u,)) for u in (self.customer, self.second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(results), ["ok", "rejected"])
        self.assertEqual(self.stock_of(self.kettle), 0)
        self.assertEqual(Order.objects.count(), 1)
