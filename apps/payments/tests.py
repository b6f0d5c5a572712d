from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from apps.catalog.models import Product
from apps.inventory.models import InventoryStock
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.utils.exceptions import NotFoundError, ValidationError

from .models import Payment
from .services import PaymentService

User = get_user_model()


class PaymentServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="buyer@example.com", password="pw")
        product = Product.objects.create(name="Lamp", sku="LP-1", price=Decimal("25.00"))
        InventoryStock.objects.create(product=product, quantity=10)
        self.order = OrderService.create_order(
            self.user,
            [{"product_id": product.id, "quantity": 2}],
            {"city": "Oslo", "country": "NO"},
            "bank_transfer",
        )

    def test_authorized_payment_copies_status_and_uses_order_method(self):
        payment = PaymentService.record_payment(self.order.id, {"amount": "50.00", "status": "authorized"})

        self.order.refresh_from_db()
        self.assertEqual(payment.payment_method, "bank_transfer")
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.AUTHORIZED)
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertTrue(self.order.history.filter(status="payment_authorized").exists())

    def test_unknown_payment_status_rejected(self):
        with self.assertRaises(ValidationError):
            PaymentService.record_payment(self.order.id, {"amount": "50.00", "status": "bounced"})

        self.assertFalse(Payment.objects.exists())

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            PaymentService.record_payment(self.order.id, {"amount": "-1.00", "payment_method": "card"})

    def test_refundable_amount_tracks_payments_and_refunds(self):
        self.assertEqual(PaymentService.refundable_amount(self.order), Decimal("0.00"))

        PaymentService.record_payment(self.order.id, {"amount": "50.00", "payment_method": "card"})
        OrderService.refund_order(self.order.id, {"amount": "20.00"})

        self.assertEqual(PaymentService.paid_total(self.order), Decimal("50.00"))
        self.assertEqual(PaymentService.refunded_total(self.order), Decimal("20.00"))
        self.assertEqual(PaymentService.refundable_amount(self.order), Decimal("30.00"))

    def test_payment_details_newest_first(self):
        PaymentService.record_payment(self.order.id, {"amount": "50.00", "payment_method": "card"})
        OrderService.refund_order(self.order.id, {"amount": "50.00"})

        statuses = {p.status for p in PaymentService.get_payment_details(self.order.id)}

        self.assertEqual(statuses, {"completed", "refunded"})

    def test_payment_details_missing_order(self):
        with self.assertRaises(NotFoundError):
            list(PaymentService.get_payment_details("00000000-0000-0000-0000-000000000000"))

    def test_malformed_order_id_is_not_found(self):
        with self.assertRaises(NotFoundError):
            PaymentService.record_payment("not-a-uuid", {"amount": "10.00"})
        with self.assertRaises(NotFoundError):
            PaymentService.get_payment_details("not-a-uuid")

    def test_non_numeric_amount_rejected(self):
        with self.assertRaises(ValidationError):
            PaymentService.record_payment(self.order.id, {"amount": "abc"})

        self.assertFalse(Payment.objects.exists())
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)

    def test_non_numeric_refund_amount_rejected(self):
        PaymentService.record_payment(self.order.id, {"amount": "50.00"})

        with self.assertRaises(ValidationError):
            OrderService.refund_order(self.order.id, {"amount": "lots"})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PROCESSING)
        self.assertEqual(Payment.objects.filter(status="refunded").count(), 0)
