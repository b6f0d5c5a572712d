from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Category, Product
from apps.utils.exceptions import NotFoundError, ValidationError

from .models import InventoryStock, StockMovementLog
from .services import InventoryService

User = get_user_model()


class InventoryServiceTests(TestCase):
    def setUp(self):
        self.category = Category.objects.create(name="Hardware")
        self.product = Product.objects.create(
            name="Hammer", sku="HW-001", price=Decimal("15.00"), category=self.category
        )
        self.stock = InventoryStock.objects.create(product=self.product, quantity=10)
        self.admin = User.objects.create_user(email="admin@example.com", password="pw", role="admin")

    def test_decrement_reduces_quantity_and_logs_movement(self):
        InventoryService.decrement(self.product.id, 4, reference="ORD-1")

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 6)
        log = StockMovementLog.objects.get(inventory=self.stock)
        self.assertEqual(log.quantity_change, -4)
        self.assertEqual(log.balance_after, 6)
        self.assertEqual(log.movement_type, StockMovementLog.MovementType.ORDER)

    def test_decrement_insufficient_stock_leaves_quantity_unchanged(self):
        with self.assertRaises(ValidationError) as ctx:
            InventoryService.decrement(self.product.id, 11, reference="ORD-2")

        self.assertIn("Insufficient inventory for product", ctx.exception.message)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 10)
        self.assertFalse(StockMovementLog.objects.exists())

    def test_decrement_without_inventory_row(self):
        other = Product.objects.create(name="Nails", sku="HW-002", price=Decimal("2.00"))

        with self.assertRaises(ValidationError) as ctx:
            InventoryService.decrement(other.id, 1, reference="ORD-3")

        self.assertIn("No inventory found for product", ctx.exception.message)

    def test_decrement_exact_quantity_reaches_zero(self):
        InventoryService.decrement(self.product.id, 10, reference="ORD-4")

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 0)

    def test_restock_adds_quantity(self):
        InventoryService.restock(self.product.id, 3, reference="CANCEL-1")

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 13)
        self.assertEqual(
            StockMovementLog.objects.get().movement_type, StockMovementLog.MovementType.RESTOCK
        )

    def test_restock_missing_row_is_skipped(self):
        other = Product.objects.create(name="Saw", sku="HW-003", price=Decimal("20.00"))

        self.assertIsNone(InventoryService.restock(other.id, 2, reference="CANCEL-2"))

    def test_manual_adjustment(self):
        stock = InventoryService.manual_adjustment(self.product.id, -3, self.admin, "damaged")

        self.assertEqual(stock.quantity, 7)
        log = StockMovementLog.objects.get()
        self.assertEqual(log.movement_type, StockMovementLog.MovementType.ADJUSTMENT)
        self.assertEqual(log.created_by, self.admin)
        self.assertTrue(log.reference.startswith("MANUAL"))

    def test_manual_adjustment_cannot_go_negative(self):
        with self.assertRaises(ValidationError):
            InventoryService.manual_adjustment(self.product.id, -11, self.admin, "count")

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 10)

    def test_manual_adjustment_unknown_product(self):
        other = Product.objects.create(name="Drill", sku="HW-004", price=Decimal("80.00"))

        with self.assertRaises(NotFoundError):
            InventoryService.manual_adjustment(other.id, 5, self.admin, "count")

    def test_manual_adjustment_malformed_product_id(self):
        with self.assertRaises(NotFoundError):
            InventoryService.manual_adjustment("not-a-uuid", 5, self.admin, "count")

    def test_movement_log_is_append_only(self):
        InventoryService.restock(self.product.id, 1, reference="R")
        log = StockMovementLog.objects.get()

        log.reference = "changed"
        with self.assertRaises(RuntimeError):
            log.save()
        with self.assertRaises(RuntimeError):
            log.delete()


class InventoryAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="admin@example.com", password="pw", role="admin")
        self.customer = User.objects.create_user(email="buyer@example.com", password="pw")
        self.low = Product.objects.create(name="Widget", sku="W-1", price=Decimal("5.00"))
        self.plenty = Product.objects.create(name="Gadget", sku="G-1", price=Decimal("9.00"))
        InventoryStock.objects.create(product=self.low, quantity=2, low_stock_threshold=5)
        InventoryStock.objects.create(product=self.plenty, quantity=50, low_stock_threshold=5)

    def test_low_stock_lists_only_products_at_or_below_threshold(self):
        self.client.force_authenticate(self.admin)

        response = self.client.get("/api/v1/inventory/low-stock/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        skus = [row["sku"] for row in response.data["results"]]
        self.assertEqual(skus, ["W-1"])

    def test_customer_cannot_view_inventory(self):
        self.client.force_authenticate(self.customer)

        response = self.client.get("/api/v1/inventory/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_adjust_endpoint(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            "/api/v1/inventory/adjust/",
            {"product_id": str(self.plenty.id), "delta_quantity": -5, "reason": "audit"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["quantity"], 45)

    def test_adjust_rejects_negative_result(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            "/api/v1/inventory/adjust/",
            {"product_id": str(self.low.id), "delta_quantity": -3, "reason": "audit"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_error")
