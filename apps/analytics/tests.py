# apps/analytics/tests.py
from datetime import datetime, time, timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Category, Product
from apps.inventory.models import InventoryStock
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.utils.exceptions import DatabaseError

from . import services

User = get_user_model()

ADDRESS = {"city": "Lyon", "country": "FR"}


def today_range():
    day = timezone.localdate()
    return (
        timezone.make_aware(datetime.combine(day, time.min)),
        timezone.make_aware(datetime.combine(day, time.max)),
    )


class AnalyticsFixtureMixin:
    def make_fixtures(self):
        self.seller = User.objects.create_user(email="seller@example.com", password="pw", role="seller")
        self.alice = User.objects.create_user(email="alice@example.com", password="pw")
        self.bob = User.objects.create_user(email="bob@example.com", password="pw")

        self.books = Category.objects.create(name="Books")
        self.games = Category.objects.create(name="Games")
        self.novel = Product.objects.create(
            name="Novel", sku="BK-1", price=Decimal("10.00"), category=self.books, seller=self.seller
        )
        self.board_game = Product.objects.create(
            name="Board Game", sku="GM-1", price=Decimal("30.00"), category=self.games
        )
        InventoryStock.objects.create(product=self.novel, quantity=100)
        InventoryStock.objects.create(product=self.board_game, quantity=3, low_stock_threshold=5)

        # alice: 3 novels (30.00), completed
        self.order_a = OrderService.create_order(
            self.alice, [{"product_id": self.novel.id, "quantity": 3}], ADDRESS, "card"
        )
        OrderService.transition_status(self.order_a.id, "completed")
        # bob: 1 board game + 1 novel (40.00), pending
        self.order_b = OrderService.create_order(
            self.bob,
            [
                {"product_id": self.board_game.id, "quantity": 1},
                {"product_id": self.novel.id, "quantity": 1},
            ],
            ADDRESS,
            "card",
        )


class AnalyticsServiceTests(AnalyticsFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.start, self.end = today_range()

    def test_sales_overview(self):
        data = services.sales_overview(self.start, self.end)

        self.assertEqual(data["total_orders"], 2)
        self.assertEqual(data["unique_customers"], 2)
        self.assertEqual(data["revenue"], Decimal("70.00"))
        self.assertEqual(data["average_order_value"], Decimal("35.00"))
        self.assertEqual(data["completed_orders"], 1)
        self.assertEqual(data["completed_revenue"], Decimal("30.00"))
        self.assertIsNone(data["order_growth"])

    def test_growth_against_previous_period(self):
        earlier = OrderService.create_order(
            self.alice, [{"product_id": self.novel.id, "quantity": 1}], ADDRESS, "card"
        )
        Order.objects.filter(id=earlier.id).update(created_at=self.start - timedelta(hours=12))

        data = services.sales_overview(self.start, self.end)

        self.assertEqual(data["previous_orders"], 1)
        self.assertEqual(data["previous_revenue"], Decimal("10.00"))
        self.assertEqual(data["order_growth"], 100.0)
        self.assertEqual(data["revenue_growth"], 600.0)

    def test_seller_scoping_counts_orders_with_seller_items(self):
        data = services.sales_overview(self.start, self.end, seller=self.seller.id)
        products = services.top_products(self.start, self.end, seller=self.seller.id)

        self.assertEqual(data["total_orders"], 2)
        self.assertEqual([p["sku_code"] for p in products], ["BK-1"])

    def test_category_scoping(self):
        data = services.sales_overview(self.start, self.end, category=self.games.id)

        self.assertEqual(data["total_orders"], 1)
        self.assertEqual(data["revenue"], Decimal("40.00"))

    def test_daily_sales(self):
        rows = services.daily_sales(self.start, self.end)

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["orders"], 2)
        self.assertEqual(rows[0]["revenue"], Decimal("70.00"))

    def test_top_products(self):
        rows = services.top_products(self.start, self.end, limit=1)

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["product_name"], "Novel")
        self.assertEqual(rows[0]["units_sold"], 4)
        self.assertEqual(rows[0]["order_count"], 2)
        self.assertEqual(rows[0]["revenue"], Decimal("40.00"))

    def test_revenue_by_category(self):
        rows = services.revenue_by_category(self.start, self.end)

        by_name = {r["category_name"]: r for r in rows}
        self.assertEqual(by_name["Books"]["revenue"], Decimal("40.00"))
        self.assertEqual(by_name["Games"]["revenue"], Decimal("30.00"))
        self.assertEqual(rows[0]["category_name"], "Books")

    def test_order_status_breakdown(self):
        rows = services.order_status_breakdown(self.start, self.end)

        self.assertEqual({r["status"]: r["count"] for r in rows}, {"completed": 1, "pending": 1})

    def test_top_customers(self):
        rows = services.top_customers(self.start, self.end)

        self.assertEqual(rows[0]["email"], "bob@example.com")
        self.assertEqual(rows[0]["total_spent"], Decimal("40.00"))

    def test_inventory_status(self):
        data = services.inventory_status()

        self.assertEqual(data["low_stock_count"], 1)
        self.assertEqual(data["out_of_stock_count"], 0)
        self.assertEqual(data["low_stock_products"][0]["sku_code"], "GM-1")

    def test_empty_range(self):
        start = self.start - timedelta(days=30)
        data = services.sales_overview(start, start + timedelta(days=1))

        self.assertEqual(data["total_orders"], 0)
        self.assertEqual(data["revenue"], Decimal("0.00"))

    def test_query_failure_surfaces_as_database_error(self):
        with mock.patch.object(services, "_orders_between", side_effect=OperationalError("boom")):
            with self.assertRaises(DatabaseError) as ctx:
                services.sales_overview(self.start, self.end)

        self.assertEqual(ctx.exception.message, "Failed to fetch sales overview")
        self.assertIn("boom", ctx.exception.details)

    def test_reports_do_not_write(self):
        before = (Order.objects.count(), InventoryStock.objects.get(product=self.novel).quantity)

        services.sales_overview(self.start, self.end)
        services.inventory_status()

        after = (Order.objects.count(), InventoryStock.objects.get(product=self.novel).quantity)
        self.assertEqual(before, after)


class AnalyticsAPITests(AnalyticsFixtureMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.today = timezone.localdate().isoformat()

    def test_seller_reads_sales_overview(self):
        self.client.force_authenticate(self.seller)

        response = self.client.get(
            "/api/v1/analytics/sales/", {"start_date": self.today, "end_date": self.today}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_orders"], 2)
        self.assertEqual(response.data["revenue"], "70.00")

    def test_top_products_limit(self):
        self.client.force_authenticate(self.seller)

        response = self.client.get(
            "/api/v1/analytics/products/top/",
            {"start_date": self.today, "end_date": self.today, "limit": 1},
        )

        self.assertEqual(len(response.data), 1)

    def test_customer_forbidden(self):
        self.client.force_authenticate(self.alice)

        response = self.client.get("/api/v1/analytics/inventory/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_or_reversed_dates_rejected(self):
        self.client.force_authenticate(self.seller)

        missing = self.client.get("/api/v1/analytics/sales/daily/")
        reversed_range = self.client.get(
            "/api/v1/analytics/orders/status/",
            {"start_date": "2024-02-01", "end_date": "2024-01-01"},
        )

        self.assertEqual(missing.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(reversed_range.status_code, status.HTTP_400_BAD_REQUEST)
