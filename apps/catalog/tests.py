# apps/catalog/tests.py
from decimal import Decimal

from django.test import TestCase

from .models import Category, Product
from .serializers import ProductSnapshotSerializer


class CategoryModelTests(TestCase):
    def test_category_slug_auto_generated_and_unique(self):
        parent = Category.objects.create(name="Electronics")
        c1 = Category.objects.create(name="Audio", parent=parent)
        c2 = Category.objects.create(name="Audio")

        self.assertNotEqual(c1.slug, c2.slug)
        self.assertTrue(c1.slug.startswith("audio"))
        self.assertTrue(c2.slug.startswith("audio"))


class ProductSnapshotTests(TestCase):
    def test_snapshot_is_json_safe(self):
        cat = Category.objects.create(name="Books")
        product = Product.objects.create(
            name="Field Guide", sku="BK-001", price=Decimal("12.50"), category=cat
        )

        data = ProductSnapshotSerializer(product).data

        self.assertEqual(data["sku"], "BK-001")
        self.assertEqual(data["price"], "12.50")
        self.assertEqual(data["category_name"], "Books")
        self.assertEqual(data["id"], str(product.id))
