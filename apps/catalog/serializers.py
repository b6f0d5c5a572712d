# apps/catalog/serializers.py
from rest_framework import serializers
from .models import Product


class ProductSnapshotSerializer(serializers.ModelSerializer):
    """
    JSON-safe copy of a product, frozen onto order items at purchase time.
    """
    category = serializers.UUIDField(source="category_id", read_only=True)
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    seller = serializers.UUIDField(source="seller_id", read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "price",
            "brand",
            "category",
            "category_name",
            "seller",
            "is_physical",
        ]
