import uuid

from django.db import models

from apps.catalog.models import Product
from .order import Order

__all__ = ["OrderItem"]


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')

    # Snapshot fields (Critical for audit)
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=50)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    product_data = models.JSONField(default=dict, blank=True)

    quantity = models.PositiveIntegerField()
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=10, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="order_item_quantity_positive"),
            models.CheckConstraint(condition=models.Q(total__gte=0), name="order_item_total_non_negative"),
        ]

    def __str__(self):
        return f"{self.quantity}x {self.name}"

    def recalculate(self):
        self.subtotal = self.unit_price * self.quantity
        self.total = self.subtotal + self.tax_amount - self.discount_amount
        return self.total
