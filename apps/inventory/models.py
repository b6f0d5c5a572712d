from django.db import models
from django.conf import settings
from apps.catalog.models import Product
from apps.utils.models import TimestampedModel, AppendOnlyModel


class InventoryStock(TimestampedModel):
    """
    Available stock per product.
    `quantity` never goes below zero: the DB check constraint backs the
    conditional UPDATE in InventoryService.
    """
    product = models.OneToOneField(
        Product,
        on_delete=models.CASCADE,
        related_name='inventory',
    )

    quantity = models.IntegerField(default=0)
    reserved_quantity = models.IntegerField(default=0)

    low_stock_threshold = models.IntegerField(default=5)
    warehouse_location = models.CharField(max_length=100, blank=True)
    last_restock_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "inventory"
        verbose_name = "Inventory Stock"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='inventory_quantity_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(reserved_quantity__gte=0),
                name='inventory_reserved_non_negative'
            ),
        ]

    @property
    def is_low_stock(self):
        return self.quantity <= self.low_stock_threshold

    def __str__(self):
        return f"{self.product.sku} | Qty: {self.quantity}"


class StockMovementLog(AppendOnlyModel):
    """
    Immutable Ledger of all inventory changes.
    """
    class MovementType(models.TextChoices):
        ORDER = "order", "Outbound (Order)"
        RESTOCK = "restock", "Restock (Cancellation/Refund)"
        ADJUSTMENT = "adjustment", "Manual Adjustment"

    inventory = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='logs'
    )

    quantity_change = models.IntegerField(help_text="Delta value (+/-)")
    movement_type = models.CharField(max_length=20, choices=MovementType.choices)

    # Traceability
    reference = models.CharField(max_length=100, db_index=True, help_text="Order number, adjustment reason")
    balance_after = models.IntegerField()

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL
    )

    class Meta:
        db_table = "inventory_movements"
        ordering = ['-created_at']
