import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="InventoryStock",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("quantity", models.IntegerField(default=0)),
                ("reserved_quantity", models.IntegerField(default=0)),
                ("low_stock_threshold", models.IntegerField(default=5)),
                ("warehouse_location", models.CharField(blank=True, max_length=100)),
                ("last_restock_date", models.DateTimeField(blank=True, null=True)),
                (
                    "product",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inventory",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "verbose_name": "Inventory Stock",
                "db_table": "inventory",
            },
        ),
        migrations.AddConstraint(
            model_name="inventorystock",
            constraint=models.CheckConstraint(
                condition=models.Q(("quantity__gte", 0)), name="inventory_quantity_non_negative"
            ),
        ),
        migrations.AddConstraint(
            model_name="inventorystock",
            constraint=models.CheckConstraint(
                condition=models.Q(("reserved_quantity__gte", 0)), name="inventory_reserved_non_negative"
            ),
        ),
        migrations.CreateModel(
            name="StockMovementLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("quantity_change", models.IntegerField(help_text="Delta value (+/-)")),
                (
                    "movement_type",
                    models.CharField(
                        choices=[
                            ("order", "Outbound (Order)"),
                            ("restock", "Restock (Cancellation/Refund)"),
                            ("adjustment", "Manual Adjustment"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "reference",
                    models.CharField(db_index=True, help_text="Order number, adjustment reason", max_length=100),
                ),
                ("balance_after", models.IntegerField()),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "inventory",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="logs",
                        to="inventory.inventorystock",
                    ),
                ),
            ],
            options={
                "db_table": "inventory_movements",
                "ordering": ["-created_at"],
            },
        ),
    ]
