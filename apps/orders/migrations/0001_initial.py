import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


ORDER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("on_hold", "On Hold"),
    ("shipped", "Shipped"),
    ("delivered", "Delivered"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
    ("failed", "Failed"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("authorized", "Authorized"),
    ("paid", "Paid"),
    ("partially_refunded", "Partially Refunded"),
    ("refunded", "Refunded"),
    ("failed", "Failed"),
]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=10, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("order_number", models.CharField(editable=False, max_length=50, unique=True)),
                (
                    "status",
                    models.CharField(choices=ORDER_STATUS_CHOICES, db_index=True, default="pending", max_length=30),
                ),
                ("subtotal", money()),
                ("tax_amount", money(default=0)),
                ("shipping_amount", money(default=0)),
                ("discount_amount", money(default=0)),
                ("total_amount", money()),
                ("shipping_address", models.JSONField()),
                ("billing_address", models.JSONField()),
                ("payment_method", models.CharField(max_length=50)),
                (
                    "payment_status",
                    models.CharField(choices=PAYMENT_STATUS_CHOICES, db_index=True, default="pending", max_length=30),
                ),
                ("notes", models.TextField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["user", "created_at"], name="order_user_created_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("subtotal__gte", 0)), name="order_subtotal_non_negative"),
                    models.CheckConstraint(condition=models.Q(("tax_amount__gte", 0)), name="order_tax_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(("shipping_amount__gte", 0)), name="order_shipping_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("discount_amount__gte", 0)), name="order_discount_non_negative"
                    ),
                    models.CheckConstraint(condition=models.Q(("total_amount__gte", 0)), name="order_total_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("sku", models.CharField(max_length=50)),
                ("unit_price", money()),
                ("product_data", models.JSONField(blank=True, default=dict)),
                ("quantity", models.PositiveIntegerField()),
                ("subtotal", money()),
                ("tax_amount", money(default=0)),
                ("discount_amount", money(default=0)),
                ("total", money()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order"
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="catalog.product"
                    ),
                ),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gt", 0)), name="order_item_quantity_positive"),
                    models.CheckConstraint(condition=models.Q(("total__gte", 0)), name="order_item_total_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("status", models.CharField(max_length=30)),
                ("comment", models.TextField(blank=True)),
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
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="history", to="orders.order"
                    ),
                ),
            ],
            options={
                "db_table": "order_history",
                "ordering": ["-created_at"],
                "verbose_name_plural": "Order history",
            },
        ),
    ]
