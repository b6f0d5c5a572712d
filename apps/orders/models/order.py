from django.conf import settings
from django.db import models

from apps.utils.models import TimestampedModel

__all__ = ["Order", "OrderStatus", "PaymentStatus"]


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    ON_HOLD = "on_hold", "On Hold"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    PAID = "paid", "Paid"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


class Order(TimestampedModel):
    Status = OrderStatus
    PaymentStatus = PaymentStatus

    # No generic transition out of these; refund has its own operation.
    TERMINAL_STATUSES = frozenset({
        OrderStatus.COMPLETED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
        OrderStatus.DELIVERED.value,
        OrderStatus.FAILED.value,
    })
    NON_CANCELLABLE_STATUSES = frozenset({
        OrderStatus.COMPLETED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
        OrderStatus.DELIVERED.value,
    })
    # Owners without admin rights may only cancel before fulfilment starts.
    OWNER_CANCELLABLE_STATUSES = frozenset({
        OrderStatus.PENDING.value,
        OrderStatus.PROCESSING.value,
    })
    NON_REFUNDABLE_STATUSES = frozenset({
        OrderStatus.REFUNDED.value,
        OrderStatus.CANCELLED.value,
    })

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')
    order_number = models.CharField(max_length=50, unique=True, editable=False)

    status = models.CharField(max_length=30, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)

    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    shipping_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)

    # Snapshots (JSON) to prevent historical drift
    shipping_address = models.JSONField()
    billing_address = models.JSONField()

    payment_method = models.CharField(max_length=50)
    payment_status = models.CharField(
        max_length=30, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    notes = models.TextField(blank=True, null=True)

    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="order_user_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(subtotal__gte=0), name="order_subtotal_non_negative"),
            models.CheckConstraint(condition=models.Q(tax_amount__gte=0), name="order_tax_non_negative"),
            models.CheckConstraint(condition=models.Q(shipping_amount__gte=0), name="order_shipping_non_negative"),
            models.CheckConstraint(condition=models.Q(discount_amount__gte=0), name="order_discount_non_negative"),
            models.CheckConstraint(condition=models.Q(total_amount__gte=0), name="order_total_non_negative"),
        ]

    def __str__(self):
        return f"{self.order_number} [{self.status}]"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def can_cancel(self):
        return self.status not in self.NON_CANCELLABLE_STATUSES

    @property
    def can_refund(self):
        return self.status not in self.NON_REFUNDABLE_STATUSES

    def recalculate_total(self):
        self.total_amount = self.subtotal + self.tax_amount + self.shipping_amount - self.discount_amount
        return self.total_amount
