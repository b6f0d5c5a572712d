from django.db import models

from apps.orders.models import Order
from apps.utils.models import TimestampedModel


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"


class Payment(TimestampedModel):
    """
    One row per money movement against an order.
    Refunds are rows with status `refunded`; nothing is updated in place.
    """
    Status = PaymentStatus

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="payments")

    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_method = models.CharField(max_length=50)
    payment_provider = models.CharField(max_length=50, blank=True)

    # The transaction ID from the provider (e.g. 'pay_2983...')
    transaction_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)

    status = models.CharField(max_length=30, choices=PaymentStatus.choices)

    # Audit fields
    provider_response = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "status"], name="payment_order_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gte=0), name="payment_amount_non_negative"),
        ]

    def __str__(self):
        return f"{self.transaction_id or self.id} | {self.amount} | {self.status}"
