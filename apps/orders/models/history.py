from django.conf import settings
from django.db import models

from apps.utils.models import AppendOnlyModel
from .order import Order

__all__ = ["OrderHistory"]


class OrderHistory(AppendOnlyModel):
    """
    Audit trail: one row per status change or payment event.
    """
    order = models.ForeignKey(Order, related_name="history", on_delete=models.PROTECT)

    status = models.CharField(max_length=30)  # Stores the status *after* change
    comment = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL
    )

    class Meta:
        db_table = "order_history"
        ordering = ["-created_at"]
        verbose_name_plural = "Order history"

    def __str__(self):
        return f"{self.order_id} -> {self.status}"
