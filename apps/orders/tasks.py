import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from apps.utils.exceptions import BusinessLogicException

from .models import Order
from .services import OrderService

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_orders():
    """
    Cancels (and restocks) pending, unpaid orders older than
    ORDER_PAYMENT_TIMEOUT_MINUTES. Each order is its own transaction.
    """
    minutes = getattr(settings, "ORDER_PAYMENT_TIMEOUT_MINUTES", 30)
    cutoff = timezone.now() - timedelta(minutes=minutes)

    stale_ids = list(
        Order.objects.filter(
            status=Order.Status.PENDING,
            payment_status=Order.PaymentStatus.PENDING,
            created_at__lt=cutoff,
        ).values_list("id", flat=True)
    )

    count = 0
    for order_id in stale_ids:
        try:
            OrderService.cancel_order(order_id, reason="Payment timeout")
            count += 1
        except BusinessLogicException as e:
            # Paid or cancelled between the query and the lock.
            logger.warning(f"Failed to expire order {order_id}: {e.message}")

    if count:
        logger.info(f"Expired {count} stale pending order(s)")
    return f"Expired {count} orders"
