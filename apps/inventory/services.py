import logging
from typing import Iterable

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.utils.exceptions import NotFoundError, ValidationError, translate_db_errors

from .models import InventoryStock, StockMovementLog

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Core Logic for Inventory Management.
    ALL stock changes must pass through here.

    decrement/restock expect to run inside the caller's transaction so the
    stock change commits or rolls back together with the order rows.
    """

    @staticmethod
    def _log(product_id, delta: int, movement_type: str, reference: str, actor=None):
        stock = InventoryStock.objects.get(product_id=product_id)
        StockMovementLog.objects.create(
            inventory=stock,
            quantity_change=delta,
            movement_type=movement_type,
            reference=reference,
            balance_after=stock.quantity,
            created_by=actor,
        )
        return stock

    @staticmethod
    def decrement(product_id, quantity: int, reference: str, actor=None) -> InventoryStock:
        """
        Conditional decrement: UPDATE ... WHERE quantity >= n.
        The row lock taken by the UPDATE serializes concurrent buyers; a
        loser sees zero affected rows instead of a negative balance.
        """
        if quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {quantity}.")

        updated = (
            InventoryStock.objects
            .filter(product_id=product_id, quantity__gte=quantity)
            .update(quantity=F("quantity") - quantity, updated_at=timezone.now())
        )

        if not updated:
            stock = InventoryStock.objects.select_related("product").filter(product_id=product_id).first()
            if stock is None:
                raise ValidationError(f"No inventory found for product: {product_id}")
            raise ValidationError(
                f"Insufficient inventory for product: {stock.product.name} ({stock.product.sku}). "
                f"Required: {quantity}, Available: {stock.quantity}"
            )

        return InventoryService._log(
            product_id, -quantity, StockMovementLog.MovementType.ORDER, reference, actor
        )

    @staticmethod
    def restock(product_id, quantity: int, reference: str, actor=None):
        """
        Puts stock back (cancellation / refund with return_to_inventory).
        Products without an inventory row are skipped.
        """
        updated = (
            InventoryStock.objects
            .filter(product_id=product_id)
            .update(quantity=F("quantity") + quantity, updated_at=timezone.now())
        )
        if not updated:
            logger.warning(f"Restock skipped: no inventory row for product {product_id} ({reference})")
            return None

        return InventoryService._log(
            product_id, quantity, StockMovementLog.MovementType.RESTOCK, reference, actor
        )

    @staticmethod
    def decrement_items(items: Iterable[dict], reference: str, actor=None):
        """
        items: [{"product_id": ..., "quantity": n}, ...]
        Rows are touched in product-id order so two orders sharing
        products always lock in the same sequence. Duplicate product
        lines are decremented one by one, not merged.
        """
        for item in sorted(items, key=lambda x: str(x["product_id"])):
            InventoryService.decrement(item["product_id"], item["quantity"], reference, actor)

    @staticmethod
    def restock_order(order, reference: str, actor=None) -> int:
        """
        Returns every physical item of `order` to stock, once per item.
        """
        restocked = 0
        items = order.items.select_related("product").order_by("product_id")
        for item in items:
            if not item.product.is_physical:
                continue
            if InventoryService.restock(item.product_id, item.quantity, reference, actor):
                restocked += item.quantity
        return restocked

    @staticmethod
    @translate_db_errors("Failed to adjust inventory")
    @transaction.atomic
    def manual_adjustment(product_id, delta_qty: int, user, reason: str) -> InventoryStock:
        """
        For Cycle Counts / Audits.
        """
        try:
            stock = InventoryStock.objects.select_for_update().get(product_id=product_id)
        except (InventoryStock.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Stock record not found.")

        if stock.quantity + delta_qty < 0:
            raise ValidationError(
                f"Adjustment would make stock negative (current {stock.quantity}, delta {delta_qty})."
            )

        stock.quantity = F("quantity") + delta_qty
        update_fields = ["quantity", "updated_at"]
        if delta_qty > 0:
            stock.last_restock_date = timezone.now()
            update_fields.append("last_restock_date")
        stock.save(update_fields=update_fields)
        stock.refresh_from_db()

        StockMovementLog.objects.create(
            inventory=stock,
            quantity_change=delta_qty,
            movement_type=StockMovementLog.MovementType.ADJUSTMENT,
            reference=f"MANUAL: {reason}"[:100],
            balance_after=stock.quantity,
            created_by=user
        )
        logger.info(f"Inventory adjusted for product {product_id}: {delta_qty:+d} -> {stock.quantity}")
        return stock

    @staticmethod
    def low_stock():
        return (
            InventoryStock.objects
            .select_related("product")
            .filter(quantity__lte=F("low_stock_threshold"))
            .order_by("quantity")
        )
