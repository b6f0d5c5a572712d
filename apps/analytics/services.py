# apps/analytics/services.py
"""
Read-only reporting over orders, order items and inventory.

Every function takes an inclusive [start, end] datetime range and optional
seller / category scoping. Order-level figures count orders containing at
least one matching item; item-level figures count only the matching items.
Query failures leave as DatabaseError.
"""
import logging
from decimal import Decimal

from django.db.models import Avg, Count, F, Q, Sum
from django.db.models.functions import TruncDate

from apps.inventory.models import InventoryStock
from apps.orders.models import Order, OrderItem
from apps.utils.exceptions import translate_db_errors
from apps.utils.utils import to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _scoped_items(seller=None, category=None):
    items = OrderItem.objects.all()
    if seller:
        items = items.filter(product__seller_id=seller)
    if category:
        items = items.filter(product__category_id=category)
    return items


def _orders_between(start, end, seller=None, category=None, end_inclusive=True):
    end_lookup = "created_at__lte" if end_inclusive else "created_at__lt"
    qs = Order.objects.filter(created_at__gte=start, **{end_lookup: end})
    if seller or category:
        qs = qs.filter(id__in=_scoped_items(seller, category).values("order_id"))
    return qs


def _items_between(start, end, seller=None, category=None):
    return _scoped_items(seller, category).filter(
        order__created_at__gte=start, order__created_at__lte=end
    )


def _growth(current, previous):
    """Percentage change, None when the previous period is empty."""
    if not previous:
        return None
    return round(float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100), 2)


@translate_db_errors("Failed to fetch sales overview")
def sales_overview(start, end, seller=None, category=None) -> dict:
    completed = Q(status=Order.Status.COMPLETED)
    agg = _orders_between(start, end, seller, category).aggregate(
        total_orders=Count("id"),
        unique_customers=Count("user", distinct=True),
        revenue=Sum("total_amount"),
        average_order_value=Avg("total_amount"),
        completed_orders=Count("id", filter=completed),
        completed_revenue=Sum("total_amount", filter=completed),
    )

    # Previous period of equal length, ending where this one starts.
    period = end - start
    previous = _orders_between(
        start - period, start, seller, category, end_inclusive=False
    ).aggregate(orders=Count("id"), revenue=Sum("total_amount"))

    revenue = agg["revenue"] or ZERO
    previous_revenue = previous["revenue"] or ZERO

    return {
        "total_orders": agg["total_orders"],
        "unique_customers": agg["unique_customers"],
        "revenue": to_money(revenue),
        "average_order_value": to_money(agg["average_order_value"] or ZERO),
        "completed_orders": agg["completed_orders"],
        "completed_revenue": to_money(agg["completed_revenue"] or ZERO),
        "previous_orders": previous["orders"],
        "previous_revenue": to_money(previous_revenue),
        "order_growth": _growth(agg["total_orders"], previous["orders"]),
        "revenue_growth": _growth(revenue, previous_revenue),
    }


@translate_db_errors("Failed to fetch daily sales")
def daily_sales(start, end, seller=None, category=None) -> list:
    rows = (
        _orders_between(start, end, seller, category)
        .annotate(date=TruncDate("created_at"))
        .values("date")
        .annotate(orders=Count("id"), revenue=Sum("total_amount"))
        .order_by("date")
    )
    return list(rows)


@translate_db_errors("Failed to fetch top products")
def top_products(start, end, limit=10, seller=None, category=None) -> list:
    rows = (
        _items_between(start, end, seller, category)
        .values("product_id", product_name=F("product__name"), sku_code=F("product__sku"))
        .annotate(
            units_sold=Sum("quantity"),
            revenue=Sum("total"),
            order_count=Count("order_id", distinct=True),
        )
        .order_by("-units_sold", "product_name")[:limit]
    )
    return list(rows)


@translate_db_errors("Failed to fetch revenue by category")
def revenue_by_category(start, end, seller=None, category=None) -> list:
    rows = (
        _items_between(start, end, seller, category)
        .filter(product__category__isnull=False)
        .values(category_id=F("product__category_id"), category_name=F("product__category__name"))
        .annotate(
            revenue=Sum("total"),
            orders=Count("order_id", distinct=True),
            units_sold=Sum("quantity"),
        )
        .order_by("-revenue")
    )
    return list(rows)


@translate_db_errors("Failed to fetch order status breakdown")
def order_status_breakdown(start, end, seller=None, category=None) -> list:
    rows = (
        _orders_between(start, end, seller, category)
        .values("status")
        .annotate(count=Count("id"), revenue=Sum("total_amount"))
        .order_by("-count", "status")
    )
    return list(rows)


@translate_db_errors("Failed to fetch top customers")
def top_customers(start, end, limit=10, seller=None, category=None) -> list:
    rows = (
        _orders_between(start, end, seller, category)
        .values("user_id", email=F("user__email"))
        .annotate(order_count=Count("id"), total_spent=Sum("total_amount"))
        .order_by("-total_spent", "email")[:limit]
    )
    return list(rows)


@translate_db_errors("Failed to fetch inventory status")
def inventory_status(limit=10) -> dict:
    low = Q(quantity__lte=F("low_stock_threshold"))
    agg = InventoryStock.objects.aggregate(
        low_stock_count=Count("id", filter=low),
        out_of_stock_count=Count("id", filter=Q(quantity=0)),
        average_stock_level=Avg("quantity"),
    )
    low_stock_products = list(
        InventoryStock.objects.filter(low)
        .order_by("quantity")
        .values(
            "product_id", "quantity", "low_stock_threshold",
            name=F("product__name"), sku_code=F("product__sku"),
        )[:limit]
    )
    avg = agg["average_stock_level"]
    return {
        "low_stock_count": agg["low_stock_count"],
        "out_of_stock_count": agg["out_of_stock_count"],
        "average_stock_level": round(float(avg), 2) if avg is not None else None,
        "low_stock_products": low_stock_products,
    }
