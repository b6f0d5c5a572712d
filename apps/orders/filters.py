import django_filters

from .models import Order


class CharInFilter(django_filters.BaseInFilter, django_filters.CharFilter):
    pass


class OrderFilter(django_filters.FilterSet):
    """
    Listing filters for orders. `status` accepts a single value or a
    comma separated list ("pending,processing").
    """
    status = CharInFilter(field_name="status", lookup_expr="in")
    payment_status = CharInFilter(field_name="payment_status", lookup_expr="in")
    user = django_filters.UUIDFilter(field_name="user_id")
    order_number = django_filters.CharFilter(field_name="order_number", lookup_expr="icontains")
    start_date = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    end_date = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")
    min_total = django_filters.NumberFilter(field_name="total_amount", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total_amount", lookup_expr="lte")

    ordering = django_filters.OrderingFilter(
        fields=(
            ("created_at", "created_at"),
            ("total_amount", "total_amount"),
            ("status", "status"),
        )
    )

    class Meta:
        model = Order
        fields = [
            "status", "payment_status", "user", "order_number",
            "start_date", "end_date", "min_total", "max_total",
        ]
