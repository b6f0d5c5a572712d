# apps/analytics/urls.py
from django.urls import path

from .views import (
    CategoryRevenueView,
    DailySalesView,
    InventoryStatusView,
    OrderStatusBreakdownView,
    SalesOverviewView,
    TopCustomersView,
    TopProductsView,
)

urlpatterns = [
    path("sales/", SalesOverviewView.as_view(), name="analytics-sales"),
    path("sales/daily/", DailySalesView.as_view(), name="analytics-sales-daily"),
    path("products/top/", TopProductsView.as_view(), name="analytics-top-products"),
    path("categories/revenue/", CategoryRevenueView.as_view(), name="analytics-category-revenue"),
    path("orders/status/", OrderStatusBreakdownView.as_view(), name="analytics-order-status"),
    path("customers/top/", TopCustomersView.as_view(), name="analytics-top-customers"),
    path("inventory/", InventoryStatusView.as_view(), name="analytics-inventory"),
]
