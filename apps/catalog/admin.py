# apps/catalog/admin.py
from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "parent", "is_active")
    list_filter = ("is_active", "parent")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "category", "seller", "price", "is_active")
    search_fields = ("sku", "name", "brand")
    list_filter = ("category", "is_active", "is_physical")
    list_editable = ("price", "is_active")
    readonly_fields = ("created_at", "updated_at")
