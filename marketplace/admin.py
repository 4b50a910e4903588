from django.contrib import admin

from .models import MarketplaceOrder, MarketplaceStore


@admin.register(MarketplaceStore)
class MarketplaceStoreAdmin(admin.ModelAdmin):
    list_select_related = ("owner",)
    list_display = ("name", "owner", "subscription_plan", "plan_expires_at")
    list_filter = ("subscription_plan",)
    search_fields = ("name", "owner__email")


@admin.register(MarketplaceOrder)
class MarketplaceOrderAdmin(admin.ModelAdmin):
    list_select_related = ("store", "customer")
    list_display = ("id", "store", "customer", "total", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("id", "customer__email", "store__name")
