from django.contrib import admin

from ..models import Account, AccountBalance, AccountMapping, Store
from .mixins import TenantAdminMixin
from .ReadOnly import ReadOnlyAdmin


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "slug", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


# Register `Account` model
@admin.register(Account)
class AccountAdmin(TenantAdminMixin, admin.ModelAdmin):
    # show key accounting fields
    list_display = (
        "code",
        "name",
        "store",
        "account_type",
        "nature",
        "parent",
        "level",
        "allows_entries",
        "is_active",
    )
    list_filter = ("store", "account_type", "is_active", "allows_entries")
    search_fields = ("code", "name")
    # accounts grouped by store, then sorted by code
    ordering = ("store", "code")
    fieldsets = (
        (None, {"fields": ("store", "code", "name", "account_type", "parent", "level")}),
        ("Posting", {"fields": ("allows_entries", "is_active", "description")}),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("store", "parent")

    # column header for the computed property
    @admin.display(description="Nature")
    def nature(self, obj):
        return obj.nature


@admin.register(AccountMapping)
class AccountMappingAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("transaction_type", "account", "store", "is_default", "conditions", "is_active")
    list_filter = ("store", "transaction_type", "is_default", "is_active")
    search_fields = ("transaction_type", "account__code", "account__name")
    autocomplete_fields = ("account",)


# Buckets are maintained by the balance service, so read-only here
@admin.register(AccountBalance)
class AccountBalanceAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = (
        "account",
        "store",
        "period_start",
        "closing_debit_bs",
        "closing_credit_bs",
        "closing_debit_usd",
        "closing_credit_usd",
        "last_calculated_at",
    )
    list_filter = ("store", "period_start")
    search_fields = ("account__code", "account__name")
    date_hierarchy = "period_start"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("store", "account")
