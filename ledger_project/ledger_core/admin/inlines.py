from django.contrib import admin

from ..models import JournalEntryLine
from .mixins import TenantAdminMixin


class JournalEntryLineInline(
    TenantAdminMixin,
    admin.TabularInline
    # shows related objects in table format (rows under parent form)
):
    """Show JournalEntryLine rows on JournalEntry page"""

    model = JournalEntryLine
    store_lookup = "entry__store"
    extra = 0  # don’t show “empty” rows by default (prevents clutter)
    fields = (
        "line_number",
        "account",
        "description",
        "debit_amount_bs",
        "credit_amount_bs",
        "debit_amount_usd",
        "credit_amount_usd",
    )
    autocomplete_fields = ("account",)

    # lines of a posted or cancelled entry can only be looked at
    def has_change_permission(self, request, obj=None):
        if obj is not None and obj.status != "draft":
            return False
        return super().has_change_permission(request, obj)

    def has_add_permission(self, request, obj=None):
        if obj is not None and obj.status != "draft":
            return False
        return super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)
