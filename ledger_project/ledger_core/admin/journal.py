from django.contrib import admin
from django.utils.html import format_html

from ..models import JournalEntry
from .actions import cancel_journal_entries, post_journal_entries
from .inlines import JournalEntryLineInline
from .mixins import TenantAdminMixin


# Register `JournalEntry` model
@admin.register(JournalEntry)
class JournalEntryAdmin(TenantAdminMixin, admin.ModelAdmin):
    """Basic admin display setup"""

    list_display = (
        "number",
        "store",
        "date",
        "entry_type",
        "source_type",
        "status",
        "is_auto_generated",
        "balanced",
    )
    list_filter = ("store", "status", "entry_type", "is_auto_generated", "date")
    search_fields = ("number", "reference", "description", "source_id")
    # numbering, totals and lifecycle stamps are owned by the posting service
    readonly_fields = (
        "number",
        "total_debit_bs",
        "total_credit_bs",
        "total_debit_usd",
        "total_credit_usd",
        "status",
        "posted_at",
        "posted_by",
        "cancelled_at",
        "cancelled_by",
        "cancellation_reason",
        "created_by",
    )
    inlines = [
        JournalEntryLineInline
    ]  # shows the lines directly on the JournalEntry page
    actions = [post_journal_entries, cancel_journal_entries]

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("store", "created_by")

    """ Computed column for balance check """
    # Show stored debits / credits per currency
    def balanced(self, obj):
        return format_html(
            "<b>{}</b> / <small>{}</small> Bs &middot; <b>{}</b> / <small>{}</small> USD",
            obj.total_debit_bs,
            obj.total_credit_bs,
            obj.total_debit_usd,
            obj.total_credit_usd,
        )

    # set column header in admin
    balanced.short_description = "Debits / Credits"

    """ Entries are created through the posting service """
    def has_add_permission(self, request):
        return False

    """ Make entries immutable once posted """
    def get_readonly_fields(self, request, obj=None):
        r = list(self.readonly_fields)
        if obj and obj.status != "draft":
            r += ["store", "date", "entry_type", "description", "reference", "metadata"]
        return r

    """ Prevent deletion after posting """
    def has_delete_permission(self, request, obj=None):
        if obj and obj.status == "posted":
            return False  # posted entries are cancelled, never deleted
        return super().has_delete_permission(request, obj)
