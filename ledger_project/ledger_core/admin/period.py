from django.contrib import admin, messages

from ..exceptions import InvalidStatusTransition
from ..models import AccountingPeriod
from ..services.periods import lock_period
from .mixins import TenantAdminMixin


@admin.action(description="Lock selected closed periods")
def lock_periods(modeladmin, request, queryset):
    for period in queryset.select_related("store"):
        try:
            lock_period(period.store, period.period_code, user=request.user)
        except InvalidStatusTransition as exc:
            modeladmin.message_user(request, "; ".join(exc.messages), level=messages.ERROR)


# Register `AccountingPeriod` model
@admin.register(AccountingPeriod)
class AccountingPeriodAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "period_code", "store", "period_start", "period_end", "status", "closed_at", "closing_entry")
    list_filter = ("store", "status")
    search_fields = ("period_code",)
    # status moves only through close / reopen / lock
    readonly_fields = ("status", "closed_at", "closed_by", "closing_entry")
    actions = [lock_periods]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("store", "closing_entry")
