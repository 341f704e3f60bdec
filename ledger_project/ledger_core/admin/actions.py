from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from ..exceptions import LedgerNotFoundError
from ..services.posting import cancel_entry, post_entry

# ---------- Admin actions ----------


def _run_per_entry(modeladmin, request, queryset, operation, verb, **kwargs):
    """
    Apply `operation` to each selected entry in its own transaction
    (the service opens it) and report per-entry failures via admin messages.
    """
    total = 0
    success = 0
    for entry in queryset.select_related("store"):
        total += 1
        try:
            operation(entry.store, entry.pk, user=request.user, **kwargs)
            success += 1
        except (ValidationError, LedgerNotFoundError) as exc:
            modeladmin.message_user(
                request,
                _("Could not %(verb)s entry %(number)s: %(err)s")
                % {"verb": verb, "number": entry.number, "err": "; ".join(getattr(exc, "messages", [str(exc)]))},
                level=messages.ERROR,
            )

    failures = total - success
    # Final summary message
    modeladmin.message_user(
        request,
        _("%(verb)s %(success)d of %(total)d journal entries. %(failures)d failed.")
        % {"verb": verb.capitalize(), "success": success, "total": total, "failures": failures},
        level=messages.SUCCESS if failures == 0 else messages.WARNING,
    )


@admin.action(description=_("Post selected draft entries"))
# Bulk-post journal entries from Django admin list view
def post_journal_entries(modeladmin, request, queryset):
    _run_per_entry(
        modeladmin, request, queryset.filter(status="draft"), post_entry, "post"
    )


@admin.action(description=_("Cancel selected entries"))
def cancel_journal_entries(modeladmin, request, queryset):
    _run_per_entry(
        modeladmin,
        request,
        queryset.exclude(status="cancelled"),
        cancel_entry,
        "cancel",
        reason=f"Cancelled from admin by {request.user}",
    )
