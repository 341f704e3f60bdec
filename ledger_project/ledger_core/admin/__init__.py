from .account import (AccountAdmin, AccountBalanceAdmin, AccountMappingAdmin,
                      StoreAdmin)
from .actions import cancel_journal_entries, post_journal_entries
from .auditlog import AuditLogAdmin
from .inlines import JournalEntryLineInline
from .journal import JournalEntryAdmin
from .mixins import TenantAdminMixin
from .period import AccountingPeriodAdmin
