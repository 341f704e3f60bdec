from .account import Account
from .auditlog import AuditLog
from .balance import AccountBalance
from .journal import JournalEntry, JournalEntryLine
from .mapping import AccountMapping
from .period import AccountingPeriod
from .sequence import EntrySequence
from .store import Store
