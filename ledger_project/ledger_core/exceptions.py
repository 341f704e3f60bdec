from django.core.exceptions import ValidationError


class LedgerValidationError(ValidationError):
    """Raised when a ledger operation is rejected by a business rule."""
    pass


class UnbalancedJournalError(LedgerValidationError):
    """Raised when a JournalEntry fails the double-entry balance check."""
    pass


class PeriodNotOpenError(LedgerValidationError):
    """Raised when a posting date falls inside a closed or locked period."""
    pass


class InvalidStatusTransition(LedgerValidationError):
    """Raised when an entry or period is moved to a state it cannot reach."""
    pass


class LedgerNotFoundError(Exception):
    """Raised when an entry, account, period or equity target is missing."""
    pass
