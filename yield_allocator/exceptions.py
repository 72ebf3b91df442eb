"""Exception hierarchy for the allocator.

    YieldAllocatorError
    ├── FeedUnavailableError : pool feed failed after all retries; skip the cycle
    ├── ReconciliationError  : decision set broke an invariant; abort before persisting
    └── PersistenceError     : store could not apply a batch; nothing was applied
"""


class YieldAllocatorError(Exception):
    """Base exception for all allocator errors."""


class FeedUnavailableError(YieldAllocatorError):
    """Pool feed could not be fetched or parsed within the retry budget."""


class ReconciliationError(YieldAllocatorError):
    """A reconciliation cycle produced an inconsistent decision set."""


class PersistenceError(YieldAllocatorError):
    """A position batch could not be applied to the store."""
