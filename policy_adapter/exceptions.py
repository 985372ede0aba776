"""Policy adapter exception hierarchy."""


class AdapterError(Exception):
    """Base exception for all policy adapter errors."""


class StoreConnectionError(AdapterError, ConnectionError):
    """Raised when the backing store cannot be reached or initialized."""


class AdapterClosedError(AdapterError):
    """Raised when an operation is attempted on a closed adapter."""


class LoadFailedError(AdapterError):
    """Raised when reading policy rows from the store fails."""


class SaveFailedError(AdapterError):
    """Raised when replacing the stored policy fails."""


class InsertFailedError(AdapterError):
    """Raised when inserting a single policy row fails."""


class DeleteFailedError(AdapterError):
    """Raised when deleting policy rows fails."""


class InvalidRuleError(AdapterError, ValueError):
    """Raised when a rule has more values than the row has fields."""


class InvalidRangeError(AdapterError, ValueError):
    """Raised when a field filter falls outside the positional fields."""
