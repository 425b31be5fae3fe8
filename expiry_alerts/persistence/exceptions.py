"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so an orchestrator
can abandon one tenant's pass with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL format
    - Database file not accessible
    - Database used after close()
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when a required database record is not found.

    Optional lookups return None instead of raising this.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a database constraint is violated."""

    pass
