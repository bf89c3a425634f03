"""Domain repository interfaces.

All abstractions are defined here with abc.ABC and @abstractmethod.
Concrete implementations live in src/infrastructure/persistence/ and are
wired at the application boundary via dependency injection.

Import from this package rather than individual modules to avoid coupling
handlers to specific repository module paths.
"""

from .audit import AuditLogRepository
from .base import Repository
from .quotes import QuoteRepository
from .unit_of_work import UnitOfWork, UnitOfWorkFactory

__all__ = [
    "Repository",
    "AuditLogRepository",
    "QuoteRepository",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
