"""Persistence package.

Importing this package registers every ORM mapper with Base.metadata
(required for Alembic autogenerate and SQLAlchemy mapper configuration)
and exports all repository implementations, the DI factory and the
SQL unit of work.
"""

from src.infrastructure.persistence.models import *  # noqa: F401, F403
from src.infrastructure.persistence.models import __all__ as _orm_all
from src.infrastructure.persistence.repositories import (
    Repositories,
    SqlAuditLogRepository,
    SqlQuoteRepository,
    get_repositories,
)
from src.infrastructure.persistence.unit_of_work import SqlUnitOfWork

__all__ = _orm_all + [
    "Repositories",
    "SqlQuoteRepository",
    "SqlAuditLogRepository",
    "SqlUnitOfWork",
    "get_repositories",
]
