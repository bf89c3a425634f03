"""Concrete SQLAlchemy repository implementations.

Exports all SqlRepository classes and the get_repositories() factory function
used by SqlUnitOfWork to bind every repository to one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from .audit import SqlAuditLogRepository
from .quotes import SqlQuoteRepository


@dataclass
class Repositories:
    """All repository instances bound to a single AsyncSession."""

    quotes: SqlQuoteRepository
    audit_logs: SqlAuditLogRepository


def get_repositories(session: AsyncSession) -> Repositories:
    """Construct all repositories bound to the given session (one SqlUnitOfWork transaction)."""
    return Repositories(
        quotes=SqlQuoteRepository(session),
        audit_logs=SqlAuditLogRepository(session),
    )


__all__ = [
    "SqlQuoteRepository",
    "SqlAuditLogRepository",
    "Repositories",
    "get_repositories",
]
