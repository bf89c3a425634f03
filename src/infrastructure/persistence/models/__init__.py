"""ORM model registry — imports all layer modules so every mapper class is
registered with Base.metadata before Alembic or SQLAlchemy runs.
"""

from src.infrastructure.persistence.models.quotes import Quote
from src.infrastructure.persistence.models.audit import AuditLog

__all__ = [
    "Quote",
    "AuditLog",
]
