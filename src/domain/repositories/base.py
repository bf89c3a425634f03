"""Generic repository base interface.

Repository[T] is the root abstraction for entity-style data access (audit
log entries, identified by UUID).  Time-series style data such as quotes
uses specialised interfaces instead.  Concrete implementations live in
src/infrastructure/persistence/ and are bound to one transaction through a
UnitOfWork.

Design notes:
  - All methods are async to accommodate async database drivers (asyncpg / SQLAlchemy async).
  - T is the domain model type (never an ORM row or DTO).
  - update() and delete() are present on the base; append-only interfaces
    implement them by raising NotImplementedError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """Abstract CRUD interface for a domain entity."""

    @abstractmethod
    async def get(self, id: UUID) -> T | None:
        """Return the entity with the given primary key, or None if not found."""

    @abstractmethod
    async def list(self, limit: int = 50, offset: int = 0) -> list[T]:
        """Return a page of entities, newest first."""

    @abstractmethod
    async def create(self, entity: T) -> T:
        """Persist a new entity and return it."""

    @abstractmethod
    async def update(self, entity: T) -> T:
        """Persist changes to an existing entity and return the updated version."""

    @abstractmethod
    async def delete(self, id: UUID) -> None:
        """Remove the entity with the given primary key."""
