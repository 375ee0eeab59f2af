"""Record Store Port - interface for the document/record store.

Every tenant-column-bearing store qualifies. The tenancy layer composes
``TenantScopedCollection`` around an implementation of this port; nothing in
the port itself knows about tenants.

Criteria language:
    {"field": value}                  equality
    {"field": {"$ne": value}}         inequality
    {"field": {"$in": [a, b]}}        membership
    {"field": {"$lt"|"$lte"|"$gt"|"$gte": value}}   ordering

Architecture: Hexagonal - Port interface, adapters in ``infrastructure``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

Document = Dict[str, Any]
Criteria = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]

SUPPORTED_OPERATORS = frozenset({"$ne", "$in", "$lt", "$lte", "$gt", "$gte"})


class RecordStorePort(ABC):
    """Async CRUD contract over named collections of dict documents."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        criteria: Criteria,
        *,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> List[Document]:
        """Return copies of all documents matching ``criteria``.

        ``sort`` is a sequence of ``(field, direction)`` with direction 1 for
        ascending and -1 for descending. ``skip`` drops that many leading
        results before ``limit`` applies.
        """

    @abstractmethod
    async def find_one(self, collection: str, criteria: Criteria) -> Optional[Document]:
        """Return the first matching document or None."""

    @abstractmethod
    async def count(self, collection: str, criteria: Criteria) -> int:
        """Count matching documents."""

    @abstractmethod
    async def insert_many(self, collection: str, documents: Sequence[Document]) -> List[Document]:
        """Insert documents and return them as stored (with generated ids)."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        criteria: Criteria,
        changes: Document,
        *,
        multi: bool = True,
    ) -> int:
        """Apply ``changes`` to matching documents and return how many changed.

        The match and the write must be one atomic step: a concurrent caller
        using the same criteria must not also see the pre-update state. This is
        what makes conditional transitions such as ``is_revoked: False -> True``
        safe.
        """

    @abstractmethod
    async def delete(self, collection: str, criteria: Criteria, *, multi: bool = True) -> int:
        """Delete matching documents and return how many were removed."""

    @abstractmethod
    async def upsert(
        self,
        collection: str,
        criteria: Criteria,
        changes: Document,
        insert_defaults: Optional[Document] = None,
    ) -> Document:
        """Update the first document matching ``criteria`` or insert a new one.

        A newly inserted document is built from the equality fields of
        ``criteria`` plus ``insert_defaults`` plus ``changes``.
        """
