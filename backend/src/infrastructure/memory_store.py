"""In-process record store.

Implements RecordStorePort over plain dictionaries. Used by the test suite
and for local development without a database. No method awaits while it
holds intermediate state, so every operation, including conditional updates,
is atomic with respect to other coroutines on the same event loop.
"""

import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from tenancy.ports import (
    SUPPORTED_OPERATORS,
    Criteria,
    Document,
    RecordStorePort,
    SortSpec,
)


def _compare(operator: str, actual: Any, expected: Any) -> bool:
    if operator == "$ne":
        return actual != expected
    if operator == "$in":
        return actual in expected
    if actual is None:
        return False
    if operator == "$lt":
        return actual < expected
    if operator == "$lte":
        return actual <= expected
    if operator == "$gt":
        return actual > expected
    if operator == "$gte":
        return actual >= expected
    raise ValueError(f"Unsupported criteria operator: {operator}")


def matches(document: Document, criteria: Criteria) -> bool:
    """Evaluate the criteria language documented in ``tenancy.ports``."""
    for field, condition in criteria.items():
        actual = document.get(field)
        if isinstance(condition, dict) and condition and set(condition) <= SUPPORTED_OPERATORS:
            if not all(_compare(op, actual, expected) for op, expected in condition.items()):
                return False
        elif actual != condition:
            return False
    return True


def _sort_key(field: str):
    # None sorts first ascending, like most SQL engines with NULLS FIRST
    def key(document: Document):
        value = document.get(field)
        return (value is not None, value)
    return key


class InMemoryRecordStore(RecordStorePort):
    """Dictionary-backed RecordStorePort."""

    def __init__(self):
        self._collections: Dict[str, List[Document]] = defaultdict(list)

    def _matching(self, collection: str, criteria: Criteria) -> List[Document]:
        return [doc for doc in self._collections[collection] if matches(doc, criteria)]

    async def find(
        self,
        collection: str,
        criteria: Criteria,
        *,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> List[Document]:
        found = self._matching(collection, criteria)
        for field, direction in reversed(list(sort or [])):
            found.sort(key=_sort_key(field), reverse=direction < 0)
        if skip:
            found = found[skip:]
        if limit is not None:
            found = found[:limit]
        return [copy.deepcopy(doc) for doc in found]

    async def find_one(self, collection: str, criteria: Criteria) -> Optional[Document]:
        for doc in self._collections[collection]:
            if matches(doc, criteria):
                return copy.deepcopy(doc)
        return None

    async def count(self, collection: str, criteria: Criteria) -> int:
        return len(self._matching(collection, criteria))

    async def insert_many(self, collection: str, documents: Sequence[Document]) -> List[Document]:
        stored = []
        for document in documents:
            doc = copy.deepcopy(dict(document))
            doc.setdefault("id", str(uuid4()))
            stored.append(doc)
        self._collections[collection].extend(stored)
        return [copy.deepcopy(doc) for doc in stored]

    async def update(
        self,
        collection: str,
        criteria: Criteria,
        changes: Document,
        *,
        multi: bool = True,
    ) -> int:
        modified = 0
        for doc in self._collections[collection]:
            if matches(doc, criteria):
                doc.update(copy.deepcopy(changes))
                modified += 1
                if not multi:
                    break
        return modified

    async def delete(self, collection: str, criteria: Criteria, *, multi: bool = True) -> int:
        kept: List[Document] = []
        removed = 0
        for doc in self._collections[collection]:
            if matches(doc, criteria) and (multi or removed == 0):
                removed += 1
                continue
            kept.append(doc)
        self._collections[collection] = kept
        return removed

    async def upsert(
        self,
        collection: str,
        criteria: Criteria,
        changes: Document,
        insert_defaults: Optional[Document] = None,
    ) -> Document:
        for doc in self._collections[collection]:
            if matches(doc, criteria):
                doc.update(copy.deepcopy(changes))
                return copy.deepcopy(doc)

        new_doc = {
            field: value
            for field, value in criteria.items()
            if not isinstance(value, dict)
        }
        new_doc.update(copy.deepcopy(insert_defaults or {}))
        new_doc.update(copy.deepcopy(changes))
        inserted = await self.insert_many(collection, [new_doc])
        return inserted[0]

    def snapshot(self, collection: str) -> List[Document]:
        """Copy of every stored document, for assertions in tests."""
        return copy.deepcopy(self._collections[collection])
