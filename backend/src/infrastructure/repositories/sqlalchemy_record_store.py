"""SQLAlchemy adapter for RecordStorePort.

Maps collection names to ORM models (see ``models.COLLECTION_MODELS``) and
translates the criteria language into SQL. Conditional updates are a single
``UPDATE ... WHERE`` statement, so the database makes them atomic.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import COLLECTION_MODELS
from models.base import Base
from tenancy.ports import (
    SUPPORTED_OPERATORS,
    Criteria,
    Document,
    RecordStorePort,
    SortSpec,
)


class SqlAlchemyRecordStore(RecordStorePort):
    """RecordStorePort backed by an async SQLAlchemy session factory.

    Each call runs in its own short transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        models: Optional[Mapping[str, Type[Base]]] = None,
    ):
        self.session_factory = session_factory
        self.models = dict(models or COLLECTION_MODELS)

    def _model(self, collection: str):
        try:
            return self.models[collection]
        except KeyError:
            raise ValueError(f"No model registered for collection '{collection}'")

    def _column(self, model, field: str):
        column = model.__table__.columns.get(field)
        if column is None:
            raise ValueError(f"Unknown field '{field}' for collection '{model.__tablename__}'")
        return getattr(model, field)

    def _conditions(self, model, criteria: Criteria) -> List[Any]:
        conditions = []
        for field, condition in criteria.items():
            column = self._column(model, field)
            if isinstance(condition, dict) and condition and set(condition) <= SUPPORTED_OPERATORS:
                for operator, expected in condition.items():
                    if operator == "$ne":
                        conditions.append(column.is_distinct_from(expected))
                    elif operator == "$in":
                        conditions.append(column.in_(list(expected)))
                    elif operator == "$lt":
                        conditions.append(column < expected)
                    elif operator == "$lte":
                        conditions.append(column <= expected)
                    elif operator == "$gt":
                        conditions.append(column > expected)
                    elif operator == "$gte":
                        conditions.append(column >= expected)
            elif condition is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(column == condition)
        return conditions

    def _values(self, model, document: Document) -> Dict[str, Any]:
        for field in document:
            self._column(model, field)
        return dict(document)

    async def find(
        self,
        collection: str,
        criteria: Criteria,
        *,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> List[Document]:
        model = self._model(collection)
        stmt = select(model).where(*self._conditions(model, criteria))
        for field, direction in sort or []:
            column = self._column(model, field)
            stmt = stmt.order_by(column.desc() if direction < 0 else column.asc())
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [row.to_document() for row in result.scalars().all()]

    async def find_one(self, collection: str, criteria: Criteria) -> Optional[Document]:
        found = await self.find(collection, criteria, limit=1)
        return found[0] if found else None

    async def count(self, collection: str, criteria: Criteria) -> int:
        model = self._model(collection)
        stmt = select(func.count()).select_from(model).where(*self._conditions(model, criteria))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def insert_many(self, collection: str, documents: Sequence[Document]) -> List[Document]:
        model = self._model(collection)
        rows = [model(**self._values(model, doc)) for doc in documents]
        async with self.session_factory() as session:
            async with session.begin():
                session.add_all(rows)
            return [row.to_document() for row in rows]

    async def update(
        self,
        collection: str,
        criteria: Criteria,
        changes: Document,
        *,
        multi: bool = True,
    ) -> int:
        model = self._model(collection)
        values = self._values(model, changes)
        conditions = self._conditions(model, criteria)

        async with self.session_factory() as session:
            async with session.begin():
                if not multi:
                    first_id = await session.scalar(select(model.id).where(*conditions).limit(1))
                    if first_id is None:
                        return 0
                    conditions = conditions + [model.id == first_id]
                result = await session.execute(
                    update(model).where(*conditions).values(**values).execution_options(
                        synchronize_session=False
                    )
                )
                return result.rowcount or 0

    async def delete(self, collection: str, criteria: Criteria, *, multi: bool = True) -> int:
        model = self._model(collection)
        conditions = self._conditions(model, criteria)

        async with self.session_factory() as session:
            async with session.begin():
                if not multi:
                    first_id = await session.scalar(select(model.id).where(*conditions).limit(1))
                    if first_id is None:
                        return 0
                    conditions = conditions + [model.id == first_id]
                result = await session.execute(
                    delete(model).where(*conditions).execution_options(synchronize_session=False)
                )
                return result.rowcount or 0

    async def upsert(
        self,
        collection: str,
        criteria: Criteria,
        changes: Document,
        insert_defaults: Optional[Document] = None,
    ) -> Document:
        model = self._model(collection)
        values = self._values(model, changes)

        async with self.session_factory() as session:
            async with session.begin():
                row = await session.scalar(
                    select(model)
                    .where(*self._conditions(model, criteria))
                    .limit(1)
                    .with_for_update()
                )
                if row is None:
                    seed = {
                        field: value
                        for field, value in criteria.items()
                        if not isinstance(value, dict)
                    }
                    seed.update(insert_defaults or {})
                    seed.update(values)
                    row = model(**self._values(model, seed))
                    session.add(row)
                else:
                    for field, value in values.items():
                        setattr(row, field, value)
            return row.to_document()
