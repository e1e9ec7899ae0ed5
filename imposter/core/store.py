"""
Row store
行存储 - 插入、按ID条件更新、按条件删除、有序查询，并发布变更通知
"""

import logging
from datetime import datetime
from itertools import product
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from imposter.core.database import Base
from imposter.core.exceptions import ConflictError
from imposter.realtime.change_feed import ChangeEvent, ChangeFeed, change_feed

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)

_COLLECTIONS = (list, tuple, set, frozenset)


def _conditions(model, filters: Dict[str, Any]) -> list:
    conditions = []
    for name, value in filters.items():
        column = getattr(model, name)
        if value is None:
            conditions.append(column.is_(None))
        elif isinstance(value, _COLLECTIONS):
            conditions.append(column.in_(list(value)))
        else:
            conditions.append(column == value)
    return conditions


def _expand(filters: Dict[str, Any]) -> List[Dict[str, Any]]:
    names = list(filters)
    choices = [list(filters[name]) if isinstance(filters[name], _COLLECTIONS) else [filters[name]]
               for name in names]
    return [dict(zip(names, combo)) for combo in product(*choices)]


class RowStore:
    """
    The only capability the game core needs from persistence.
    There are no cross-table transactions: every call commits on its own,
    so multi-step operations rely on conditional updates for safety.
    """

    def __init__(self, db: AsyncSession, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed if feed is not None else change_feed

    async def insert(self, row: T) -> T:
        """Insert one row; unique-index violations become ConflictError"""
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(f"{row.__tablename__} row conflicts with an existing row") from e
        await self.db.refresh(row)
        await self._publish(row.__tablename__, "insert", row.to_dict())
        return row

    async def get(self, model: Type[T], row_id: str) -> Optional[T]:
        if row_id is None:
            return None
        stmt = select(model).where(model.id == row_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def select(
        self,
        model: Type[T],
        *,
        order_by: Optional[Iterable] = None,
        limit: Optional[int] = None,
        **filters,
    ) -> List[T]:
        stmt = select(model).where(*_conditions(model, filters))
        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self, model: Type[T], **filters) -> int:
        stmt = select(func.count()).select_from(model).where(*_conditions(model, filters))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def max_value(self, model: Type[T], column: str, **filters) -> Optional[int]:
        stmt = select(func.max(getattr(model, column))).where(*_conditions(model, filters))
        result = await self.db.execute(stmt)
        return result.scalar()

    async def update(
        self,
        model: Type[T],
        row_id: str,
        values: Dict[str, Any],
        *,
        expected: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Update one row by id, optionally only when its current column values
        equal ``expected`` (compare-and-swap). Returns whether the row changed.
        """
        stmt = (
            update(model)
            .where(model.id == row_id, *_conditions(model, expected or {}))
            .values(**values, version=model.version + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(f"{model.__tablename__} update conflicts with an existing row") from e

        applied = result.rowcount == 1
        if applied:
            row = await self.get(model, row_id)
            if row is not None:
                await self._publish(model.__tablename__, "update", row.to_dict())
        else:
            logger.debug(f"Conditional update on {model.__tablename__}:{row_id} not applied")
        return applied

    async def delete(self, model: Type[T], **filters) -> int:
        if not filters:
            raise ValueError("delete requires at least one filter")
        stmt = delete(model).where(*_conditions(model, filters)).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.commit()
        removed = result.rowcount or 0
        if removed:
            # 订阅按单个值匹配，集合条件拆成每个值一条通知
            for row in _expand(filters):
                await self._publish(model.__tablename__, "delete", row)
        return removed

    async def _publish(self, table: str, op: str, row: Dict[str, Any]):
        await self.feed.publish(ChangeEvent(table=table, op=op, row=row))
