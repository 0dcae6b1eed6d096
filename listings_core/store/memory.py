"""
In-memory store.

Dict-backed tables that mirror the persisted row shape: snake_case keys and
ISO-8601 string timestamps. Used in tests and when no database is
configured.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from listings_core.error_handling import StoreError, UNIQUE_VIOLATION_CODE
from listings_core.filtering import Clause, QueryDescriptor, parse_timestamp
from listings_core.realtime import ChangeEvent, ChangeFeed, InMemoryChangeFeed
from .base import Row, Store, Table, TABLES, UNIQUE_KEYS


logger = logging.getLogger(__name__)


def _store_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


def _sort_value(column: str, value: Any) -> Any:
    if isinstance(value, str) and (column.endswith("_at") or column.endswith("_date")):
        try:
            return parse_timestamp(value).timestamp()
        except ValueError:
            return value
    if isinstance(value, bool):
        return int(value)
    return value


class InMemoryTable(Table):
    """A list of row dicts with unique-key enforcement."""

    def __init__(self, name: str, change_feed: ChangeFeed, unique_keys=None):
        self.name = name
        self.rows: List[Row] = []
        self.change_feed = change_feed
        self.unique_keys = unique_keys or []

    async def select(self, query: QueryDescriptor) -> List[Row]:
        matched = [row for row in self.rows if query.matches(row)]

        # Stable sorts applied from the last key to the first; nulls sort last.
        for sort in reversed(query.sort):
            present = [r for r in matched if r.get(sort.field) is not None]
            missing = [r for r in matched if r.get(sort.field) is None]
            present.sort(
                key=lambda r: _sort_value(sort.field, r.get(sort.field)),
                reverse=not sort.ascending,
            )
            matched = present + missing

        if query.page_range is not None:
            if query.page_range.start < 0:
                return []
            matched = matched[query.page_range.start:query.page_range.end + 1]
        if query.limit is not None:
            matched = matched[:query.limit]
        return copy.deepcopy(matched)

    async def insert(self, row: Row) -> Row:
        stored = {key: _store_value(value) for key, value in row.items()}
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self._check_unique(stored)
        self.rows.append(stored)
        await self.change_feed.publish(
            ChangeEvent(self.name, "insert", new=copy.deepcopy(stored))
        )
        return copy.deepcopy(stored)

    async def update(self, values: Row, predicates: Sequence[Clause]) -> List[Row]:
        query = QueryDescriptor(predicates=tuple(predicates))
        changes = {key: _store_value(value) for key, value in values.items()}
        updated = []
        for row in self.rows:
            if query.matches(row):
                old = copy.deepcopy(row)
                row.update(changes)
                updated.append(copy.deepcopy(row))
                await self.change_feed.publish(
                    ChangeEvent(self.name, "update", new=copy.deepcopy(row), old=old)
                )
        return updated

    async def count(self, predicates: Sequence[Clause]) -> int:
        query = QueryDescriptor(predicates=tuple(predicates))
        return sum(1 for row in self.rows if query.matches(row))

    async def increment(self, column: str, predicates: Sequence[Clause], amount: int = 1) -> List[Row]:
        query = QueryDescriptor(predicates=tuple(predicates))
        updated = []
        for row in self.rows:
            if query.matches(row):
                old = copy.deepcopy(row)
                row[column] = (row.get(column) or 0) + amount
                updated.append(copy.deepcopy(row))
                await self.change_feed.publish(
                    ChangeEvent(self.name, "update", new=copy.deepcopy(row), old=old)
                )
        return updated

    def _check_unique(self, candidate: Row) -> None:
        for key in [("id",)] + list(self.unique_keys):
            values = tuple(candidate.get(column) for column in key)
            if any(tuple(row.get(column) for column in key) == values for row in self.rows):
                logger.info(f"Unique violation on {self.name}{key}: {values}")
                raise StoreError(
                    f'duplicate key value violates unique constraint on {self.name} {key}',
                    code=UNIQUE_VIOLATION_CODE,
                )


class InMemoryStore(Store):
    """Store holding every table in process memory."""

    def __init__(self, change_feed: Optional[ChangeFeed] = None):
        self.change_feed = change_feed or InMemoryChangeFeed()
        self.tables: Dict[str, InMemoryTable] = {
            name: InMemoryTable(name, self.change_feed, UNIQUE_KEYS.get(name))
            for name in TABLES
        }

    def table(self, name: str) -> InMemoryTable:
        if name not in self.tables:
            raise StoreError(f'relation "{name}" does not exist', code="42P01")
        return self.tables[name]
