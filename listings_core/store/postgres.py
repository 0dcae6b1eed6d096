"""
PostgreSQL store built on an asyncpg connection pool.

Query descriptors are compiled to parameterised SQL. Driver errors are
mapped to ``StoreError`` carrying the SQLSTATE code, so unique violations
surface as code 23505.
"""

import asyncio
import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

import asyncpg

from listings_core.error_handling import StoreError, UNIQUE_VIOLATION_CODE
from listings_core.filtering import AllOf, AnyOf, Clause, Predicate, QueryDescriptor
from listings_core.realtime import ChangeEvent, ChangeFeed, InMemoryChangeFeed
from .base import Row, Store, Table, TABLES


logger = logging.getLogger(__name__)

# Driver failures mapped to StoreError; InterfaceError is not a PostgresError
_DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.exceptions.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

_COMPARISONS = {
    "eq": "=",
    "neq": "<>",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "ilike": "ILIKE",
}


def _ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


class SqlCompiler:
    """Accumulates positional parameters while rendering clauses."""

    def __init__(self):
        self.args: List[Any] = []

    def param(self, value: Any) -> str:
        self.args.append(value)
        return f"${len(self.args)}"

    def clause(self, clause: Clause) -> str:
        if isinstance(clause, AllOf):
            return "(" + " AND ".join(self.clause(c) for c in clause.clauses) + ")"
        if isinstance(clause, AnyOf):
            return "(" + " OR ".join(self.clause(c) for c in clause.clauses) + ")"
        return self.predicate(clause)

    def predicate(self, predicate: Predicate) -> str:
        column = _ident(predicate.column)
        if predicate.op == "is_null":
            return f"{column} IS NULL" if predicate.value else f"{column} IS NOT NULL"
        if predicate.op == "in":
            return f"{column} = ANY({self.param(list(predicate.value))})"
        if predicate.op == "eq" and predicate.value is None:
            return f"{column} IS NULL"
        return f"{column} {_COMPARISONS[predicate.op]} {self.param(predicate.value)}"

    def where(self, predicates: Sequence[Clause]) -> str:
        if not predicates:
            return ""
        return " WHERE " + " AND ".join(self.clause(c) for c in predicates)


def compile_select(table: str, query: QueryDescriptor) -> Tuple[str, List[Any]]:
    """Render a select for ``query``; returns (sql, args)."""
    compiler = SqlCompiler()
    sql = f"SELECT * FROM {_ident(table)}" + compiler.where(query.predicates)

    if query.sort:
        order = ", ".join(
            f"{_ident(s.field)} {'ASC' if s.ascending else 'DESC'} NULLS LAST"
            for s in query.sort
        )
        sql += f" ORDER BY {order}"

    if query.page_range is not None:
        size = query.page_range.end - query.page_range.start + 1
        sql += f" LIMIT {compiler.param(size)} OFFSET {compiler.param(query.page_range.start)}"
    elif query.limit is not None:
        sql += f" LIMIT {compiler.param(query.limit)}"

    return sql, compiler.args


def _store_error(e: Exception) -> StoreError:
    code = getattr(e, "sqlstate", None)
    if isinstance(e, asyncpg.exceptions.UniqueViolationError):
        code = UNIQUE_VIOLATION_CODE
    return StoreError(str(e), code=code)


class PostgresTable(Table):
    """Table backed by a PostgreSQL relation."""

    def __init__(self, name: str, store: 'PostgresStore'):
        self.name = _ident(name)
        self.store = store

    async def _fetch(self, sql: str, args: List[Any]) -> List[Row]:
        try:
            async with self.store.pool.acquire() as conn:
                records = await conn.fetch(sql, *args)
        except _DRIVER_ERRORS as e:
            logger.error(f"Query on {self.name} failed: {e}")
            raise _store_error(e) from e
        return [dict(record) for record in records]

    async def select(self, query: QueryDescriptor) -> List[Row]:
        if query.page_range is not None and query.page_range.start < 0:
            return []
        sql, args = compile_select(self.name, query)
        return await self._fetch(sql, args)

    async def insert(self, row: Row) -> Row:
        values = dict(row)
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("created_at", datetime.now(timezone.utc))
        compiler = SqlCompiler()
        columns = ", ".join(_ident(column) for column in values)
        placeholders = ", ".join(compiler.param(value) for value in values.values())
        sql = f"INSERT INTO {self.name} ({columns}) VALUES ({placeholders}) RETURNING *"
        inserted = (await self._fetch(sql, compiler.args))[0]
        await self.store.change_feed.publish(ChangeEvent(self.name, "insert", new=inserted))
        return inserted

    async def update(self, values: Row, predicates: Sequence[Clause]) -> List[Row]:
        compiler = SqlCompiler()
        assignments = ", ".join(
            f"{_ident(column)} = {compiler.param(value)}" for column, value in values.items()
        )
        sql = f"UPDATE {self.name} SET {assignments}" + compiler.where(predicates) + " RETURNING *"
        updated = await self._fetch(sql, compiler.args)
        for row in updated:
            await self.store.change_feed.publish(ChangeEvent(self.name, "update", new=row))
        return updated

    async def count(self, predicates: Sequence[Clause]) -> int:
        compiler = SqlCompiler()
        sql = f"SELECT COUNT(*) AS count FROM {self.name}" + compiler.where(predicates)
        rows = await self._fetch(sql, compiler.args)
        return int(rows[0]["count"])

    async def increment(self, column: str, predicates: Sequence[Clause], amount: int = 1) -> List[Row]:
        compiler = SqlCompiler()
        target = _ident(column)
        sql = (
            f"UPDATE {self.name} SET {target} = COALESCE({target}, 0) + {compiler.param(amount)}"
            + compiler.where(predicates)
            + " RETURNING *"
        )
        updated = await self._fetch(sql, compiler.args)
        for row in updated:
            await self.store.change_feed.publish(ChangeEvent(self.name, "update", new=row))
        return updated


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
    )


class PostgresStore(Store):
    """
    Store backed by PostgreSQL.

    Attributes:
        database_url: asyncpg connection string
        pool: Connection pool, available after ``connect``
    """

    def __init__(
        self,
        database_url: str,
        change_feed: Optional[ChangeFeed] = None,
        min_size: int = 2,
        max_size: int = 10,
    ):
        self.database_url = database_url
        self.change_feed = change_feed or InMemoryChangeFeed()
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None
        self._tables = {name: PostgresTable(name, self) for name in TABLES}

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not initialized")
        return self._pool

    def table(self, name: str) -> PostgresTable:
        if name not in self._tables:
            raise StoreError(f'relation "{name}" does not exist', code="42P01")
        return self._tables[name]

    async def connect(self) -> None:
        """Create the connection pool and ensure the schema exists."""
        try:
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_size,
                max_size=self.max_size,
                init=_init_connection,
            )
            logger.info("PostgreSQL connection pool created")
            await create_tables(self._pool)
        except _DRIVER_ERRORS as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise _store_error(e) from e

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL connection pool closed")
        await super().close()


async def create_tables(pool: asyncpg.Pool) -> None:
    """Create database tables if they don't exist"""
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS listings (
                id TEXT PRIMARY KEY,
                seller_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                category TEXT,
                type TEXT NOT NULL,
                price DOUBLE PRECISION NOT NULL,
                reserve_price DOUBLE PRECISION,
                location TEXT,
                condition TEXT,
                images TEXT[] NOT NULL DEFAULT '{}',
                allow_best_offer BOOLEAN NOT NULL DEFAULT FALSE,
                status TEXT NOT NULL DEFAULT 'active',
                current_bid DOUBLE PRECISION,
                highest_bidder_id TEXT,
                expires_at TIMESTAMPTZ NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                views INTEGER NOT NULL DEFAULT 0,
                saves INTEGER NOT NULL DEFAULT 0,
                sale_date TIMESTAMPTZ,
                sale_amount DOUBLE PRECISION,
                sale_buyer_id TEXT,
                original_listing_id TEXT REFERENCES listings(id),
                relist_count INTEGER NOT NULL DEFAULT 0,
                relist_reason TEXT,
                relisted_at TIMESTAMPTZ
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_listings_status_expires ON listings(status, expires_at);
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_listings_seller ON listings(seller_id);
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS bids (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                listing_id TEXT NOT NULL REFERENCES listings(id),
                amount DOUBLE PRECISION NOT NULL,
                maximum_bid DOUBLE PRECISION NOT NULL,
                bid_increment DOUBLE PRECISION NOT NULL DEFAULT 5,
                status TEXT NOT NULL DEFAULT 'active',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_bids_listing_status ON bids(listing_id, status);
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS offers (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                listing_id TEXT NOT NULL REFERENCES listings(id),
                amount DOUBLE PRECISION NOT NULL,
                message TEXT,
                status TEXT NOT NULL DEFAULT 'pending',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS feedback (
                id TEXT PRIMARY KEY,
                from_user_id TEXT NOT NULL,
                to_user_id TEXT NOT NULL,
                listing_id TEXT NOT NULL REFERENCES listings(id),
                rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
                comment VARCHAR(512),
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                UNIQUE (from_user_id, listing_id)
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS verification_requests (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                request_type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                documents TEXT[] NOT NULL DEFAULT '{}',
                document_status TEXT,
                payment_status TEXT,
                message TEXT,
                business_name TEXT,
                business_registration TEXT,
                trading_experience TEXT,
                requested_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                reviewed_at TIMESTAMPTZ,
                reviewed_by TEXT,
                admin_notes TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                full_name TEXT,
                avatar_url TEXT,
                verification_level TEXT NOT NULL DEFAULT 'unverified',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                message TEXT NOT NULL,
                is_read BOOLEAN NOT NULL DEFAULT FALSE,
                metadata JSONB NOT NULL DEFAULT '{}',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS listing_views (
                id TEXT PRIMARY KEY,
                listing_id TEXT NOT NULL REFERENCES listings(id),
                user_id TEXT,
                ip_address TEXT,
                user_agent TEXT,
                viewed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_listing_views_recent ON listing_views(listing_id, viewed_at);
        """)

        logger.info("Database tables created/verified")
