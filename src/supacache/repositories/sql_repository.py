"""SQL implementation of CacheStore.

Uses SQLAlchemy Core against the cache table:

    key         text, primary key
    body        binary (encryption envelope)
    status      integer
    headers     text (JSON array of [name, value] pairs)
    expires     timestamp
    created_at  timestamp, defaults to now

Timestamps are stored as naive UTC so the same table works on SQLite
and on databases without time zone aware columns.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from supacache.entities import CacheRecord
from supacache.errors import StoreError


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_aware_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SqlCacheRepository:
    """SQLAlchemy implementation of the CacheStore protocol.

    Lookups filter on ``key = :key AND expires > :now``; writes are an
    insert-or-replace on the primary key inside a single transaction.
    """

    def __init__(self, engine: Engine, table_name: str = "SUPACACHE") -> None:
        """Initialize the SQL cache repository.

        Args:
            engine: SQLAlchemy engine for the cache database.
            table_name: Name of the cache table.
        """
        self._engine = engine
        self._metadata = MetaData()
        self._table = Table(
            table_name,
            self._metadata,
            Column("key", String(128), primary_key=True),
            Column("body", LargeBinary, nullable=False),
            Column("status", Integer, nullable=False),
            Column("headers", Text, nullable=False),
            Column("expires", DateTime, nullable=False),
            Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
        )

    @classmethod
    def create(
        cls,
        url: str,
        table_name: str = "SUPACACHE",
        create_schema: bool = True,
    ) -> "SqlCacheRepository":
        """Factory method to create a repository from a database URL.

        Args:
            url: SQLAlchemy database URL.
            table_name: Name of the cache table.
            create_schema: Create the table if it does not exist.

        Returns:
            Configured SqlCacheRepository
        """
        engine_kwargs: dict = {}
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                # One shared connection, otherwise every thread sees its own empty database
                engine_kwargs["poolclass"] = StaticPool

        repository = cls(create_engine(url, **engine_kwargs), table_name=table_name)
        if create_schema:
            repository.create_schema()
        return repository

    def create_schema(self) -> None:
        """Create the cache table if it does not exist."""
        try:
            self._metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create cache table: {e}") from e

    def find_fresh(self, key: str, now: datetime) -> CacheRecord | None:
        """Find an unexpired row by key.

        Args:
            key: The cache key
            now: Current instant

        Returns:
            The stored record, or None when absent or expired
        """
        table = self._table
        query = select(
            table.c.key,
            table.c.body,
            table.c.status,
            table.c.headers,
            table.c.expires,
            table.c.created_at,
        ).where(table.c.key == key, table.c.expires > _to_naive_utc(now))

        try:
            with self._engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Cache lookup failed: {e}") from e

        if row is None:
            return None

        return CacheRecord(
            key=row.key,
            body=row.body,
            status=row.status,
            headers=row.headers,
            expires_at=_to_aware_utc(row.expires),
            created_at=_to_aware_utc(row.created_at),
        )

    def upsert(self, record: CacheRecord) -> None:
        """Insert a record, replacing any existing row with the same key.

        Args:
            record: The record to write
        """
        values = {
            "key": record.key,
            "body": record.body,
            "status": record.status,
            "headers": record.headers,
            "expires": _to_naive_utc(record.expires_at),
        }
        if record.created_at is not None:
            values["created_at"] = _to_naive_utc(record.created_at)

        try:
            with self._engine.begin() as conn:
                self._execute_upsert(conn, values)
        except SQLAlchemyError as e:
            raise StoreError(f"Cache write failed: {e}") from e

    def _execute_upsert(self, conn: Connection, values: dict) -> None:
        table = self._table
        dialect = self._engine.dialect.name

        if dialect in ("sqlite", "postgresql"):
            dialect_insert = sqlite_insert if dialect == "sqlite" else pg_insert
            statement = dialect_insert(table).values(**values)
            statement = statement.on_conflict_do_update(
                index_elements=[table.c.key],
                set_={name: statement.excluded[name] for name in values if name != "key"},
            )
            conn.execute(statement)
            return

        conn.execute(delete(table).where(table.c.key == values["key"]))
        conn.execute(insert(table).values(**values))

    def health_check(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if healthy, False otherwise
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self._engine.dispose()

    @property
    def table(self) -> Table:
        """Get the cache table definition."""
        return self._table

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        return self._engine
