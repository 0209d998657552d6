from sqlalchemy import func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trustflow.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db():
    """FastAPI dependency: yields AsyncSession per request."""
    async with async_session_factory() as session:
        yield session


def dialect_name(db: AsyncSession) -> str:
    return db.get_bind().dialect.name


def upsert_insert(db: AsyncSession, table):
    """Return an INSERT construct that supports ON CONFLICT for the session's backend.

    PostgreSQL in production, SQLite for local runs and the test-suite. Both
    constructs expose the same on_conflict_do_nothing / on_conflict_do_update API.
    """
    if dialect_name(db) == "sqlite":
        return sqlite_insert(table)
    return pg_insert(table)


async def acquire_write_lock(db: AsyncSession, key: int) -> None:
    """Block other writers using the same `key` until this transaction ends.

    PostgreSQL: transaction-scoped advisory lock on `key` (signed 64-bit).

    SQLite has a single database-wide write lock, and pysqlite only takes it
    at the first INSERT/UPDATE/DELETE, so reads issued before that run
    unlocked. When no write transaction is open yet, BEGIN IMMEDIATE takes
    the lock up front. An open transaction has already written and holds it.
    """
    name = dialect_name(db)
    if name == "postgresql":
        await db.execute(select(func.pg_advisory_xact_lock(key)))
    elif name == "sqlite":
        connection = await db.connection()
        raw = await connection.get_raw_connection()
        if not raw.driver_connection.in_transaction:
            await db.execute(text("BEGIN IMMEDIATE"))
