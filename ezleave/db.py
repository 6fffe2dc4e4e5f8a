"""
Database configuration and session management (async SQLAlchemy).
"""
import os
import logging
from typing import AsyncGenerator

from dotenv import load_dotenv
from sqlalchemy import text  # type: ignore
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # type: ignore
from sqlalchemy.orm import declarative_base  # type: ignore

load_dotenv()

# Database Configuration
MYSQL_HOST = os.getenv("MYSQL_HOST", "localhost")
MYSQL_PORT = int(os.getenv("MYSQL_PORT", 3306))
MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASSWORD = os.getenv("MYSQL_PASSWORD", "")
MYSQL_DATABASE = os.getenv("MYSQL_DATABASE", "ezleave_db")
MYSQL_CHARSET = os.getenv("MYSQL_CHARSET", "utf8mb4")

logger = logging.getLogger(__name__)

# DATABASE_URL wins over the MYSQL_* parts (tests point it at sqlite+aiosqlite)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+aiomysql://{MYSQL_USER}:{MYSQL_PASSWORD}@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DATABASE}?charset={MYSQL_CHARSET}",
)

_is_sqlite = DATABASE_URL.startswith("sqlite")

engine_kwargs = {"echo": False, "pool_pre_ping": True}
if not _is_sqlite:
    engine_kwargs.update({"pool_size": 10, "max_overflow": 20})

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for SQLAlchemy models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get SQLAlchemy database session (FastAPI dependency).

    Services commit their own unit of work; anything left uncommitted when a
    handler raises is rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def ensure_database_exists():
    """
    Create the application database if it does not exist (MySQL only).
    Call this before init_db() on a fresh server.
    """
    if _is_sqlite:
        return
    url_no_db = f"mysql+aiomysql://{MYSQL_USER}:{MYSQL_PASSWORD}@{MYSQL_HOST}:{MYSQL_PORT}/mysql?charset={MYSQL_CHARSET}"
    temp_engine = create_async_engine(url_no_db, pool_pre_ping=True)
    escaped = MYSQL_DATABASE.replace("`", "``")
    async with temp_engine.begin() as conn:
        await conn.execute(
            text("CREATE DATABASE IF NOT EXISTS `{:s}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci".format(escaped))
        )
    await temp_engine.dispose()
    logger.info("Database %s ensured (created if missing).", MYSQL_DATABASE)


async def init_db():
    """
    Initialize database - create all tables using SQLAlchemy models.
    This is called on application startup.
    """
    # Import models so every table is registered on Base.metadata
    import ezleave.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized: %s", engine.url.render_as_string(hide_password=True))


async def close_db():
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
