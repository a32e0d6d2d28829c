"""Database connection and session management using SQLAlchemy async ORM"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from redis import asyncio as aioredis

from app.config import DATABASE_URL, REDIS_URL


def normalize_database_url(url: str) -> str:
    """Convert sync driver URLs to their async equivalents"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    PostgreSQL gets a connection pool:
    pool_size=20: Keep 20 connections alive in the pool
    max_overflow=30: Allow 30 additional connections under load (total 50 max)
    pool_recycle=3600: Recycle connections every hour to prevent stale connections
    SQLite (tests, local demos) uses the dialect's default pool.
    """
    url = normalize_database_url(url)
    if url.startswith("postgresql+asyncpg://"):
        kwargs.setdefault("pool_size", 20)
        kwargs.setdefault("max_overflow", 30)
        kwargs.setdefault("pool_recycle", 3600)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=False, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create an async session factory bound to an engine"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(DATABASE_URL)

AsyncSessionLocal = build_session_factory(engine)

# Base class for declarative models
Base = declarative_base()

# Redis client (initialized on app startup when REDIS_URL is set)
redis_client: Optional[aioredis.Redis] = None


async def init_redis() -> Optional[aioredis.Redis]:
    """Initialize Redis connection with async client"""
    global redis_client
    if not REDIS_URL:
        return None
    redis_client = aioredis.from_url(
        REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    return redis_client


async def close_redis():
    """Close Redis connection"""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


def get_redis() -> Optional[aioredis.Redis]:
    """Return the shared Redis client, or None when Redis is not configured"""
    return redis_client
