from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import Config, load_config


# Declarative base class
class Base(DeclarativeBase):
    pass


def build_engine(cfg: Config) -> AsyncEngine:
    return create_async_engine(cfg.DATABASE_URL, echo=cfg.DB_ECHO, pool_pre_ping=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Dependency to get async session; the factory is attached at startup
async def get_db(request: Request):
    async with request.app.state.session_factory() as session:
        yield session


# Sync engine for Celery, created on first use
_sync_session_factory = None


def init_sync_engine(cfg: Config | None = None):
    global _sync_session_factory
    cfg = cfg or load_config()
    sync_engine = create_engine(cfg.sync_database_url, echo=cfg.DB_ECHO, pool_pre_ping=True)
    _sync_session_factory = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)
    return sync_engine


def get_db_sync():
    if _sync_session_factory is None:
        init_sync_engine()
    db = _sync_session_factory()
    try:
        yield db
    finally:
        db.close()
