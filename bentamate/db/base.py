from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

MEMORY_DB_URL = "sqlite+aiosqlite://"

Base = declarative_base()


def is_memory_url(db_url: str) -> bool:
    return db_url in (MEMORY_DB_URL, "sqlite+aiosqlite:///:memory:")


def make_engine(db_url: str) -> AsyncEngine:
    if is_memory_url(db_url):
        # one shared connection, otherwise every checkout sees an empty database
        return create_async_engine(db_url, future=True, echo=False, poolclass=StaticPool)
    return create_async_engine(db_url, future=True, echo=False)


def make_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
