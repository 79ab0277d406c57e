"""Database engine, session factory and declarative base"""

from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from collector.config.settings import settings

# SQLite only autoincrements INTEGER primary keys.
BigIntId = BigInteger().with_variant(Integer, "sqlite")

Base = declarative_base()


def create_db_engine(url: str | None = None, **kwargs) -> Engine:
    """Create an engine for the configured database URL."""
    return create_engine(url or settings.DATABASE_URL, pool_pre_ping=True, future=True, **kwargs)


engine = create_db_engine()

SessionLocal = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


def init_db(bind: Engine | None = None) -> None:
    """Create all collector tables that do not exist yet."""
    # Import models so they register on the metadata.
    import collector.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
