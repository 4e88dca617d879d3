# storefront/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings

Base = declarative_base()


def build_engine(url: str):
    # SQLAlchemy requires postgresql:// (hosted providers still hand out postgres://)
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if "sqlite" in url:
        connect_args = {"check_same_thread": False}  # SQLite only
    else:
        connect_args = {}

    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


# No default database: price-dependent endpoints must fail when the
# system of record is not configured instead of reading a local file.
engine = build_engine(settings.DATABASE_URL) if settings.DATABASE_URL else None

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None


def init_db():
    if engine is not None:
        Base.metadata.create_all(bind=engine)
