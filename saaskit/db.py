from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from saaskit.config import settings


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """Adds created_at / updated_at columns.

    Every billing mirror table uses it::

        class Product(TimestampMixin, Base):
            __tablename__ = "products"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


def _engine_options(database_url: str) -> dict[str, Any]:
    # SQLite (local dev) does not take the pool sizing arguments.
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
    }


def get_engine():
    return create_engine(settings.database_url, **_engine_options(settings.database_url))


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
