# accessgate/db/database.py
from __future__ import annotations

from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def create_db_engine(url: str, **kwargs: Any) -> Engine:
    """Engine pro App-Instanz; keine globale Verbindung auf Modulebene."""
    options: dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # In-Memory: alle Sessions teilen sich dieselbe Verbindung
            options["poolclass"] = StaticPool
    options.update(kwargs)
    return create_engine(url, **options)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_models(engine: Engine) -> None:
    import accessgate.models.access_code  # noqa: F401
    import accessgate.models.usage_log  # noqa: F401

    Base.metadata.create_all(bind=engine)
