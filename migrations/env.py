from alembic import context
from sqlalchemy.pool import NullPool

from accessgate.core.config import get_settings
from accessgate.db.database import Base, create_db_engine
from accessgate.models.access_code import AccessCode  # noqa: F401
from accessgate.models.usage_log import UsageLog  # noqa: F401

# kein fileConfig(): Logging kommt aus accessgate.core.logging_setup
target_metadata = Base.metadata
db_url = get_settings().DB_URL


def run_migrations_offline() -> None:
    """SQL-Skript erzeugen, ohne Verbindung zu access_codes / usage_logs."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_db_engine(db_url, poolclass=NullPool)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
