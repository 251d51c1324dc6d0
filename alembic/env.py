import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, create_engine

from latepass.core.config import settings
from latepass.db.session import Base

# Import all models so Alembic sees them in metadata
from latepass.models.user import User  # noqa: F401
from latepass.models.timetable import Timetable  # noqa: F401
from latepass.models.late_pass_config import LatePassConfig  # noqa: F401
from latepass.models.ticket import LatePassTicket  # noqa: F401
from latepass.models.ticket_event import TicketEvent  # noqa: F401
from latepass.models.ticket_sequence import TicketSequence  # noqa: F401
from latepass.models.student_guard import StudentTicketGuard  # noqa: F401
from latepass.models.attendance import AttendanceRecord  # noqa: F401


# Alembic Config object
config = context.config

# Force sqlalchemy.url from the runtime DATABASE_URL
db_url = getattr(settings, "DATABASE_URL", None) or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / latepass.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

# Logging config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Target metadata for autogenerate
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")

    # Do NOT use engine_from_config: alembic.ini carries no real URL.
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
