from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
import os
import sys
from dotenv import load_dotenv

# Make the project importable so the ORM metadata can be loaded
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from catalog_recommender.database import Base  # noqa: E402
from catalog_recommender.database import Category, Item, Member, ItemReview, MemberCategory  # noqa: F401,E402

config = context.config

load_dotenv()

# alembic.ini wins; otherwise use the same DATABASE_URL as the service
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", os.getenv("DATABASE_URL", "sqlite:///./recommendation.db"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting to the database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section.setdefault("sqlalchemy.url", config.get_main_option("sqlalchemy.url"))
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # render_as_batch lets SQLite alter the TEXT vector columns later
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
