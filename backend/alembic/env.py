import os
from logging.config import fileConfig

from sqlalchemy import create_engine
from alembic import context

config = context.config
if config.config_file_name is not None:
    # Keep the application's loggers alive when init_db runs migrations
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# init_db passes the application's database through the environment; alembic.ini holds the fallback
db_url = os.getenv("JACKIESLIST_DATABASE_URL") or config.get_main_option("sqlalchemy.url")

if context.is_offline_mode():
    raise SystemExit("jackieslist migrations run online only: alembic upgrade head")

# Revisions are hand-written op.* scripts, so there is no metadata to compare against.
# Batch mode lets SQLite add columns and indexes to existing tables.
engine = create_engine(db_url)
with engine.connect() as connection:
    context.configure(connection=connection, target_metadata=None, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()
