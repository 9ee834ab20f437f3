import os
import sys
from logging.config import fileConfig

from flask import current_app, has_app_context
from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Under `flask db ...` an app context already exists; plain `alembic` builds one.
if has_app_context():
    app = current_app
else:
    from zera_oracle.factory import create_app
    app = create_app({"ORACLE_BOOTSTRAP": False, "START_BACKGROUND_SYSTEMS": False})

from zera_oracle.extensions import db
import zera_oracle.models  # noqa: F401  registers the tables on db.metadata

# Use metadata from the oracle models
target_metadata = db.metadata

# Override sqlalchemy.url with Flask app's DB URI
config.set_main_option('sqlalchemy.url', app.config['SQLALCHEMY_DATABASE_URI'].replace('%', '%%'))


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite can't ALTER most columns in place.
            render_as_batch=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
