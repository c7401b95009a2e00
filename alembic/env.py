"""Alembic environment for the Tenant-Gate tenant store.

The database URL comes from ``TENANT_GATE_DB_URL`` (via ``TenantGateSettings``)
unless overridden with ``alembic -x sqlalchemy.url=...``. Migrations run on
the same async driver the service uses.
"""

import asyncio
import sys
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

# Ensure src/ is on sys.path when running from a checkout
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from tenant_gate.common.config import get_settings
from tenant_gate.common.database import engine_options
from tenant_gate.common.models import Base

import tenant_gate.tenants.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("sqlalchemy.url")
    return override or get_settings().db_url


def run_migrations_offline() -> None:
    context.configure(url=database_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    # SQLite needs batch mode for ALTER TABLE in later revisions.
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(database_url(), **engine_options(get_settings()))
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
