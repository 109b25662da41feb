"""Guarded Alembic operations with explicit existence checks."""

from __future__ import annotations

from typing import Any

from alembic import op
from sqlalchemy import MetaData, text
from sqlalchemy.dialects import postgresql


def include_object(object: Any, name: str, type_: str, reflected: bool, compare_to: Any) -> bool:
  """Keep autogenerate from proposing drops for objects the ORM does not model."""
  if type_ in {"table", "column"} and reflected and compare_to is None:
    return False
  return True


def build_migration_context_options(*, target_metadata: MetaData) -> dict[str, Any]:
  """Shared Alembic context options for online and offline runs."""
  return {"compare_type": True, "compare_server_default": True, "transaction_per_migration": True, "include_object": include_object, "target_metadata": target_metadata}


def table_exists(*, table_name: str, schema: str | None = None) -> bool:
  """Return True when a table exists in the target schema."""
  statement = text(
    """
    SELECT 1
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_name = :table_name
      AND table_type = 'BASE TABLE'
    LIMIT 1
    """
  )
  result = op.get_bind().execute(statement, {"schema": schema or "public", "table_name": table_name})
  return result.first() is not None


def index_exists(*, index_name: str, schema: str | None = None) -> bool:
  """Return True when an index exists in the target schema."""
  statement = text(
    """
    SELECT 1
    FROM pg_indexes
    WHERE schemaname = :schema
      AND indexname = :index_name
    LIMIT 1
    """
  )
  result = op.get_bind().execute(statement, {"schema": schema or "public", "index_name": index_name})
  return result.first() is not None


def guarded_create_enum(name: str, *values: str) -> None:
  """Create a Postgres enum type unless it already exists."""
  postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)


def guarded_drop_enum(name: str) -> None:
  postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)


def guarded_create_table(table_name: str, *args: Any, **kwargs: Any) -> None:
  """Create a table only when it does not already exist."""
  if table_exists(table_name=table_name, schema=kwargs.get("schema")):
    return
  op.create_table(table_name, *args, **kwargs)


def guarded_drop_table(table_name: str, *args: Any, **kwargs: Any) -> None:
  """Drop a table only when it exists."""
  if not table_exists(table_name=table_name, schema=kwargs.get("schema")):
    return
  op.drop_table(table_name, *args, **kwargs)


def guarded_create_index(index_name: str, table_name: str, *args: Any, **kwargs: Any) -> None:
  """Create an index only when its table exists and the index does not."""
  schema = kwargs.get("schema")
  if not table_exists(table_name=table_name, schema=schema):
    return
  if index_exists(index_name=index_name, schema=schema):
    return
  op.create_index(index_name, table_name, *args, **kwargs)


def guarded_drop_index(index_name: str, *args: Any, **kwargs: Any) -> None:
  """Drop an index only when it exists."""
  if not index_exists(index_name=index_name, schema=kwargs.get("schema")):
    return
  op.drop_index(index_name, *args, **kwargs)
