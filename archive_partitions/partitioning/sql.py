"""Identifier and literal rendering for generated Postgres DDL."""
from datetime import datetime

from sqlalchemy.dialects import postgresql

# Named paramstyle: DDL runs with no_parameters, so % must not be doubled
_preparer = postgresql.dialect(paramstyle="named").identifier_preparer


def quote_ident(name: str) -> str:
    return _preparer.quote_identifier(name)


def qualified(schema: str, name: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(name)}"


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def timestamp_literal(ts: datetime) -> str:
    return f"TIMESTAMP '{ts.isoformat(sep=' ')}'"
