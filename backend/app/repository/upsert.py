from __future__ import annotations
from typing import Any, Dict, Iterator, List, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


'''
INSERT ... ON CONFLICT builder of the session's dialect
  - PostgreSQL in production, SQLite in tests; both expose on_conflict_do_update / excluded
'''
def dialect_insert(db: Session, model):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert not supported on dialect {name!r}")


def chunked(rows: Sequence[Dict[str, Any]], size: int = 500) -> Iterator[List[Dict[str, Any]]]:
    """Keep a single statement from carrying too many VALUES rows."""
    for i in range(0, len(rows), size):
        yield list(rows[i:i + size])
