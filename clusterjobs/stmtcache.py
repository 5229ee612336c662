"""
Shared cache of compiled statements.

``StatementCache`` is handed to SQLAlchemy as the ``compiled_cache``
execution option, so a statement shape that was compiled once is reused
by every later call, from any thread. Shapes come from a fixed set of
repository code paths, never from caller-supplied SQL, so the cache is
unbounded.
"""

import threading
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy.engine import Connection, Engine, Row


class ExecResult(NamedTuple):
    rowcount: int
    lastrowid: Optional[int]


class StatementCache:
    """
    Lock-guarded mapping from statement shape to compiled form.

    Implements the parts of the mapping protocol SQLAlchemy uses for a
    compiled cache (``get`` and item assignment) and runs statements
    through it.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._lock = threading.Lock()
        self._compiled: Dict[Any, Any] = {}
        self.hits = 0
        self.misses = 0

    @property
    def engine(self) -> Engine:
        return self._engine

    # Mapping protocol used by SQLAlchemy

    def get(self, key, default=None):
        with self._lock:
            compiled = self._compiled.get(key)
            if compiled is None:
                self.misses += 1
                return default
            self.hits += 1
            return compiled

    def __getitem__(self, key):
        with self._lock:
            return self._compiled[key]

    def __setitem__(self, key, compiled):
        # First prepared form wins when two threads miss on the same shape
        with self._lock:
            self._compiled.setdefault(key, compiled)

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._compiled

    def __len__(self) -> int:
        with self._lock:
            return len(self._compiled)

    def clear(self) -> None:
        with self._lock:
            self._compiled.clear()
            self.hits = 0
            self.misses = 0

    def statements(self) -> List[str]:
        """SQL text of every cached statement."""
        with self._lock:
            return [str(c) for c in self._compiled.values()]

    # Execution

    def _bind(self, conn: Connection) -> Connection:
        return conn.execution_options(compiled_cache=self)

    def query_row(self, stmt) -> Optional[Row]:
        """Run a SELECT and return its first row, or None."""
        with self._engine.connect() as conn:
            return self._bind(conn).execute(stmt).first()

    def query_all(self, stmt) -> List[Row]:
        """Run a SELECT and return all rows."""
        with self._engine.connect() as conn:
            return list(self._bind(conn).execute(stmt))

    def exec(self, stmt) -> ExecResult:
        """
        Run an INSERT/UPDATE in its own committed transaction.

        Returns:
            Affected row count and, for inserts, the new primary key
        """
        with self._engine.begin() as conn:
            result = self._bind(conn).execute(stmt)
            lastrowid = None
            if result.is_insert:
                lastrowid = result.inserted_primary_key[0]
            return ExecResult(rowcount=result.rowcount, lastrowid=lastrowid)
