from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_MAX_TIME_MS = 10000


@dataclass(frozen=True)
class CrudConfig:
    """Library-wide defaults shared by every service of a registry.

    Attributes:
        default_max_time_ms: maxTimeMS passed to the database when a query does
            not set one. Also the hydration budget.
        operator_prefix: Marker of query operators (``$in``, ``$and`` ...).
        count_row_limit: ``$limit`` appended after the ``$count`` stage. It bounds
            the rows of the count result, never the documents counted.
    """

    default_max_time_ms: int = DEFAULT_MAX_TIME_MS
    operator_prefix: str = '$'
    count_row_limit: int = 1

    @classmethod
    def from_env(cls, prefix: str = 'CRUDSERVICE_') -> 'CrudConfig':
        raw: Optional[str] = os.getenv(prefix + 'DEFAULT_MAX_TIME_MS')
        if raw is None or not raw.strip():
            return cls()
        return cls(default_max_time_ms=int(raw))
