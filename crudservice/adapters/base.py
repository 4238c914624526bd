from __future__ import annotations
from typing import Any, Dict, List, Optional


class BaseRunner:
    """Collection runner contract consumed by services.

    Implementations execute pipelines and single-document writes against the
    named collection and manage sessions for multi-document batches.
    """

    name = 'base'

    async def aggregate(
        self,
        collection: str,
        pipeline: List[Dict[str, Any]],
        *,
        session: Any = None,
        max_time_ms: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def insert_one(self, collection: str, document: Dict[str, Any], *, session: Any = None) -> Any:
        """Insert ``document`` and return its ``_id``."""
        raise NotImplementedError

    async def update_one(self, collection: str, filter: Dict[str, Any], update: Dict[str, Any], *, session: Any = None) -> int:
        """Apply ``update`` to the first match and return the matched count."""
        raise NotImplementedError

    async def update_many(self, collection: str, filter: Dict[str, Any], update: Dict[str, Any], *, session: Any = None) -> int:
        """Apply ``update`` to every match and return the matched count."""
        raise NotImplementedError

    async def delete_one(self, collection: str, filter: Dict[str, Any], *, session: Any = None) -> int:
        raise NotImplementedError

    # Sessions/transactions for *_many batches
    async def start_session(self) -> Any:
        """Open a session with a started transaction."""
        raise NotImplementedError

    async def commit(self, session: Any) -> None:
        raise NotImplementedError

    async def abort(self, session: Any) -> None:
        raise NotImplementedError

    async def end_session(self, session: Any) -> None:
        raise NotImplementedError
