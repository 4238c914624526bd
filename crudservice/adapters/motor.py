from __future__ import annotations
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .base import BaseRunner


class MotorRunner(BaseRunner):
    """Runner over a Motor database; pymongo errors propagate unchanged."""

    name = 'motor'

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database

    @property
    def client(self) -> AsyncIOMotorClient:
        return self.database.client

    async def aggregate(self, collection, pipeline, *, session=None, max_time_ms=None) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {}
        if max_time_ms is not None:
            kwargs['maxTimeMS'] = max_time_ms
        cursor = self.database[collection].aggregate(pipeline, session=session, **kwargs)
        return await cursor.to_list(length=None)

    async def insert_one(self, collection, document, *, session=None):
        result = await self.database[collection].insert_one(document, session=session)
        return result.inserted_id

    async def update_one(self, collection, filter, update, *, session=None) -> int:
        result = await self.database[collection].update_one(filter, update, session=session)
        return result.matched_count

    async def update_many(self, collection, filter, update, *, session=None) -> int:
        result = await self.database[collection].update_many(filter, update, session=session)
        return result.matched_count

    async def delete_one(self, collection, filter, *, session=None) -> int:
        result = await self.database[collection].delete_one(filter, session=session)
        return result.deleted_count

    async def start_session(self):
        session = await self.client.start_session()
        session.start_transaction()
        return session

    async def commit(self, session) -> None:
        await session.commit_transaction()

    async def abort(self, session) -> None:
        if session.in_transaction:
            await session.abort_transaction()

    async def end_session(self, session) -> None:
        await session.end_session()
