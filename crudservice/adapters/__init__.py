from __future__ import annotations
from typing import Any

from .base import BaseRunner


def get_runner(target: Any, database_name: str | None = None) -> BaseRunner:
    """Build a runner from a runner, a Motor database or a Motor client."""
    if isinstance(target, BaseRunner):
        return target
    from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
    from .motor import MotorRunner
    if isinstance(target, AsyncIOMotorDatabase):
        return MotorRunner(target)
    if isinstance(target, AsyncIOMotorClient):
        if database_name:
            return MotorRunner(target[database_name])
        return MotorRunner(target.get_default_database())
    raise TypeError(f"Cannot build a collection runner from {target!r}")


__all__ = [
    'BaseRunner',
    'get_runner',
]
