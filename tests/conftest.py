"""Test configuration and fixtures for crudservice."""

import asyncio
import os
import sys
import uuid

import pytest
from dotenv import load_dotenv

from tests.memory import MemoryRunner
from tests.services import HOOK_EVENTS, build_services

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def event_loop_policy():
    """Set event loop policy for Windows compatibility."""
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    yield


@pytest.fixture(scope="function")
async def runner():
    """Collection runner for each test function.

    Uses the MongoDB deployment named by CRUDSERVICE_TEST_MONGO_URL (a replica
    set, transactions need one) when set, the in-memory runner otherwise.
    """
    test_mongo_url = os.getenv('CRUDSERVICE_TEST_MONGO_URL')
    if not test_mongo_url:
        print("Using in-memory collections")
        yield MemoryRunner()
        return

    from motor.motor_asyncio import AsyncIOMotorClient
    from crudservice.adapters.motor import MotorRunner

    client = AsyncIOMotorClient(test_mongo_url)
    database = client['crudservice_test_' + uuid.uuid4().hex[:8]]
    # transactions cannot create collections on older servers
    for name in ('users', 'groups', 'posts'):
        await database.create_collection(name)
    print(f"Using external database: {database.name}")
    yield MotorRunner(database)
    try:
        await client.drop_database(database.name)
    except Exception as e:
        print(f"Failed to clean up external database: {e}")
    client.close()


@pytest.fixture(scope="function")
def services(runner):
    HOOK_EVENTS.clear()
    return build_services(runner)


@pytest.fixture(scope="function")
def offline_services():
    """Services over an empty in-memory runner, for pipeline-building tests."""
    HOOK_EVENTS.clear()
    return build_services(MemoryRunner())


@pytest.fixture(scope="function")
def registry(services):
    return services[0]


@pytest.fixture(scope="function")
def users(services):
    return services[1]


@pytest.fixture(scope="function")
def groups(services):
    return services[2]


@pytest.fixture(scope="function")
def posts(services):
    return services[3]


# Import fixtures from fixtures module
from tests.fixtures import populated_db  # noqa: E402,F401
