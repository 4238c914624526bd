"""Database fixtures for crudservice tests (shared)."""

from datetime import datetime, timedelta

import pytest
from bson import ObjectId

# Whole seconds and naive UTC so values survive a round trip through MongoDB unchanged
NOW = datetime(2024, 1, 1, 12, 0, 0)


def sample_documents():
    """Raw documents keyed by collection, then by a short handle."""
    admins, editors, archived = ObjectId(), ObjectId(), ObjectId()
    alice, bob, charlie, alice2, dave, erin = (ObjectId() for _ in range(6))
    groups = {
        'admins': {
            '_id': admins, 'name': 'Admins', 'active': True, 'secret': 'admin-secret',
            'created_at': NOW - timedelta(days=10), 'owner_id': alice,
        },
        'editors': {
            '_id': editors, 'name': 'Editors', 'active': True, 'secret': 'editor-secret',
            'created_at': NOW - timedelta(days=5), 'owner_id': bob,
        },
        'archived': {
            '_id': archived, 'name': 'Archived', 'active': False, 'secret': 'old',
            'created_at': NOW - timedelta(days=100), 'owner_id': None,
        },
    }
    users = {
        'alice': {
            '_id': alice, 'first_name': 'Alice', 'last_name': 'Johnson', 'age': 30, 'active': True,
            'password': 'pw-alice', 'created_at': NOW - timedelta(hours=4), 'tags': ['admin', 'ops'],
            'address': {'city': 'Oslo', 'zip': 1000}, 'group_id': admins, 'friend_ids': [bob, charlie],
        },
        'bob': {
            '_id': bob, 'first_name': 'Bob', 'last_name': 'Smith', 'age': 25, 'active': True,
            'password': 'pw-bob', 'created_at': NOW - timedelta(hours=3), 'tags': ['writer'],
            'address': {'city': 'Bergen', 'zip': 5000}, 'group_id': editors, 'friend_ids': [],
        },
        'charlie': {
            '_id': charlie, 'first_name': 'Charlie', 'last_name': 'Brown', 'age': 35, 'active': False,
            'password': 'pw-charlie', 'created_at': NOW - timedelta(hours=2), 'tags': [],
            'address': None, 'group_id': admins, 'friend_ids': [alice],
        },
        'alice2': {
            '_id': alice2, 'first_name': 'Alice', 'last_name': 'Cooper', 'age': 40, 'active': True,
            'password': 'pw-alice2', 'created_at': NOW - timedelta(hours=1), 'tags': ['writer'],
            'address': {'city': 'Oslo', 'zip': 1001}, 'group_id': editors, 'friend_ids': [],
        },
        'dave': {
            '_id': dave, 'first_name': 'Dave', 'last_name': 'Archive', 'age': 50, 'active': True,
            'password': 'pw-dave', 'created_at': NOW - timedelta(hours=5), 'tags': [],
            'address': None, 'group_id': archived, 'friend_ids': [],
        },
        'erin': {
            '_id': erin, 'first_name': 'Erin', 'last_name': 'Nogroup', 'age': 22, 'active': True,
            'password': 'pw-erin', 'created_at': NOW - timedelta(hours=6), 'tags': [],
            'address': None, 'group_id': None, 'friend_ids': [],
        },
    }
    posts = {
        'hello': {'_id': ObjectId(), 'title': 'Hello', 'author_id': alice, 'tag_ids': [ObjectId()]},
        'draft': {'_id': ObjectId(), 'title': 'Draft', 'author_id': bob, 'tag_ids': []},
    }
    return {'groups': groups, 'users': users, 'posts': posts}


async def seed(runner, documents):
    """Insert raw documents directly, bypassing services and their hooks."""
    for collection, docs in documents.items():
        for doc in docs.values():
            await runner.insert_one(collection, dict(doc))
    return documents


@pytest.fixture(scope="function")
async def populated_db(runner, services):
    return await seed(runner, sample_documents())
