import pytest

from crudservice import QueryOptions
from crudservice.core.lookup import get_shallow_lookup_pipeline, relation_path, resolve_relation

ACTIVE_GROUPS = [{'$match': {'$expr': {'$eq': ['$active', True]}}}]


@pytest.fixture
def users(offline_services):
    return offline_services[1]


@pytest.fixture
def posts(offline_services):
    return offline_services[3]


def test_relation_path_skips_operators_and_indexes():
    assert relation_path('group.name.$in.0') == ['group', 'name']
    assert relation_path('$and.0.group.name') == ['group', 'name']


def test_resolve_relation(users, posts):
    relation, target = resolve_relation(users, 'group')
    assert relation.local_field == 'group_id'
    assert target.model_name == 'Group'
    assert resolve_relation(users, 'first_name') is None
    # Tag has no registered service
    assert resolve_relation(posts, 'labels') is None


@pytest.mark.asyncio
async def test_one_join_per_relation(users):
    pipeline = await get_shallow_lookup_pipeline(['group.name', 'group.created_at'], users, QueryOptions())
    assert pipeline == [
        {'$lookup': {
            'from': 'groups',
            'localField': 'group_id',
            'foreignField': '_id',
            'as': 'group',
            'pipeline': ACTIVE_GROUPS,
        }},
        {'$unwind': {'path': '$group', 'preserveNullAndEmptyArrays': True}},
        {'$unset': ['group.secret']},
    ]
    assert len([s for s in pipeline if '$lookup' in s]) == 1


@pytest.mark.asyncio
async def test_join_without_authorization_has_no_inner_pipeline(users):
    pipeline = await get_shallow_lookup_pipeline(['group.name'], users, QueryOptions.coerce({'include_inactive': True}))
    assert 'pipeline' not in pipeline[0]['$lookup']


@pytest.mark.asyncio
async def test_nested_joins(users):
    pipeline = await get_shallow_lookup_pipeline(['group.owner.first_name'], users, QueryOptions())
    lookups = [s['$lookup'] for s in pipeline if '$lookup' in s]
    assert [(l['from'], l['localField'], l['as']) for l in lookups] == [
        ('groups', 'group_id', 'group'),
        ('users', 'group.owner_id', 'group.owner'),
    ]
    assert {'$unwind': {'path': '$group.owner', 'preserveNullAndEmptyArrays': True}} in pipeline
    assert pipeline[-1] == {'$unset': ['group.secret', 'group.owner.password']}


@pytest.mark.asyncio
async def test_many_relation_is_not_unwound(users):
    pipeline = await get_shallow_lookup_pipeline(['friends.first_name'], users, QueryOptions())
    assert pipeline[0]['$lookup']['localField'] == 'friend_ids'
    assert not any('$unwind' in s for s in pipeline)
    assert pipeline[-1] == {'$unset': ['friends.password']}


@pytest.mark.asyncio
async def test_plain_fields_and_unregistered_targets_produce_nothing(users, posts):
    assert await get_shallow_lookup_pipeline(['first_name', 'age.$gt', '$and.0.age'], users, QueryOptions()) == []
    assert await get_shallow_lookup_pipeline(['labels.label'], posts, QueryOptions()) == []
