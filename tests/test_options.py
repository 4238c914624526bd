import dataclasses

import pytest

from crudservice import QueryOptions


def test_coerce_mapping_with_aliases_and_extras():
    options = QueryOptions.coerce({
        'limit': 5,
        'addFields': {'x': 1},
        'maxTimeMS': 200,
        'disableAuthorization': 1,
        'user': 'u1',
    })
    assert options.limit == 5
    assert options.add_fields == {'x': 1}
    assert options.max_time_ms == 200
    assert options.disable_authorization is True
    assert options.random is False
    assert options.extra == {'user': 'u1'}
    assert options.get('user') == 'u1'
    assert options.get('maxTimeMS') == 200
    assert options.get('skip', 0) == 0
    assert options.get('missing') is None


def test_coerce_passthrough_and_overrides():
    options = QueryOptions(limit=3)
    assert QueryOptions.coerce(options) is options
    assert QueryOptions.coerce(options, limit=1).limit == 1
    assert options.limit == 3
    assert QueryOptions.coerce(None) == QueryOptions()
    assert QueryOptions.coerce({'extra': {'a': 1}}).get('a') == 1


def test_options_are_immutable():
    options = QueryOptions.coerce({'tenant': 't'})
    with pytest.raises(dataclasses.FrozenInstanceError):
        options.limit = 1
    with pytest.raises(TypeError):
        options.extra['tenant'] = 'other'


def test_replace_keeps_unknown_keys_in_extra():
    options = QueryOptions.coerce({'tenant': 't'}).replace(skip=2, trace=True)
    assert options.skip == 2
    assert options.get('tenant') == 't'
    assert options.get('trace') is True


def test_refetch_and_selection_snapshots():
    options = QueryOptions.coerce({
        'match': {'a': 1},
        'sort': 'a',
        'skip': 1,
        'limit': 2,
        'select': ['a'],
        'populate': ['group'],
        'random': True,
        'distinct': 'a',
        'pipelines': [{'$limit': 1}],
        'session': 'S',
        'tenant': 't',
    })
    refetch = options.for_refetch()
    assert (refetch.match, refetch.sort, refetch.skip, refetch.limit) == (None, None, None, None)
    assert (refetch.random, refetch.distinct, refetch.pipelines) == (False, None, None)
    assert refetch.disable_authorization is True
    assert refetch.populate == ['group'] and refetch.select == ['a']
    assert refetch.session == 'S' and refetch.get('tenant') == 't'

    selection = options.for_selection()
    assert selection.match == {'a': 1}
    assert selection.disable_authorization is False
    assert (selection.select, selection.populate, selection.limit, selection.random) == (None, None, None, False)
    assert selection.session == 'S'
