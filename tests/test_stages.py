from crudservice.core.stages import (
    append,
    dir_value,
    distinct_stages,
    limit_stage,
    projection_tree,
    random_stage,
    select_stage,
    skip_stage,
    sort_spec,
    sort_stage,
    unset_stage,
)


def test_dir_value():
    assert dir_value(None) == 1
    assert dir_value('desc') == -1
    assert dir_value('ASC') == 1
    assert dir_value(-1) == -1
    assert dir_value(1) == 1


def test_sort_spec_shapes():
    assert sort_spec('-created_at') == {'created_at': -1}
    assert sort_spec(['first_name', '-age']) == {'first_name': 1, 'age': -1}
    assert sort_spec({'a': 'desc', 'b': 'asc'}) == {'a': -1, 'b': 1}
    assert sort_spec(None) == {}
    assert sort_stage('') is None
    assert sort_stage('+age') == {'$sort': {'age': 1}}


def test_paging_stages_keep_zero():
    assert skip_stage(0) == {'$skip': 0}
    assert limit_stage(0) == {'$limit': 0}
    assert skip_stage(None) is None
    assert limit_stage(None) is None
    assert random_stage(3) == {'$sample': {'size': 3}}
    assert random_stage(None) is None


def test_projection_tree():
    assert projection_tree(['first_name', 'address.city']) == {'first_name': 1, 'address': {'city': 1}}
    # a flat path wins over deeper selections
    assert projection_tree(['address.city', 'address']) == {'address': 1}
    assert projection_tree(['address', 'address.city']) == {'address': 1}
    assert select_stage([]) is None
    assert select_stage(['a.b', 'a.c']) == {'$project': {'a': {'b': 1, 'c': 1}}}


def test_distinct_stages():
    assert distinct_stages('first_name') == [
        {'$group': {'_id': ['$first_name'], 'doc': {'$first': '$$ROOT'}}},
        {'$replaceRoot': {'newRoot': '$doc'}},
    ]
    assert distinct_stages(['a', 'b'])[0]['$group']['_id'] == ['$a', '$b']
    assert distinct_stages(None) == []


def test_unset_and_append():
    assert unset_stage(['a', 'a', '', 'b']) == {'$unset': ['a', 'b']}
    assert unset_stage([]) is None
    pipeline = append([], None, {'$limit': 1}, None)
    assert pipeline == [{'$limit': 1}]
