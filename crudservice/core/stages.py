from __future__ import annotations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

# Option -> aggregation stage translators. Each returns None (or an empty list)
# when the option does not apply, so callers can append unconditionally.

Stage = Dict[str, Any]


def dir_value(direction: Any) -> int:
    """Normalize a sort direction (1/-1, 'asc'/'desc', enum) to 1 or -1."""
    if direction is None:
        return 1
    val = getattr(direction, 'value', direction)
    if isinstance(val, str):
        return -1 if val.strip().lower() in ('desc', 'descending', '-1') else 1
    return -1 if val < 0 else 1


def sort_spec(sort: Union[str, Sequence[str], Mapping[str, Any], None]) -> Dict[str, int]:
    if not sort:
        return {}
    if isinstance(sort, Mapping):
        return {str(k): dir_value(v) for k, v in sort.items()}
    if isinstance(sort, str):
        sort = [sort]
    spec: Dict[str, int] = {}
    for entry in sort:
        entry = str(entry).strip()
        if not entry:
            continue
        if entry.startswith('-'):
            spec[entry[1:]] = -1
        else:
            spec[entry.lstrip('+')] = 1
    return spec


def sort_stage(sort: Union[str, Sequence[str], Mapping[str, Any], None]) -> Optional[Stage]:
    spec = sort_spec(sort)
    return {'$sort': spec} if spec else None


def random_stage(size: Optional[int]) -> Optional[Stage]:
    return None if size is None else {'$sample': {'size': size}}


def skip_stage(skip: Optional[int]) -> Optional[Stage]:
    return None if skip is None else {'$skip': skip}


def limit_stage(limit: Optional[int]) -> Optional[Stage]:
    return None if limit is None else {'$limit': limit}


def projection_tree(paths: Iterable[str]) -> Dict[str, Any]:
    """Build a nested inclusion projection from dotted paths.

    ['name', 'address.city'] -> {'name': 1, 'address': {'city': 1}}
    A flat (non-dotted) path always wins over nested selections below it.
    """
    paths = [p for p in paths if p]
    projection: Dict[str, Any] = {}
    for path in paths:
        reference = projection
        parts = path.split('.')
        for i, key in enumerate(parts):
            if not isinstance(reference.get(key), dict):
                reference[key] = {}
            # set the tail to 1 unless deeper selections already exist
            if i + 1 == len(parts) and not reference[key]:
                reference[key] = 1
            reference = reference[key] if isinstance(reference[key], dict) else {}
    for path in paths:
        if '.' not in path:
            projection[path] = 1
    return projection


def select_stage(paths: Optional[Iterable[str]]) -> Optional[Stage]:
    projection = projection_tree(paths or [])
    return {'$project': projection} if projection else None


def distinct_stages(distinct: Union[str, Sequence[str], None]) -> List[Stage]:
    """Group on the distinct fields keeping the first document of each group."""
    if not distinct:
        return []
    fields = [distinct] if isinstance(distinct, str) else list(distinct)
    return [
        {'$group': {'_id': ['$' + f for f in fields], 'doc': {'$first': '$$ROOT'}}},
        {'$replaceRoot': {'newRoot': '$doc'}},
    ]


def unset_stage(paths: Iterable[str]) -> Optional[Stage]:
    paths = list(dict.fromkeys(p for p in paths if p))
    return {'$unset': paths} if paths else None


def append(pipeline: List[Stage], *stages: Optional[Stage]) -> List[Stage]:
    pipeline.extend(s for s in stages if s)
    return pipeline
