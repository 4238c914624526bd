from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

from .casting import cast_conditions
from .fields import RelationDef
from .lookup import lookup_stage, resolve_relation, unwind_stage
from .stages import append, limit_stage, select_stage, skip_stage, sort_stage, unset_stage

if TYPE_CHECKING:  # pragma: no cover
    from ..service import CrudService
    from .options import QueryOptions

_logger = logging.getLogger("crudservice")

_SCALAR_OPTIONS = ('select', 'match', 'sort', 'skip', 'limit')


@dataclass
class PopulateNode:
    """One population directive; ``populate`` holds the nested directives.

    ``relation``, ``service`` and ``censored`` are filled in by
    :func:`build_populate_tree` once the path is resolved.
    """

    path: str
    select: Optional[List[str]] = None
    match: Optional[Dict[str, Any]] = None
    sort: Any = None
    skip: Optional[int] = None
    limit: Optional[int] = None
    populate: List['PopulateNode'] = field(default_factory=list)
    relation: Optional[RelationDef] = None
    service: Optional['CrudService'] = None
    censored: List[str] = field(default_factory=list)


def to_nodes(request: Optional[Iterable[Any]]) -> List[PopulateNode]:
    """Normalize strings, mappings and nodes into (unmerged) directive chains.

    'school.students' -> school { students }; a mapping with a dotted path
    applies its options to the deepest node.
    """
    nodes: List[PopulateNode] = []
    for item in request or []:
        if isinstance(item, PopulateNode):
            nodes.append(replace(item, populate=list(item.populate)))
        elif isinstance(item, str):
            if item.strip('.'):
                nodes.append(_chain(item.strip('.').split('.'), {}, []))
        elif isinstance(item, Mapping):
            path = str(item.get('path') or '').strip('.')
            if not path:
                raise ValueError(f"Populate directive without path: {item!r}")
            options = {k: item.get(k) for k in _SCALAR_OPTIONS}
            nodes.append(_chain(path.split('.'), options, to_nodes(item.get('populate'))))
        else:
            raise TypeError(f"Unsupported populate directive: {item!r}")
    return nodes


def _chain(parts: List[str], options: Dict[str, Any], children: List[PopulateNode]) -> PopulateNode:
    node = PopulateNode(path=parts[-1], populate=children, **options)
    for part in reversed(parts[:-1]):
        node = PopulateNode(path=part, populate=[node])
    return node


def merge_nodes(nodes: Iterable[PopulateNode]) -> List[PopulateNode]:
    """Merge directives sharing a path: first-seen options win, children concatenate."""
    merged: Dict[str, PopulateNode] = {}
    for node in nodes:
        existing = merged.get(node.path)
        if existing is None:
            merged[node.path] = replace(node, populate=list(node.populate))
            continue
        for name in _SCALAR_OPTIONS:
            if getattr(existing, name) is None:
                setattr(existing, name, getattr(node, name))
        existing.populate.extend(node.populate)
    for node in merged.values():
        node.populate = merge_nodes(node.populate)
    return list(merged.values())


async def build_populate_tree(
    request: Optional[Iterable[Any]],
    service: 'CrudService',
    options: 'QueryOptions',
) -> List[PopulateNode]:
    """Build the merged, resolved population tree for ``service``.

    ``None`` populates nothing; an empty request populates every relation of
    the root model.
    """
    if request is None:
        return []
    request = list(request)
    if request:
        nodes = to_nodes(request)
    else:
        nodes = [PopulateNode(path=name) for name in service.schema.relations]
    return await _resolve(merge_nodes(nodes), service, options)


async def _resolve(nodes: List[PopulateNode], service: 'CrudService', options: 'QueryOptions') -> List[PopulateNode]:
    resolved: List[PopulateNode] = []
    for node in nodes:
        hop = resolve_relation(service, node.path)
        if hop is None:
            _logger.debug("crudservice: %s.%s is not a relation; populate skipped", service.model_name, node.path)
            continue
        relation, target = hop
        match = cast_conditions(node.match, target) if node.match else None
        expression = await target.authorization(options)
        if expression:
            match = {'$and': [match, {'$expr': expression}]} if match else {'$expr': expression}
        censored = list(await target.censored_fields(options))
        select = node.select
        if select:
            select = [p for p in select if not any(p == c or p.startswith(c + '.') for c in censored)]
        children = await _resolve(node.populate, target, options)
        resolved.append(replace(
            node,
            match=match,
            select=select,
            populate=children,
            relation=relation,
            service=target,
            censored=censored,
        ))
    return resolved


def expand_populate_tree(nodes: Iterable[PopulateNode]) -> List[Dict[str, Any]]:
    """Translate a resolved tree into nested ``$lookup`` stages."""
    pipeline: List[Dict[str, Any]] = []
    for node in nodes:
        relation = node.relation
        if relation is None or node.service is None:
            continue
        inner: List[Dict[str, Any]] = []
        append(
            inner,
            unset_stage(node.censored),
            {'$match': node.match} if node.match else None,
            sort_stage(node.sort),
            skip_stage(node.skip),
            limit_stage(node.limit),
            {'$limit': 1} if relation.single else None,
        )
        inner.extend(expand_populate_tree(node.populate))
        if node.select:
            keep = list(node.select) + ['_id']
            for child in node.populate:
                keep.append(child.path)
                if child.relation is not None:
                    keep.append(child.relation.local_field)
            append(inner, select_stage(keep))
        pipeline.append(lookup_stage(
            relation,
            node.service,
            as_path=node.path,
            local_field=relation.local_field,
            pipeline=inner,
        ))
        if relation.single:
            pipeline.append(unwind_stage(node.path))
            pipeline.append({'$addFields': {node.path: {'$ifNull': ['$' + node.path, None]}}})
    return pipeline
