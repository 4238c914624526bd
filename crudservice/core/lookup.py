from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set, Tuple

from .fields import RelationDef
from .stages import unset_stage

if TYPE_CHECKING:  # pragma: no cover
    from ..service import CrudService
    from .options import QueryOptions

_logger = logging.getLogger("crudservice")


def resolve_relation(service: 'CrudService', name: str) -> Optional[Tuple[RelationDef, 'CrudService']]:
    """Single relation hop: (relation, target service) or None.

    None covers plain fields as well as relations whose target model has no
    registered service.
    """
    relation = service.schema.relation(name)
    if relation is None:
        return None
    target = service.registry.get(relation.target)
    if target is None:
        return None
    return relation, target


def relation_path(key: str, prefix: str = '$') -> List[str]:
    """Field segments of a dotted key that may name relations (no operators, no indexes)."""
    return [seg for seg in key.split('.') if seg and not seg.startswith(prefix) and not seg.isdigit()]


def lookup_stage(
    relation: RelationDef,
    target: 'CrudService',
    *,
    as_path: str,
    local_field: str,
    pipeline: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        'from': target.collection_name,
        'localField': local_field,
        'foreignField': relation.foreign_field,
        'as': as_path,
    }
    if pipeline:
        body['pipeline'] = pipeline
    return {'$lookup': body}


def unwind_stage(path: str) -> Dict[str, Any]:
    return {'$unwind': {'path': '$' + path, 'preserveNullAndEmptyArrays': True}}


async def get_shallow_lookup_pipeline(
    keys: Iterable[str],
    service: 'CrudService',
    options: 'QueryOptions',
) -> List[Dict[str, Any]]:
    """Join the relations crossed by ``keys`` so match/sort stages can use them.

    Each relation prefix is joined once. The related service's authorization
    expression filters the joined documents only; its censored fields are
    removed in a single ``$unset`` after every join.
    """
    pipeline: List[Dict[str, Any]] = []
    censored: List[str] = []
    joined: Set[str] = set()
    prefix = service.config.operator_prefix
    for key in dict.fromkeys(keys):
        journey: List[str] = []
        current = service
        for field in relation_path(key, prefix):
            hop = resolve_relation(current, field)
            if hop is None:
                break
            relation, target = hop
            alias = '.'.join(journey + [field])
            if alias not in joined:
                joined.add(alias)
                expression = await target.authorization(options)
                inner = [{'$match': {'$expr': expression}}] if expression else None
                pipeline.append(lookup_stage(
                    relation,
                    target,
                    as_path=alias,
                    local_field='.'.join(journey + [relation.local_field]),
                    pipeline=inner,
                ))
                if relation.single:
                    pipeline.append(unwind_stage(alias))
                censored.extend(f"{alias}.{name}" for name in await target.censored_fields(options))
                _logger.debug("crudservice: shallow join %s.%s -> %s", service.model_name, alias, target.collection_name)
            journey.append(field)
            current = target
    stage = unset_stage(censored)
    if stage:
        pipeline.append(stage)
    return pipeline
