from __future__ import annotations
import copy
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from bson import ObjectId

from .fields import FieldDef, FieldKind, Schema
from .keys import NodeKind, get_deep_keys, node_kind
from .lookup import resolve_relation

if TYPE_CHECKING:  # pragma: no cover
    from ..service import CrudService

# Operators whose payload is cast to the type of the field they apply to
CASTABLE_OPERATORS = frozenset({'$eq', '$ne', '$lt', '$lte', '$gt', '$gte', '$exists', '$size'})

# Operators with a fixed payload type regardless of the field
_TYPED_OPERATORS = {
    '$exists': FieldKind.BOOLEAN,
    '$size': FieldKind.NUMBER,
}

# Private separator so dotted condition keys stay intact while walking
_SEPARATOR = '|'


def deepest_keys(conditions: Dict[str, Any], separator: str = _SEPARATOR) -> List[str]:
    """Unique walker paths that are not a segment prefix of another path."""
    keys = list(dict.fromkeys(get_deep_keys(conditions, separator)))
    return [
        key for key in keys
        if not any(other.startswith(key + separator) for other in keys)
    ]


def cast_conditions(conditions: Optional[Dict[str, Any]], service: 'CrudService') -> Dict[str, Any]:
    """Cast condition values to the kinds declared by the schemas they address.

    Relation segments switch the active schema to the related model, so
    ``{"group.name": 1}`` casts against the group's ``name`` field. Unknown
    fields, unsupported operators and unparsable values are left untouched.
    """
    casted = copy.deepcopy(dict(conditions or {}))
    for key in deepest_keys(casted):
        _cast_path(casted, key.split(_SEPARATOR), service, service.config.operator_prefix)
    return casted


def _cast_path(root: Dict[str, Any], components: List[str], service: 'CrudService', prefix: str) -> None:
    reference: Any = root
    kind: Optional[FieldKind] = None
    local: List[str] = []
    for i, component in enumerate(components):
        container_kind = node_kind(reference)
        if container_kind is NodeKind.SCALAR:
            return
        # already canonical identifiers end the walk
        if isinstance(_child(reference, component), ObjectId):
            return
        segments = component.split('.') if container_kind is NodeKind.MAP else [component]
        for j, segment in enumerate(segments):
            hop = resolve_relation(service, segment)
            if hop is not None:
                service = hop[1]
                local = []
                continue
            if not segment.startswith(prefix) and not segment.isdigit():
                local.append(segment)
                kind = service.schema.kind_of(local) or kind

            is_final = i + 1 == len(components) and j + 1 == len(segments)
            if not is_final:
                continue
            value = _child(reference, component)
            if value is None or node_kind(value) is not NodeKind.SCALAR:
                return
            if segment.startswith(prefix):
                if segment not in CASTABLE_OPERATORS:
                    return
                kind = _TYPED_OPERATORS.get(segment, kind)
            _assign(reference, component, cast_value(value, kind))
            return
        reference = _child(reference, component)


def _child(reference: Any, component: str) -> Any:
    if node_kind(reference) is NodeKind.LIST:
        try:
            return reference[int(component)]
        except (ValueError, IndexError):
            return None
    return reference.get(component)


def _assign(reference: Any, component: str, value: Any) -> None:
    if node_kind(reference) is NodeKind.LIST:
        reference[int(component)] = value
    else:
        reference[component] = value


def cast_value(value: Any, kind: Optional[FieldKind]) -> Any:
    if kind is FieldKind.OBJECT_ID:
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        return value
    if kind is FieldKind.STRING:
        return str(value)
    if kind is FieldKind.NUMBER:
        return _to_number(value)
    if kind is FieldKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        return str(value).lower() in ('1', 'true')
    if kind is FieldKind.DATE:
        return _to_date(value)
    return value


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return 0 if value != value else value
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return 0
    return 0 if number != number else number


def _to_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return value
    return value


def cast_stored(value: Any, fdef: Optional[FieldDef]) -> Any:
    """Cast a value written to a stored field to its declared kind.

    Arrays are cast item by item and embedded objects key by key. Unlike
    condition casting, values that cannot be parsed are stored as received.
    """
    if value is None or fdef is None:
        return value
    if fdef.kind is FieldKind.ARRAY:
        if fdef.of is None or not isinstance(value, list):
            return value
        return [cast_stored(item, fdef.of) for item in value]
    if fdef.kind is FieldKind.OBJECT:
        if not fdef.fields or node_kind(value) is not NodeKind.MAP:
            return value
        return {key: cast_stored(item, fdef.fields.get(key)) for key, item in value.items()}
    if fdef.kind is FieldKind.NUMBER:
        return _store_number(value)
    if fdef.kind is FieldKind.BOOLEAN:
        return _store_boolean(value)
    if fdef.kind is FieldKind.STRING:
        return str(value) if isinstance(value, (int, float, ObjectId)) else value
    return cast_value(value, fdef.kind)


def cast_document(values: Mapping[str, Any], schema: Schema) -> Dict[str, Any]:
    return {key: cast_stored(value, schema.fields.get(key)) for key, value in values.items()}


def _store_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if not isinstance(value, str):
        return value
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    return value if number != number else number


def _store_boolean(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ('1', 'true'):
            return True
        if text in ('0', 'false'):
            return False
    return value
