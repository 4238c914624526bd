from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Mapping


class NodeKind(Enum):
    SCALAR = 'scalar'
    LIST = 'list'
    MAP = 'map'


def node_kind(value: Any) -> NodeKind:
    """Classify a conditions/expression value.

    Typed values (ObjectId, datetime, bytes, ...) are scalars even though some
    of them expose container-like behaviour.
    """
    if isinstance(value, Mapping):
        return NodeKind.MAP
    if isinstance(value, (list, tuple)):
        return NodeKind.LIST
    return NodeKind.SCALAR


def get_deep_keys(value: Any, separator: str = '.') -> List[str]:
    """Return the keys of a nested structure recursively.

    {a: {b: {c: 1}, d: 1}, e: [{f: 1}], g: 1}
    returns: ['a', 'a.b', 'a.b.c', 'a.d', 'e', 'e.0.f', 'g']
    """
    stack: List[str] = []
    _walk(value, [], stack, separator)
    return stack


def _walk(value: Any, path: List[str], stack: List[str], separator: str) -> None:
    kind = node_kind(value)
    if kind is NodeKind.MAP:
        for key, child in value.items():
            # skip empty keys caused by keys ending with the separator
            if key is None or key == '':
                continue
            branch = path + [str(key)]
            stack.append(separator.join(branch))
            child_kind = node_kind(child)
            if child_kind is NodeKind.LIST:
                for i, item in enumerate(child):
                    _walk(item, branch + [str(i)], stack, separator)
            elif child_kind is NodeKind.MAP:
                _walk(child, branch, stack, separator)
    elif kind is NodeKind.LIST:
        for i, item in enumerate(value):
            _walk(item, path + [str(i)], stack, separator)
    elif path:
        stack.append(separator.join(path))


def deep_merge(source: Dict[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``changes`` into ``source`` in place and return it.

    Nested mappings merge key by key; anything else on the incoming side
    (lists, ObjectIds, None, scalars) replaces the existing value whole.
    """
    for key, value in changes.items():
        existing = source.get(key)
        if (
            existing is None
            or value is None
            or node_kind(value) is not NodeKind.MAP
            or node_kind(existing) is not NodeKind.MAP
        ):
            source[key] = value
        else:
            source[key] = deep_merge(dict(existing), value)
    return source


def referenced_paths(expression: Any, prefix: str = '$') -> List[str]:
    """Field paths referenced by an aggregation expression ("$a.b" -> "a.b").

    Variables ("$$ROOT", "$$this") are not field references.
    """
    paths: List[str] = []
    kind = node_kind(expression)
    if kind is NodeKind.MAP:
        for value in expression.values():
            paths.extend(referenced_paths(value, prefix))
    elif kind is NodeKind.LIST:
        for value in expression:
            paths.extend(referenced_paths(value, prefix))
    elif isinstance(expression, str) and expression.startswith(prefix) and not expression.startswith(prefix * 2):
        paths.append(expression[len(prefix):])
    return paths
