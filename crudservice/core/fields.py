from __future__ import annotations
import copy
from dataclasses import dataclass, field as dc_field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence


class FieldKind(str, Enum):
    OBJECT_ID = 'objectid'
    STRING = 'string'
    NUMBER = 'number'
    BOOLEAN = 'boolean'
    DATE = 'date'
    OBJECT = 'object'
    ARRAY = 'array'
    MIXED = 'mixed'


@dataclass
class FieldDef:
    """Internal, normalized description of a stored field.

    Attributes:
        name: Attribute/document key (e.g. "first_name").
        kind: Declared primitive kind used for casting conditions.
        required: Whether ``Model.validate`` rejects a missing value.
        default: Value (or zero-arg callable) used when a payload omits the field.
        of: Item declaration for ``ARRAY`` fields.
        fields: Nested declarations for embedded ``OBJECT`` fields.
    """

    name: str
    kind: FieldKind
    required: bool = False
    default: Any = None
    of: Optional['FieldDef'] = None
    fields: Dict[str, 'FieldDef'] = dc_field(default_factory=dict)

    def default_value(self) -> Any:
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)


@dataclass(frozen=True)
class RelationDef:
    """A virtual field joined from another model's collection.

    ``target`` is always stored as a model name so relations may point at
    models declared later; the registry resolves it at call time.
    """

    name: str
    target: str
    local_field: str
    foreign_field: str = '_id'
    single: bool = False

    @property
    def cardinality(self) -> str:
        return 'one' if self.single else 'many'


class FieldDescriptor:
    """Descriptor placed on models to declare fields.

    Users normally go through :func:`field` or :func:`relation`; the model
    metaclass converts descriptors to :class:`FieldDef`/:class:`RelationDef`.
    """

    def __init__(self, *, kind: str, **meta):
        self.kind = kind
        self.meta = dict(meta)
        self.name: str | None = None

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.name = name

    def build(self, name: Optional[str] = None):
        name = name or self.name or ''
        if self.kind == 'relation':
            return RelationDef(
                name=name,
                target=self.meta['target'],
                local_field=self.meta['local_field'],
                foreign_field=self.meta.get('foreign_field') or '_id',
                single=bool(self.meta.get('single')),
            )
        return _build_field(name, self.meta)


def _build_field(name: str, meta: Mapping[str, Any]) -> FieldDef:
    kind = FieldKind(meta.get('field_kind', FieldKind.MIXED))
    item = meta.get('of')
    if isinstance(item, FieldDescriptor):
        item = item.build(name)
    elif isinstance(item, (FieldKind, str)):
        item = FieldDef(name=name, kind=FieldKind(item))
    nested: Dict[str, FieldDef] = {}
    for key, sub in (meta.get('fields') or {}).items():
        if isinstance(sub, FieldDescriptor):
            nested[key] = sub.build(key)
        else:
            nested[key] = FieldDef(name=key, kind=FieldKind(sub))
    return FieldDef(
        name=name,
        kind=kind,
        required=bool(meta.get('required')),
        default=meta.get('default'),
        of=item,
        fields=nested,
    )


def field(kind: FieldKind | str = FieldKind.MIXED, /, **meta) -> FieldDescriptor:
    """Declare a stored field on a model.

    Common metadata keys:
    - required: reject documents where the value is missing (None).
    - default: value or zero-arg callable used when the payload omits the field.
    - of: item kind (or nested ``field(...)``) of an ``ARRAY`` field.
    - fields: mapping of nested declarations of an ``OBJECT`` field.

    Examples:
        class User(Model):
            first_name = field(FieldKind.STRING, required=True)
            tags = field(FieldKind.ARRAY, of=FieldKind.STRING)
            address = field(FieldKind.OBJECT, fields={'city': FieldKind.STRING})
    """
    meta = dict(meta)
    meta['field_kind'] = FieldKind(kind)
    return FieldDescriptor(kind='scalar', **meta)


def relation(target: Any, *, local_field: str, foreign_field: str = '_id', single: bool = False) -> FieldDescriptor:
    """Declare a virtual relation to another model.

    Args:
        target: Target model, either as the class itself or its model name.
        local_field: Field on this model holding the key(s) to join on.
        foreign_field: Field on the target model matched against ``local_field``.
        single: When True the relation resolves to at most one document.

    Examples:
        class User(Model):
            group_id = field(FieldKind.OBJECT_ID)
            group = relation('Group', local_field='group_id', single=True)
    """
    if not isinstance(target, str):
        target = getattr(target, '__model_name__', None) or target.__name__
    return FieldDescriptor(
        kind='relation',
        target=target,
        local_field=local_field,
        foreign_field=foreign_field,
        single=single,
    )


class Schema:
    """Field kinds and relations of one model. Read-only once built."""

    def __init__(self, fields: Mapping[str, FieldDef], relations: Mapping[str, RelationDef]):
        self.fields = MappingProxyType(dict(fields))
        self.relations = MappingProxyType(dict(relations))

    def relation(self, name: str) -> Optional[RelationDef]:
        return self.relations.get(name)

    def field_at(self, parts: Sequence[str]) -> Optional[FieldDef]:
        defs: Mapping[str, FieldDef] = self.fields
        current: Optional[FieldDef] = None
        for part in parts:
            if current is not None:
                current = _item_def(current)
                defs = current.fields
            current = defs.get(part)
            if current is None:
                return None
        return current

    def kind_of(self, parts: Sequence[str] | str) -> Optional[FieldKind]:
        if isinstance(parts, str):
            parts = parts.split('.')
        fdef = self.field_at(parts)
        if fdef is None:
            return None
        return _item_def(fdef).kind

    def __repr__(self) -> str:
        return f"Schema(fields={list(self.fields)}, relations={list(self.relations)})"


def _item_def(fdef: FieldDef) -> FieldDef:
    while fdef.kind is FieldKind.ARRAY and fdef.of is not None:
        fdef = fdef.of
    return fdef
