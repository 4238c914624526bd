from __future__ import annotations
from typing import Any, Dict, List, Mapping, Set

import inflection

from ..exceptions import ValidationError
from .fields import FieldDef, FieldDescriptor, FieldKind, RelationDef, Schema

_PRIVATE = frozenset({'locals', '_modified', '_is_new'})


class ModelMeta(type):
    def __new__(mcls, name, bases, namespace):
        fields: Dict[str, FieldDef] = {}
        relations: Dict[str, RelationDef] = {}
        for base in reversed(bases):
            fields.update(getattr(base, '__fields__', {}) or {})
            relations.update(getattr(base, '__relations__', {}) or {})
        for key, value in list(namespace.items()):
            if not isinstance(value, FieldDescriptor):
                continue
            built = value.build(key)
            if isinstance(built, RelationDef):
                relations[key] = built
            else:
                fields[key] = built
            del namespace[key]
        if '_id' not in fields:
            fields = {'_id': FieldDef(name='_id', kind=FieldKind.OBJECT_ID), **fields}
        namespace['__fields__'] = fields
        namespace['__relations__'] = relations
        namespace['__schema__'] = Schema(fields, relations)
        namespace.setdefault('__model_name__', name)
        namespace.setdefault('__collection__', inflection.tableize(namespace['__model_name__']))
        return super().__new__(mcls, name, bases, namespace)


class Model(metaclass=ModelMeta):
    """Base class of hydrated documents.

    Declare fields with :func:`~crudservice.core.fields.field` and relations
    with :func:`~crudservice.core.fields.relation`::

        class User(Model):
            first_name = field(FieldKind.STRING, required=True)
            group_id = field(FieldKind.OBJECT_ID)
            group = relation('Group', local_field='group_id', single=True)

    Instances keep a ``locals`` bag for per-call state (active options, the
    previous version during post-save hooks) that is never persisted.
    """

    __fields__: Dict[str, FieldDef]
    __relations__: Dict[str, RelationDef]
    __schema__: Schema
    __model_name__: str
    __collection__: str

    def __init__(self, **values: Any):
        self.locals: Dict[str, Any] = {}
        self._modified: Set[str] = set()
        self._is_new = True
        for name, fdef in self.__fields__.items():
            setattr(self, name, values.pop(name) if name in values else fdef.default_value())
        for name in self.__relations__:
            setattr(self, name, values.pop(name, None))
        for key, value in values.items():
            if key not in _PRIVATE and key != 'id':
                setattr(self, key, value)

    @classmethod
    def hydrate(cls, row: Mapping[str, Any]) -> 'Model':
        inst = cls(**{k: v for k, v in row.items() if k not in _PRIVATE})
        inst._is_new = False
        return inst

    @property
    def id(self) -> str | None:
        _id = getattr(self, '_id', None)
        return None if _id is None else str(_id)

    @property
    def is_new(self) -> bool:
        return self._is_new

    # ----- dirty tracking -----
    def mark_modified(self, *paths: str) -> None:
        self._modified.update(paths)

    def unmark_modified(self, *paths: str) -> None:
        self._modified.difference_update(paths)

    def is_modified(self, path: str | None = None) -> bool:
        if path is None:
            return bool(self._modified)
        return path in self._modified

    @property
    def modified_paths(self) -> List[str]:
        return sorted(self._modified)

    def _mark_persisted(self) -> None:
        self._modified.clear()
        self._is_new = False

    # ----- validation / serialization -----
    def validate(self) -> None:
        missing = [
            name for name, fdef in self.__fields__.items()
            if fdef.required and getattr(self, name, None) is None
        ]
        if missing:
            raise ValidationError(self.__model_name__, missing)

    def to_document(self) -> Dict[str, Any]:
        """Stored fields only, as written to the collection."""
        doc = {name: getattr(self, name, None) for name in self.__fields__}
        if doc.get('_id') is None:
            doc.pop('_id', None)
        return doc

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in vars(self).items():
            if key in _PRIVATE:
                continue
            out[key] = _plain(value)
        return out

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(_id={getattr(self, '_id', None)!r})"


def _plain(value: Any) -> Any:
    if isinstance(value, Model):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
