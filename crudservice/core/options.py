from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

# camelCase spellings accepted from callers porting option objects verbatim
_ALIASES = {
    'addFields': 'add_fields',
    'maxTimeMS': 'max_time_ms',
    'disableAuthorization': 'disable_authorization',
}

SortValue = Union[str, Sequence[str], Mapping[str, Any], None]


@dataclass(frozen=True)
class QueryOptions:
    """Immutable snapshot of the options of one call.

    Recognized keys drive pipeline construction; every other key ends up in
    ``extra`` untouched so hooks can read caller context (for example the
    authenticated user) via :meth:`get`.

    Attributes:
        match: Extra conditions folded into the root ``$and``.
        sort: Mapping, field name or list of names ("-" prefix = descending).
        skip: Number of documents to skip.
        limit: Maximum number of documents to return.
        select: Dotted field paths to project.
        distinct: Field name(s) to return unique combinations of.
        populate: Dotted strings and/or mapping directives.
        add_fields: Body of an ``$addFields`` stage.
        random: Return a random sample instead of a sorted page.
        pipelines: Raw stages appended after everything else.
        session: Database session (and transaction) to run in.
        max_time_ms: Execution ceiling; defaults to the service config.
        disable_authorization: Skip the root authorization hook.
    """

    match: Optional[Dict[str, Any]] = None
    sort: SortValue = None
    skip: Optional[int] = None
    limit: Optional[int] = None
    select: Optional[List[str]] = None
    distinct: Union[str, List[str], None] = None
    populate: Optional[List[Any]] = None
    add_fields: Optional[Dict[str, Any]] = None
    random: bool = False
    pipelines: Optional[List[Dict[str, Any]]] = None
    session: Any = None
    max_time_ms: Optional[int] = None
    disable_authorization: bool = False
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def coerce(cls, value: Union['QueryOptions', Mapping[str, Any], None] = None, **overrides: Any) -> 'QueryOptions':
        if isinstance(value, QueryOptions):
            return value.replace(**overrides) if overrides else value
        known = {f.name for f in fields(cls)} - {'extra'}
        data: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, val in {**dict(value or {}), **overrides}.items():
            key = _ALIASES.get(key, key)
            if key in known:
                data[key] = val
            elif key == 'extra' and isinstance(val, Mapping):
                extra.update(val)
            else:
                extra[key] = val
        data['random'] = bool(data.get('random', False))
        data['disable_authorization'] = bool(data.get('disable_authorization', False))
        return cls(**data, extra=MappingProxyType(extra))

    def replace(self, **changes: Any) -> 'QueryOptions':
        extra = dict(self.extra)
        own = {f.name for f in fields(self)}
        for key in [k for k in changes if _ALIASES.get(k, k) not in own]:
            extra[key] = changes.pop(key)
        changes = {_ALIASES.get(k, k): v for k, v in changes.items()}
        changes['extra'] = MappingProxyType(extra)
        return replace(self, **changes)

    def get(self, key: str, default: Any = None) -> Any:
        key = _ALIASES.get(key, key)
        if key in self.extra:
            return self.extra[key]
        if key != 'extra' and key in {f.name for f in fields(self)}:
            value = getattr(self, key)
            return default if value is None else value
        return default

    def for_refetch(self) -> 'QueryOptions':
        """Snapshot used to re-read a document by id after writing it."""
        return self.replace(
            match=None,
            sort=None,
            skip=None,
            limit=None,
            random=False,
            distinct=None,
            pipelines=None,
            disable_authorization=True,
        )

    def for_selection(self) -> 'QueryOptions':
        """Snapshot used to find the documents an update/delete applies to."""
        return self.replace(
            sort=None,
            skip=None,
            limit=None,
            select=None,
            populate=None,
            random=False,
            distinct=None,
            pipelines=None,
        )
