from __future__ import annotations
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

from ..exceptions import DeadlineExceededError
from .keys import NodeKind, node_kind
from .lookup import resolve_relation

if TYPE_CHECKING:  # pragma: no cover
    from ..service import CrudService
    from .model import Model
    from .options import QueryOptions


class Deadline:
    """Absolute point in time a call must finish by.

    Created once per call and shared by every recursive hydration step, so
    nested relations can never run longer than the caller's allowance.
    """

    def __init__(self, budget_ms: float, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.expires_at = clock() + budget_ms / 1000.0

    def remaining_ms(self) -> float:
        return (self.expires_at - self._clock()) * 1000.0

    @property
    def expired(self) -> bool:
        return self.remaining_ms() <= 0

    def check(self, model_name: str) -> None:
        remaining = self.remaining_ms()
        if remaining <= 0:
            raise DeadlineExceededError(model_name, -remaining)


class Hydrator:
    """Turns raw aggregation rows into model instances.

    Populated relation values are hydrated recursively against the relation's
    target service before the row itself, then re-attached to the instance.
    """

    def __init__(self, deadline: Deadline, options: Optional['QueryOptions'] = None):
        self.deadline = deadline
        self.options = options

    def hydrate_list(self, rows: List[Mapping[str, Any]], service: 'CrudService') -> List['Model']:
        self.deadline.check(service.model_name)
        out: List['Model'] = []
        for row in rows:
            if node_kind(row) is not NodeKind.MAP or row.get('_id') is None:
                continue
            out.append(self.hydrate_row(row, service))
        return out

    def hydrate_row(self, row: Mapping[str, Any], service: 'CrudService') -> 'Model':
        relations: Dict[str, Any] = {}
        for name in service.schema.relations:
            value = row.get(name)
            if value is None:
                continue
            hop = resolve_relation(service, name)
            if hop is None:
                continue
            relation, target = hop
            if node_kind(value) is NodeKind.LIST:
                relations[name] = self.hydrate_list(list(value), target)
            else:
                hydrated = self.hydrate_list([value], target)
                relations[name] = hydrated[0] if hydrated else None
            if relation.single and isinstance(relations[name], list):
                relations[name] = relations[name][0] if relations[name] else None
        document = service.model.hydrate({k: v for k, v in row.items() if k not in relations})
        for name, value in relations.items():
            setattr(document, name, value)
        if self.options is not None:
            document.locals['options'] = self.options
        return document


def hydrate_list(
    rows: List[Mapping[str, Any]],
    service: 'CrudService',
    deadline: Deadline,
    options: Optional['QueryOptions'] = None,
) -> List['Model']:
    return Hydrator(deadline, options).hydrate_list(rows, service)
