from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Dict, Iterator, Optional

from .config import CrudConfig
from .exceptions import DuplicateServiceError

if TYPE_CHECKING:  # pragma: no cover
    from .service import CrudService

_logger = logging.getLogger("crudservice")


class ServiceRegistry:
    """Maps model names to their services.

    Passed to every service at construction; services register themselves and
    resolve relation targets through it lazily, at call time, so a relation
    may name a model whose service is constructed later.
    """

    def __init__(self, config: Optional[CrudConfig] = None):
        self.config = config or CrudConfig()
        self._services: Dict[str, 'CrudService'] = {}

    def register(self, service: 'CrudService') -> None:
        name = service.model_name
        if name in self._services:
            raise DuplicateServiceError(name)
        self._services[name] = service
        _logger.debug("crudservice: registered %s -> %s", name, service.collection_name)

    def get(self, name: Optional[str]) -> Optional['CrudService']:
        if not name:
            return None
        return self._services.get(name)

    def __getitem__(self, name: str) -> 'CrudService':
        return self._services[name]

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def __iter__(self) -> Iterator[str]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)
