"""crudservice public API and lightweight lazy exports.

Models and the service layer import each other's building blocks, so the
package root resolves its public names on first access instead of importing
every submodule eagerly.

Exposes:
- CrudService, ServiceRegistry, CrudConfig
- Model, field, relation, FieldKind
- QueryOptions, PopulateNode
- hook capabilities: Authorizer, Censor, PreSave, PostSave, PreDelete, PostDelete, PostCount
- errors: CrudServiceError, DeadlineExceededError, ModelNotFoundError, ValidationError, DuplicateServiceError
"""
from __future__ import annotations

import importlib as _importlib

_EXPORTS = {
    'CrudService': '.service',
    'ServiceRegistry': '.registry',
    'CrudConfig': '.config',
    'Model': '.core.model',
    'field': '.core.fields',
    'relation': '.core.fields',
    'FieldKind': '.core.fields',
    'QueryOptions': '.core.options',
    'PopulateNode': '.core.populate',
    'Deadline': '.core.hydration',
    'Authorizer': '.core.hooks',
    'Censor': '.core.hooks',
    'PreSave': '.core.hooks',
    'PostSave': '.core.hooks',
    'PreDelete': '.core.hooks',
    'PostDelete': '.core.hooks',
    'PostCount': '.core.hooks',
    'CrudServiceError': '.exceptions',
    'DeadlineExceededError': '.exceptions',
    'ModelNotFoundError': '.exceptions',
    'ValidationError': '.exceptions',
    'DuplicateServiceError': '.exceptions',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(module, __name__), name)


__all__ = sorted(_EXPORTS)
