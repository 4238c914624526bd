# Core subpackage: schema declarations plus the pipeline building blocks used by CrudService.
from .fields import FieldDef, FieldKind, RelationDef, Schema, field, relation
from .model import Model
from .options import QueryOptions

__all__ = [
    'FieldDef',
    'FieldKind',
    'RelationDef',
    'Schema',
    'field',
    'relation',
    'Model',
    'QueryOptions',
]
