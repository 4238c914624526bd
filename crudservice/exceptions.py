from __future__ import annotations
from typing import Iterable


class CrudServiceError(Exception):
    """Base class of the errors raised by crudservice itself."""


class DeadlineExceededError(CrudServiceError, TimeoutError):
    def __init__(self, model_name: str, overrun_ms: float = 0.0):
        self.model_name = model_name
        self.overrun_ms = overrun_ms
        super().__init__(f"Deadline exceeded while hydrating {model_name} (overrun {overrun_ms:.0f}ms)")


class ModelNotFoundError(CrudServiceError, LookupError):
    def __init__(self, model_name: str, id_value=None):
        self.model_name = model_name
        self.id = id_value
        super().__init__("No model found with the provided id")


class ValidationError(CrudServiceError, ValueError):
    def __init__(self, model_name: str, missing: Iterable[str]):
        self.model_name = model_name
        self.missing = sorted(missing)
        super().__init__(f"{model_name} validation failed; missing required fields: {', '.join(self.missing)}")


class DuplicateServiceError(CrudServiceError, ValueError):
    def __init__(self, model_name: str):
        self.model_name = model_name
        super().__init__(f"A service for model {model_name!r} is already registered")
