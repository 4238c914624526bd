from __future__ import annotations
import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .utils import maybe_await

if TYPE_CHECKING:  # pragma: no cover
    from .model import Model
    from .options import QueryOptions

Expression = Dict[str, Any]


class Authorizer(abc.ABC):
    @abc.abstractmethod
    def on_authorization(self, options: 'QueryOptions') -> Expression:
        """Return an aggregation expression documents must satisfy to be visible.

        The expression restricts root queries (``{"$match": {"$expr": ...}}``)
        and every join or population into this model. May be async.
        """


class Censor(abc.ABC):
    @abc.abstractmethod
    def on_censor(self, options: 'QueryOptions') -> List[str]:
        """Return field paths removed from results and populated documents.

        Censoring runs after authorization and before addFields/match, so
        censored fields cannot be matched on by callers. May be async.
        """


class PreSave(abc.ABC):
    @abc.abstractmethod
    def pre_save(self, payload: Dict[str, Any], options: 'QueryOptions') -> Optional[Dict[str, Any]]:
        """Return the payload to create/replace/merge with (None keeps it)."""


class PostSave(abc.ABC):
    @abc.abstractmethod
    def post_save(self, document: 'Model', previous: Optional['Model'], options: 'QueryOptions') -> None:
        """Called after a document was written; ``previous`` is None on create."""


class PreDelete(abc.ABC):
    @abc.abstractmethod
    def pre_delete(self, document: 'Model', options: 'QueryOptions') -> None: ...


class PostDelete(abc.ABC):
    @abc.abstractmethod
    def post_delete(self, document: 'Model', options: 'QueryOptions') -> None: ...


class PostCount(abc.ABC):
    @abc.abstractmethod
    def post_count(self, count: int, options: 'QueryOptions') -> None:
        """Called with the result of every count query, mainly for analytics."""


class _NoopHooks(Authorizer, Censor, PreSave, PostSave, PreDelete, PostDelete, PostCount):
    def on_authorization(self, options):
        return {}

    def on_censor(self, options):
        return []

    def pre_save(self, payload, options):
        return payload

    def post_save(self, document, previous, options):
        return None

    def pre_delete(self, document, options):
        return None

    def post_delete(self, document, options):
        return None

    def post_count(self, count, options):
        return None


NOOP_HOOKS = _NoopHooks()


@dataclass(frozen=True)
class HookSet:
    """Capabilities bound for one service; missing ones are no-ops."""

    authorizer: Authorizer
    censor: Censor
    pre_save: PreSave
    post_save: PostSave
    pre_delete: PreDelete
    post_delete: PostDelete
    post_count: PostCount

    @classmethod
    def resolve(cls, owner: Any) -> 'HookSet':
        def pick(capability):
            return owner if isinstance(owner, capability) else NOOP_HOOKS
        return cls(
            authorizer=pick(Authorizer),
            censor=pick(Censor),
            pre_save=pick(PreSave),
            post_save=pick(PostSave),
            pre_delete=pick(PreDelete),
            post_delete=pick(PostDelete),
            post_count=pick(PostCount),
        )

    @property
    def tracks_previous_state(self) -> bool:
        return self.post_save is not NOOP_HOOKS

    async def authorization(self, options: 'QueryOptions') -> Expression:
        return (await maybe_await(self.authorizer.on_authorization(options))) or {}

    async def censored_fields(self, options: 'QueryOptions') -> List[str]:
        return list((await maybe_await(self.censor.on_censor(options))) or [])

    async def run_pre_save(self, payload: Dict[str, Any], options: 'QueryOptions') -> Dict[str, Any]:
        result = await maybe_await(self.pre_save.pre_save(payload, options))
        return payload if result is None else dict(result)

    async def run_post_save(self, document: 'Model', previous: Optional['Model'], options: 'QueryOptions') -> None:
        await maybe_await(self.post_save.post_save(document, previous, options))

    async def run_pre_delete(self, document: 'Model', options: 'QueryOptions') -> None:
        await maybe_await(self.pre_delete.pre_delete(document, options))

    async def run_post_delete(self, document: 'Model', options: 'QueryOptions') -> None:
        await maybe_await(self.post_delete.post_delete(document, options))

    async def run_post_count(self, count: int, options: 'QueryOptions') -> None:
        await maybe_await(self.post_count.post_count(count, options))
