from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import (
    Any, AsyncIterator, Callable, Dict, Generic, Iterable, List, Mapping, Optional, Type, TypeVar, Union,
)

from .adapters import BaseRunner, get_runner
from .config import CrudConfig
from .core.casting import cast_conditions, cast_document, cast_stored
from .core.hooks import Expression, HookSet
from .core.hydration import Deadline, hydrate_list
from .core.keys import deep_merge, get_deep_keys, referenced_paths
from .core.lookup import get_shallow_lookup_pipeline
from .core.model import Model
from .core.options import QueryOptions
from .core.populate import build_populate_tree, expand_populate_tree
from .core.stages import (
    append, distinct_stages, limit_stage, random_stage, select_stage, skip_stage, sort_spec, sort_stage,
    unset_stage,
)
from .core.utils import log_error, maybe_await
from .exceptions import ModelNotFoundError
from .registry import ServiceRegistry

_logger = logging.getLogger("crudservice")

ModelT = TypeVar('ModelT', bound=Model)
Conditions = Dict[str, Any]
OptionsLike = Union[QueryOptions, Mapping[str, Any], None]
MergeCallback = Callable[[Dict[str, Any], Model], Any]


class CrudService(Generic[ModelT]):
    """Query and CRUD entry points for one model.

    Subclasses opt into hooks by mixing in the capability interfaces from
    :mod:`crudservice.core.hooks`::

        class UserService(CrudService[User], Authorizer, Censor):
            async def on_authorization(self, options):
                return {'$eq': ['$tenant', options.get('tenant')]}

            def on_censor(self, options):
                return ['password']

        users = UserService(User, runner, registry)
    """

    def __init__(
        self,
        model: Type[ModelT],
        runner: Any,
        registry: ServiceRegistry,
        *,
        config: Optional[CrudConfig] = None,
    ):
        self.model = model
        self.runner: BaseRunner = get_runner(runner)
        self.registry = registry
        self.config = config or registry.config
        self.hooks = HookSet.resolve(self)
        registry.register(self)

    @property
    def model_name(self) -> str:
        return self.model.__model_name__

    @property
    def collection_name(self) -> str:
        return self.model.__collection__

    @property
    def schema(self):
        return self.model.__schema__

    def _max_time(self, options: QueryOptions) -> int:
        return options.max_time_ms if options.max_time_ms is not None else self.config.default_max_time_ms

    async def authorization(self, options: QueryOptions) -> Expression:
        return await self.hooks.authorization(options)

    async def censored_fields(self, options: QueryOptions) -> List[str]:
        return await self.hooks.censored_fields(options)

    # ------------------------------------------------------------------ reads
    async def find(self, conditions: Optional[Conditions] = None, options: OptionsLike = None) -> List[ModelT]:
        options = QueryOptions.coerce(options)
        # the deadline starts before the query so hydration only gets what is left
        deadline = Deadline(self._max_time(options))
        rows = await self.query(conditions, options)
        return hydrate_list(rows, self, deadline, options)  # type: ignore[return-value]

    async def find_by_id(self, id: Any, options: OptionsLike = None) -> Optional[ModelT]:
        found = await self.find({'_id': id}, options)
        return found[0] if found else None

    async def find_by_ids(self, ids: Iterable[Any], options: OptionsLike = None) -> List[ModelT]:
        ids = list(ids)
        if not ids:
            return []
        return await self.find({'_id': {'$in': ids}}, options)

    async def find_one(self, conditions: Optional[Conditions] = None, options: OptionsLike = None) -> Optional[ModelT]:
        found = await self.find(conditions, QueryOptions.coerce(options, limit=1))
        return found[0] if found else None

    async def count(self, conditions: Optional[Conditions] = None, options: OptionsLike = None) -> int:
        """Number of documents ``find`` would return without paging."""
        options = QueryOptions.coerce(options).replace(
            limit=None,
            skip=None,
            sort=None,
            select=None,
            populate=None,
            random=False,
            pipelines=[{'$count': 'count'}, {'$limit': self.config.count_row_limit}],
        )
        rows = await self.query(conditions, options)
        result = int(rows[0].get('count', 0)) if rows else 0
        await self.hooks.run_post_count(result, options)
        return result

    async def aggregate(self, pipeline: Iterable[Dict[str, Any]], options: OptionsLike = None) -> List[Dict[str, Any]]:
        """Run a raw pipeline against this service's collection."""
        options = QueryOptions.coerce(options)
        return await self.runner.aggregate(
            self.collection_name,
            list(pipeline),
            session=options.session,
            max_time_ms=self._max_time(options),
        )

    async def query(self, conditions: Optional[Conditions] = None, options: OptionsLike = None) -> List[Dict[str, Any]]:
        """Translate conditions and options into one pipeline and run it."""
        options = QueryOptions.coerce(options)
        pipeline = await self.build_pipeline(conditions, options)
        _logger.debug("crudservice: %s aggregate %s", self.model_name, pipeline)
        return await self.aggregate(pipeline, options)

    async def build_pipeline(self, conditions: Optional[Conditions], options: OptionsLike = None) -> List[Dict[str, Any]]:
        options = QueryOptions.coerce(options)
        conditions = dict(conditions or {})
        if options.match:
            conditions['$and'] = [*conditions.get('$and', []), options.match]
        conditions = cast_conditions(conditions, self)

        pipeline: List[Dict[str, Any]] = []
        if not options.disable_authorization:
            expression = await self.authorization(options)
            if expression:
                pipeline.append({'$match': {'$expr': expression}})
        append(pipeline, unset_stage(await self.censored_fields(options)))

        # join the relations that match/sort/addFields refer to
        sort = sort_spec(options.sort)
        keys = get_deep_keys(conditions) + referenced_paths(options.add_fields or {}) + list(sort)
        pipeline.extend(await get_shallow_lookup_pipeline(keys, self, options))

        if options.add_fields:
            pipeline.append({'$addFields': options.add_fields})
        if conditions:
            pipeline.append({'$match': conditions})

        if options.random:
            size = options.limit
            if size is None:
                size = await self.count(conditions, options.replace(match=None))
            append(pipeline, random_stage(size))
        else:
            append(pipeline, sort_stage(sort))
        if options.distinct:
            # grouping loses the order
            pipeline.extend(distinct_stages(options.distinct))
            if not options.random:
                append(pipeline, sort_stage(sort))
        if not options.random:
            append(pipeline, skip_stage(options.skip))
        append(pipeline, limit_stage(options.limit))

        # joined relations are materialized by population, not by the joins above
        append(pipeline, unset_stage(self.schema.relations))

        tree = await build_populate_tree(options.populate, self, options)
        select = options.select
        if select and tree:
            select = list(select) + [node.relation.local_field for node in tree if node.relation is not None]
        append(pipeline, select_stage(select))
        pipeline.extend(expand_populate_tree(tree))
        pipeline.extend(options.pipelines or [])
        return pipeline

    # ----------------------------------------------------------------- writes
    async def save(self, document: ModelT, options: OptionsLike = None, *, previous: Optional[ModelT] = None) -> ModelT:
        """Validate and write ``document``; fires post_save afterwards."""
        options = QueryOptions.coerce(options)
        document.locals['options'] = options
        if not document.is_new and previous is None and self.hooks.tracks_previous_state:
            previous = await self.find_by_id(document._id, options.for_refetch().replace(populate=None, select=None))
        _apply_schema(document)
        document.validate()
        if document.is_new:
            document._id = await self.runner.insert_one(
                self.collection_name, document.to_document(), session=options.session,
            )
        elif document.modified_paths:
            update: Dict[str, Dict[str, Any]] = {}
            for path in document.modified_paths:
                value = getattr(document, path, None)
                if value is None:
                    update.setdefault('$unset', {})[path] = ''
                else:
                    update.setdefault('$set', {})[path] = value
            await self.runner.update_one(
                self.collection_name, {'_id': document._id}, update, session=options.session,
            )
        document._mark_persisted()
        document.locals['previous'] = previous
        try:
            await self.hooks.run_post_save(document, previous, options)
        finally:
            document.locals.pop('previous', None)
        return document

    async def create(self, payload: Union[Mapping[str, Any], ModelT], options: OptionsLike = None) -> ModelT:
        options = QueryOptions.coerce(options)
        data = await self.hooks.run_pre_save(_as_payload(payload), options)
        document = self.model(**data)
        await self.save(document, options)
        return await self._refetch(document, options)

    async def create_many(self, payloads: Iterable[Mapping[str, Any]], options: OptionsLike = None) -> List[ModelT]:
        async with self.transaction(options) as batch_options:
            return [await self.create(payload, batch_options) for payload in payloads]

    async def replace(
        self,
        conditions: Conditions,
        payload: Union[Mapping[str, Any], ModelT],
        options: OptionsLike = None,
        merge_callback: Optional[MergeCallback] = None,
    ) -> List[ModelT]:
        """Overwrite every document matching ``conditions`` with ``payload``.

        Fields missing from the payload are cleared unless ``merge_callback``
        builds the new state from the payload and the existing document.
        """
        options = QueryOptions.coerce(options)
        data = await self.hooks.run_pre_save(_as_payload(payload), options)
        updated: List[ModelT] = []
        for existing in await self.find(conditions, options.for_selection()):
            if merge_callback is not None:
                state = dict(await maybe_await(merge_callback(dict(data), existing)))
            else:
                state = {name: data.get(name) for name in self.model.__fields__}
            state['_id'] = existing._id
            document = self.model.hydrate(cast_document(state, self.schema))
            for name in self.model.__fields__:
                if name != '_id' and getattr(document, name, None) != getattr(existing, name, None):
                    document.mark_modified(name)
            await self.save(document, options, previous=existing)
            updated.append(await self._refetch(document, options))
        return updated

    async def merge(
        self,
        conditions: Conditions,
        payload: Union[Mapping[str, Any], ModelT],
        options: OptionsLike = None,
    ) -> List[ModelT]:
        """Deep-merge ``payload`` into every document matching ``conditions``."""
        return await self.replace(
            conditions,
            payload,
            options,
            lambda data, existing: deep_merge(existing.to_document(), data),
        )

    async def replace_model(self, payload: Union[Mapping[str, Any], ModelT], options: OptionsLike = None) -> ModelT:
        data = _as_payload(payload)
        id_value = _payload_id(data)
        updated = await self.replace({'_id': id_value}, data, options)
        if not updated:
            raise ModelNotFoundError(self.model_name, id_value)
        return updated[0]

    async def merge_model(self, payload: Union[Mapping[str, Any], ModelT], options: OptionsLike = None) -> ModelT:
        data = _as_payload(payload)
        id_value = _payload_id(data)
        updated = await self.merge({'_id': id_value}, data, options)
        if not updated:
            raise ModelNotFoundError(self.model_name, id_value)
        return updated[0]

    async def upsert_model(self, payload: Union[Mapping[str, Any], ModelT], options: OptionsLike = None) -> ModelT:
        """Merge into the document with the payload's id, or create it."""
        options = QueryOptions.coerce(options)
        data = _as_payload(payload)
        id_value = _payload_id(data)
        if id_value is not None and await self.find_by_id(id_value, options.for_selection()) is not None:
            return await self.merge_model(data, options)
        return await self.create(data, options)

    async def replace_models(self, payloads: Iterable[Mapping[str, Any]], options: OptionsLike = None) -> List[ModelT]:
        async with self.transaction(options) as batch_options:
            return [await self.replace_model(payload, batch_options) for payload in payloads]

    async def merge_models(self, payloads: Iterable[Mapping[str, Any]], options: OptionsLike = None) -> List[ModelT]:
        async with self.transaction(options) as batch_options:
            return [await self.merge_model(payload, batch_options) for payload in payloads]

    async def upsert_models(self, payloads: Iterable[Mapping[str, Any]], options: OptionsLike = None) -> List[ModelT]:
        async with self.transaction(options) as batch_options:
            return [await self.upsert_model(payload, batch_options) for payload in payloads]

    async def delete(self, conditions: Optional[Conditions] = None, options: OptionsLike = None) -> List[ModelT]:
        """Delete the matching documents one by one; returns them as they were."""
        options = QueryOptions.coerce(options)
        selection = await self.find(conditions, options)
        for existing in selection:
            await self.hooks.run_pre_delete(existing, options)
            await self.runner.delete_one(self.collection_name, {'_id': existing._id}, session=options.session)
            await self.hooks.run_post_delete(existing, options)
        return selection

    async def delete_by_id(self, id: Any, options: OptionsLike = None) -> Optional[ModelT]:
        deleted = await self.delete({'_id': id}, options)
        return deleted[0] if deleted else None

    async def update_one(self, conditions: Conditions, update: Dict[str, Any], options: OptionsLike = None) -> int:
        """Raw update of the first match; bypasses hooks and authorization."""
        options = QueryOptions.coerce(options)
        return await self.runner.update_one(
            self.collection_name, cast_conditions(conditions, self), update, session=options.session,
        )

    async def update_many(self, conditions: Conditions, update: Dict[str, Any], options: OptionsLike = None) -> int:
        options = QueryOptions.coerce(options)
        return await self.runner.update_many(
            self.collection_name, cast_conditions(conditions, self), update, session=options.session,
        )

    # ---------------------------------------------------------------- helpers
    @asynccontextmanager
    async def transaction(self, options: OptionsLike = None) -> AsyncIterator[QueryOptions]:
        """Yield options bound to a transactional session.

        A caller-supplied session is used as is; commit, abort and ending it
        stay with the caller.
        """
        options = QueryOptions.coerce(options)
        if options.session is not None:
            yield options
            return
        session = await self.runner.start_session()
        try:
            yield options.replace(session=session)
            await self.runner.commit(session)
        except Exception as error:
            log_error(error, f"{self.model_name} transaction aborted")
            await self.runner.abort(session)
            raise
        finally:
            await self.runner.end_session(session)

    async def _refetch(self, document: ModelT, options: QueryOptions) -> ModelT:
        found = await self.find_by_id(document._id, options.for_refetch())
        return found if found is not None else document

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model_name})"


def _as_payload(payload: Union[Mapping[str, Any], Model]) -> Dict[str, Any]:
    if isinstance(payload, Model):
        return payload.to_document()
    if isinstance(payload, Mapping):
        return dict(payload)
    raise TypeError(f"Unsupported payload: {payload!r}")


def _payload_id(data: Mapping[str, Any]) -> Any:
    id_value = data.get('_id')
    return id_value if id_value is not None else data.get('id')


def _apply_schema(document: Model) -> None:
    for name, fdef in document.__fields__.items():
        setattr(document, name, cast_stored(getattr(document, name, None), fdef))
