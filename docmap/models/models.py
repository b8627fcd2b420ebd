"""
Models: the documents bound to their schema, collection, and store.

A model is a class of documents, created by the registry for a name and
a schema (see `docmap.models.registries.Registry.model`). The model knows
where its documents are stored, and how to save them, find them, and populate
their references with the documents of other models::

    Post = registry.model('Post', {'title': str, 'author': Ref('User')})

    post = Post({'title': 'Hello'})
    await post.save()                       # insert

    post['title'] = 'Hello, world'
    post['tags'] = ['news']
    await post.save()                       # update with $set for both paths

    posts = await Post.find({'title': 'Hello, world'})
    await Post.populate(posts, 'author')    # User documents in place of ids

The changes are saved as the minimal updates (see `docmap.structs.deltas`),
guarded by the documents' versions where the changes are unsafe otherwise
(see `docmap.structs.versions`).
"""
import dataclasses
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Mapping, Optional, \
                   Sequence, Type, TypeVar, Union

from docmap import errors
from docmap.clients import transport as transports
from docmap.engines import loggers
from docmap.structs import bodies, deltas, divergence, documents, ids, population, \
                           schemas, versions

if TYPE_CHECKING:
    from docmap.models import registries

ModelT = TypeVar('ModelT', bound='Model')


class Model(documents.Document):
    model_name: ClassVar[str]
    collection: ClassVar[str]
    registry: ClassVar["registries.Registry"]
    discriminators: ClassVar[Dict[str, Type["Model"]]]

    def __init__(
            self,
            data: Optional[Mapping[str, Any]] = None,
            *,
            fields: Union[None, str, bodies.RawProjection] = None,
            is_new: bool = True,
    ) -> None:
        super().__init__(data, fields=fields, is_new=is_new)
        if is_new and self.id is None:
            self.set_value(self.schema.id_key, ids.generate_id())

    @classmethod
    def compile(
            cls,
            name: str,
            schema: schemas.Schema,
            collection: str,
            *,
            registry: "registries.Registry",
            base: Optional[Type["Model"]] = None,
    ) -> Type["Model"]:
        """
        Create a new model class for the schema, bound to the collection.

        The schema is extended with the id and version paths (unless declared
        explicitly). If versioning is disabled in the registry's settings,
        the version key is removed from the model's schema (not the original one).
        """
        schema = schema.clone()
        if not registry.settings.versioning.enabled:
            schema.options = dataclasses.replace(schema.options, version_key=False)
        if schema.path(schema.id_key) is None:
            schema.add({schema.id_key: schemas.SchemaType.OBJECT_ID})
        version_key = schema.version_key
        if version_key and isinstance(version_key, str) and schema.path(version_key) is None:
            schema.add({version_key: schemas.SchemaType.NUMBER})

        parent = base if base is not None else cls
        model: Type[Model] = type(name, (parent,), dict(
            schema=schema,
            model_name=name,
            collection=collection,
            registry=registry,
            discriminators={},
        ))
        return model

    def __repr__(self) -> str:
        return f'<{self.model_name} {self._data!r}>'

    @property
    def logger(self) -> loggers.DocumentLogger:
        return loggers.DocumentLogger(body=self, model=self.model_name, collection=self.collection)

    @classmethod
    def _get_transport(cls) -> transports.Transport:
        transport = cls.registry.transport
        if transport is None:
            raise RuntimeError(f"No transport is configured for the model {cls.model_name!r}.")
        return transport

    #
    # Saving.
    #

    def increment(self: ModelT) -> ModelT:
        """
        Guard the next save with the version, and increment the version.

        Useful when the changes are unsafe for reasons invisible to the library,
        e.g. when the new values were calculated from the old values.
        """
        self.version = versions.VersionFlags.ALL
        return self

    async def save(self: ModelT) -> ModelT:
        """
        Save the document: insert it if new, or update it with its changes.

        The document's changes are forgotten only after they are stored.
        If the save fails, the document keeps its changes, and can be saved again
        (e.g. after re-loading it and re-applying the changes in case of conflicts).
        """
        if self.is_new:
            await self._insert()
        else:
            await self._update()
        self.mark_saved()
        return self

    async def _insert(self) -> None:
        if self.id is None:
            self.set_value(self.schema.id_key, ids.generate_id())
        versions.apply_version(versions.INSERT, {}, self, self.version)
        raw = self.to_object(depopulate=True)
        logger = self.logger
        logger.debug(f"Inserting the new document: {raw!r}")
        await self._get_transport().insert_one(self.collection, raw)
        logger.info("Inserted the new document.")

    async def _update(self) -> None:
        logger = self.logger
        outcome = deltas.compute_delta(self, self.get_dirty_records(), self.version)
        if isinstance(outcome, deltas.DivergenceFailure):
            logger.warning(f"Saving is prevented for the partially loaded arrays: {list(outcome.paths)}")
            raise errors.DivergentArrayError(outcome.paths)
        elif outcome is None or not outcome.update:
            logger.debug("Nothing to save: no changes and no versioning.")
            return

        id_key = self.schema.id_key
        where = dict(outcome.where, **{id_key: self.id})
        logger.debug(f"Updating the document: where={where!r}, update={outcome.update!r}")
        matched = await self._get_transport().update_one(self.collection, where, outcome.update)
        if not matched:
            version_key = self.schema.version_key
            if isinstance(version_key, str) and version_key in outcome.where:
                logger.warning(f"The document was changed since loaded: version={outcome.where[version_key]!r}.")
                raise errors.VersionError(self.model_name, self.id, outcome.where[version_key])
            else:
                logger.warning("The document is absent in the store, nothing was updated.")
                raise errors.DocumentNotFoundError(self.model_name, self.id)

        version_key = self.schema.version_key
        increment = outcome.update.get('$inc', {}).get(version_key) if version_key else None
        if isinstance(version_key, str) and increment:
            current = self.get_value(version_key)
            if isinstance(current, (int, float)):
                self.set_value(version_key, current + increment)
        logger.info("Updated the document.")

    @classmethod
    async def create(cls: Type[ModelT], *raws: Mapping[str, Any]) -> List[ModelT]:
        """ Construct and save the new documents, one by one. """
        result: List[ModelT] = []
        for raw in raws:
            doc = cls(raw)
            await doc.save()
            result.append(doc)
        return result

    #
    # Loading.
    #

    @classmethod
    def hydrate(
            cls: Type[ModelT],
            raw: Mapping[str, Any],
            *,
            fields: Union[None, str, bodies.RawProjection] = None,
    ) -> ModelT:
        """
        Construct a loaded (not new) document from its raw data from the store.

        For the root models with discriminators, the document's class is chosen
        by the discriminator key of the raw data (if such a discriminator exists).
        """
        model: Type[ModelT] = cls
        mapping = cls.schema.discriminator_mapping
        if mapping is not None and mapping.is_root:
            value = raw.get(mapping.key)
            if value and value in cls.discriminators:
                model = cls.discriminators[value]  # type: ignore
        return model(raw, fields=fields, is_new=False)

    @classmethod
    async def find(
            cls: Type[ModelT],
            filter: Optional[Mapping[str, Any]] = None,
            *,
            fields: Union[None, str, bodies.RawProjection] = None,
            sort: Optional[Mapping[str, int]] = None,
            skip: Optional[int] = None,
            limit: Optional[int] = None,
    ) -> List[ModelT]:
        """
        Find the documents by a filter (as understood by the store).

        For the discriminator models, only the documents of this discriminator
        are found (even if stored in the same collection as the base model's).
        """
        criteria: Dict[str, Any] = dict(filter or {})
        mapping = cls.schema.discriminator_mapping
        if mapping is not None and not mapping.is_root and mapping.value is not None:
            criteria[mapping.key] = mapping.value
        projection = documents.parse_projection(fields)
        raws = await cls._get_transport().find(
            cls.collection, criteria, projection=projection, sort=sort, skip=skip, limit=limit)
        return [cls.hydrate(raw, fields=projection) for raw in raws]

    @classmethod
    async def find_by_id(
            cls: Type[ModelT],
            id: Any,
            *,
            fields: Union[None, str, bodies.RawProjection] = None,
    ) -> Optional[ModelT]:
        found = await cls.find({cls.schema.id_key: id}, fields=fields, limit=1)
        return found[0] if found else None

    #
    # Population.
    #

    @classmethod
    async def populate(
            cls,
            docs: Sequence["Model"],
            path: str,
            *,
            model: Optional[str] = None,
            match: Optional[Mapping[str, Any]] = None,
            select: Union[None, str, Mapping[str, Any]] = None,
            sort: Optional[Mapping[str, int]] = None,
            skip: Optional[int] = None,
            limit: Optional[int] = None,
    ) -> Sequence["Model"]:
        """
        Replace the references at ``path`` with the referenced documents.

        All the referenced documents are fetched in one query. The referenced
        model is either given explicitly, or declared in the schema (``Ref``).
        The missing documents (dangling references) are not an error: the single
        references become ``None``, and the arrays lose such items.

        The filtered populations (``match``, ``skip``, ``limit``, or the id field
        excluded via ``select``) are remembered, so that saving the arrays
        populated that way is prevented (the arrays are not complete).
        """
        if not docs:
            return docs

        ref = model
        if ref is None:
            path_schema = cls.schema.resolve_path(path)
            ref = path_schema.ref if path_schema is not None else None
        if ref is None:
            raise errors.MissingSchemaError(path)
        target = cls.registry.get(ref)
        id_key = target.schema.id_key

        # The ids are needed to map the documents to their references, even if excluded.
        exclude_id = divergence.excludes_id(select, id_key=id_key)
        projection = documents.parse_projection(select)
        if projection is not None and exclude_id:
            del projection[id_key]
        projection = projection or None

        options = documents.PopulateOptions(
            path=path, model=ref, match=match, select=select,
            sort=sort, skip=skip, limit=limit, exclude_id=exclude_id,
        )

        original = population.collect_ids(docs, path)
        unique = population.unique_ids(original)
        if not unique:
            return docs

        criteria: Dict[str, Any] = dict(match or {})
        criteria[id_key] = {'$in': unique}
        raws = await cls._get_transport().find(
            target.collection, criteria, projection=projection, sort=sort, skip=skip, limit=limit)
        found = [target.hydrate(raw, fields=projection) for raw in raws]

        docs_map: Dict[str, Any] = {}
        order: Dict[str, int] = {}
        for idx, doc in enumerate(found):
            docs_map[str(doc.id)] = doc
            if sort:
                order[str(doc.id)] = idx

        reassembled = population.collect_ids(docs, path)
        population.reassemble(reassembled, docs_map, order, options)
        population.assign_vals(docs, path, reassembled, options, original=original)
        return docs

    #
    # Polymorphism.
    #

    @classmethod
    def discriminator(
            cls,
            name: str,
            schema: Union[schemas.Schema, Mapping[str, Any]],
    ) -> Type["Model"]:
        """
        Declare a sub-model stored in the same collection as this model.

        The documents of the sub-model have the discriminator key set to its name,
        by which they are distinguished from the documents of other sub-models
        when loaded via the base model. The sub-model's schema is merged into
        the base model's schema.
        """
        if not isinstance(schema, schemas.Schema):
            schema = schemas.Schema(schema)

        base_mapping = cls.schema.discriminator_mapping
        if base_mapping is not None and not base_mapping.is_root:
            raise errors.DiscriminatorError(
                f"Discriminator {name!r} can only be a discriminator of the root model.")

        key = cls.schema.options.discriminator_key
        if schema.path(key) is not None:
            raise errors.DiscriminatorError(
                f"Discriminator {name!r} cannot have field with name {key!r}.")

        if schema.options != cls.registry.schema(cls.model_name).options:
            raise errors.DiscriminatorError(
                f"Discriminator {name!r} options are not customizable.")

        if name in cls.discriminators:
            raise errors.DiscriminatorError(f"Discriminator with name {name!r} already exists.")

        merged = schema.merged_into(cls.schema)
        merged.add({key: {'type': str, 'default': name}})
        merged.discriminator_mapping = schemas.DiscriminatorMapping(key=key, value=name, is_root=False)

        if base_mapping is None:
            cls.schema.discriminator_mapping = schemas.DiscriminatorMapping(key=key, value=None, is_root=True)

        submodel = cls.registry.model(name, merged, cls.collection, base=cls)
        cls.discriminators[name] = submodel
        return submodel
