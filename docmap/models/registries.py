"""
A registry of the models, their schemas, and the plugins.

The models are declared by name and a schema, and are later referred by name:
e.g. the references between the documents (``Ref('User')``) are resolved to
the models via the registry of the referring model.

The default registry is used when no explicit registry is provided. It is
a convenience for simple applications with one data source. Everything
accepts an explicit registry, so that several registries (e.g. with different
transports or settings) can co-exist in the same process.
"""
import re
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional, Tuple, Type, Union

from docmap import errors
from docmap.clients import transport as transports
from docmap.models import models
from docmap.structs import configuration, schemas

PluginFn = Callable[..., None]

_UNCOUNTABLES = frozenset([
    'advice', 'energy', 'excretion', 'digestion', 'cooperation', 'health', 'justice',
    'labour', 'machinery', 'equipment', 'information', 'pollution', 'sewage', 'paper',
    'money', 'species', 'series', 'rain', 'rice', 'fish', 'sheep', 'moose', 'deer', 'news',
    'expertise', 'status', 'media',
])

_PLURAL_RULES: List[Tuple[str, str]] = [
    (r'(m)an$', r'\1en'),
    (r'(pe)rson$', r'\1ople'),
    (r'(child)$', r'\1ren'),
    (r'^(ox)$', r'\1en'),
    (r'(ax|test)is$', r'\1es'),
    (r'(octop|vir)us$', r'\1i'),
    (r'(alias|status)$', r'\1es'),
    (r'(bu)s$', r'\1ses'),
    (r'(buffal|tomat|potat)o$', r'\1oes'),
    (r'([ti])um$', r'\1a'),
    (r'sis$', r'ses'),
    (r'(?:([^f])fe|([lr])f)$', r'\1\2ves'),
    (r'(hive)$', r'\1s'),
    (r'([^aeiouy]|qu)y$', r'\1ies'),
    (r'(x|ch|ss|sh)$', r'\1es'),
    (r'(matr|vert|ind)ix|ex$', r'\1ices'),
    (r'([m|l])ouse$', r'\1ice'),
    (r'^(quiz)$', r'\1zes'),
    (r's$', r's'),
    (r'([^a-z])$', r'\1'),
    (r'$', r's'),
]


def pluralize(name: str) -> str:
    """ Make a collection name from a model name: ``"Person"`` becomes ``"people"``. """
    name = name.lower()
    if name in _UNCOUNTABLES:
        return name
    for pattern, replacement in _PLURAL_RULES:
        if re.search(pattern, name, flags=re.IGNORECASE):
            return re.sub(pattern, replacement, name, count=1, flags=re.IGNORECASE)
    return name


class Registry:
    """
    The models by their names, and the settings & transport they share.
    """

    def __init__(
            self,
            *,
            transport: Optional[transports.Transport] = None,
            settings: Optional[configuration.Settings] = None,
    ) -> None:
        super().__init__()
        self.transport = transport
        self.settings = settings if settings is not None else configuration.Settings()
        self.plugins: List[Tuple[PluginFn, Mapping[str, Any]]] = []
        self._models: Dict[str, Type[models.Model]] = {}
        self._schemas: Dict[str, schemas.Schema] = {}

    def plugin(self, fn: PluginFn, **opts: Any) -> "Registry":
        """
        Declare a plugin to be applied to the schemas of all later models.

        The plugins are applied once per schema, when the schema is first
        registered, in the order of their declaration.
        """
        self.plugins.append((fn, opts))
        return self

    def model(
            self,
            name: str,
            schema: Union[None, schemas.Schema, Mapping[str, Any]] = None,
            collection: Optional[str] = None,
            *,
            base: Optional[Type[models.Model]] = None,
            cache: bool = True,
    ) -> Type[models.Model]:
        """
        Declare a model, or get the already declared one.

        With a schema, the model is declared (or, if already declared with
        the same schema, returned as is). Without a schema, the previously
        declared model is returned. With a different collection for an already
        declared model, a sub-model bound to that collection is returned
        (it is not remembered in the registry).
        """
        if schema is not None and not isinstance(schema, schemas.Schema):
            schema = schemas.Schema(schema)

        if name not in self._schemas:
            if schema is None:
                raise errors.MissingSchemaError(name)
            self._schemas[name] = schema
            for fn, opts in self.plugins:
                schema.plugin(fn, **opts)

        if name in self._models and cache:
            existing = self._models[name]
            if schema is not None and schema is not self._schemas[name]:
                raise errors.OverwriteModelError(name)
            if collection is not None and collection != existing.collection:
                return existing.compile(name, existing.schema, collection, registry=self)
            return existing

        schema = schema if schema is not None else self._schemas[name]
        if collection is None:
            collection = schema.options.collection or pluralize(name)

        model = models.Model.compile(name, schema, collection, registry=self, base=base)
        if cache:
            self._models[name] = model
        return model

    def get(self, name: str) -> Type[models.Model]:
        """ Get a declared model by name. """
        try:
            return self._models[name]
        except KeyError:
            raise errors.MissingSchemaError(name) from None

    def schema(self, name: str) -> schemas.Schema:
        """ Get the schema of a model as it was declared (before compiling). """
        try:
            return self._schemas[name]
        except KeyError:
            raise errors.MissingSchemaError(name) from None

    def model_names(self) -> Collection[str]:
        return list(self._models)


_default_registry: Optional[Registry] = None


def get_default_registry() -> Registry:
    """
    Get the default registry to be used by the models
    unless the explicit registry is provided to them.
    """
    global _default_registry
    if _default_registry is None:
        _default_registry = Registry()
    return _default_registry


def set_default_registry(registry: Registry) -> None:
    """
    Set the default registry to be used by the models
    unless the explicit registry is provided to them.
    """
    global _default_registry
    _default_registry = registry


def model(
        name: str,
        schema: Union[None, schemas.Schema, Mapping[str, Any]] = None,
        collection: Optional[str] = None,
        *,
        registry: Optional[Registry] = None,
) -> Type[models.Model]:
    """ Declare or get a model in the given or the default registry. """
    real_registry = registry if registry is not None else get_default_registry()
    return real_registry.model(name, schema, collection)
