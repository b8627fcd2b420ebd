"""
Schemas: the declared shapes of the documents, path by path.

A schema is declared as a (possibly nested) mapping of field names to types::

    Schema({
        'title': str,
        'published': datetime.datetime,
        'author': Ref('User'),
        'tags': [str],
        'meta': {'votes': int, 'favs': int},
        'comments': [{'text': str, 'by': Ref('User')}],
        'extra': {},
    })

Types are Python types, their textual names (``"String"``, ``"Number"``,
``"ObjectId"``, etc -- as used in YAML files), `Ref` for references to other
models, lists of a type for arrays, lists of mappings (or schemas) for arrays
of sub-documents, and ``{}`` for untyped ("mixed") values. A mapping with
the ``type`` key declares the type with extra options (``default``, ``ref``).

Nested mappings are flattened into dotted paths: ``meta.votes``, ``meta.favs``.

The schema does not validate the documents. It only casts the values to their
declared types and reports the declared type of a path -- which is what
the dirty-tracking and delta-building need.
"""
import collections.abc
import dataclasses
import datetime
import enum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import iso8601

from docmap import errors
from docmap.structs import dicts

PluginFn = Callable[..., None]


class SchemaType(str, enum.Enum):
    STRING = 'String'
    NUMBER = 'Number'
    BOOLEAN = 'Boolean'
    DATE = 'Date'
    BUFFER = 'Buffer'
    OBJECT_ID = 'ObjectId'
    MIXED = 'Mixed'
    ARRAY = 'Array'
    DOCUMENT_ARRAY = 'DocumentArray'

    def __str__(self) -> str:
        return str(self.value)


_TYPE_NAMES: Mapping[str, SchemaType] = {
    'string': SchemaType.STRING,
    'str': SchemaType.STRING,
    'number': SchemaType.NUMBER,
    'int': SchemaType.NUMBER,
    'float': SchemaType.NUMBER,
    'boolean': SchemaType.BOOLEAN,
    'bool': SchemaType.BOOLEAN,
    'date': SchemaType.DATE,
    'datetime': SchemaType.DATE,
    'buffer': SchemaType.BUFFER,
    'bytes': SchemaType.BUFFER,
    'objectid': SchemaType.OBJECT_ID,
    'mixed': SchemaType.MIXED,
    'any': SchemaType.MIXED,
}

_PYTHON_TYPES: Mapping[type, SchemaType] = {
    str: SchemaType.STRING,
    int: SchemaType.NUMBER,
    float: SchemaType.NUMBER,
    bool: SchemaType.BOOLEAN,
    datetime.datetime: SchemaType.DATE,
    bytes: SchemaType.BUFFER,
    dict: SchemaType.MIXED,
    object: SchemaType.MIXED,
}

_TRUE_VALUES = {True, 1, 'true', '1', 'yes'}
_FALSE_VALUES = {False, 0, 'false', '0', 'no'}


@dataclasses.dataclass(frozen=True)
class Ref:
    """ A reference to a document of another model (by its id). """
    model: str


@dataclasses.dataclass(frozen=True)
class SchemaOptions:
    version_key: Union[str, bool] = '__v'
    discriminator_key: str = '__t'
    id_key: str = '_id'
    collection: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class DiscriminatorMapping:
    key: str
    value: Optional[str]
    is_root: bool


@dataclasses.dataclass(frozen=True, eq=False)
class PathSchema:
    """
    The declared type of a single path.

    For arrays, the ``caster`` is the declared type of the items; for arrays
    of sub-documents, the ``schema`` is the sub-documents' schema.
    """
    path: str
    type: SchemaType
    caster: Optional['PathSchema'] = None
    schema: Optional['Schema'] = None
    ref: Optional[str] = None
    default: Any = None

    @property
    def is_array(self) -> bool:
        return self.type in (SchemaType.ARRAY, SchemaType.DOCUMENT_ARRAY)

    @property
    def is_mixed(self) -> bool:
        return self.type is SchemaType.MIXED

    def cast(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return _CASTERS[self.type](self, value)
        except (ValueError, TypeError, iso8601.ParseError) as e:
            if isinstance(e, errors.CastError):
                raise
            raise errors.CastError(self.path, str(self.type), value) from e


def _cast_string(schema: PathSchema, value: Any) -> Any:
    if isinstance(value, str):
        return value
    elif isinstance(value, (int, float, datetime.datetime)):
        return str(value)
    raise TypeError(f"Not a string: {value!r}")


def _cast_number(schema: PathSchema, value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    elif isinstance(value, (int, float)):
        return value
    elif isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return float(value)
    raise TypeError(f"Not a number: {value!r}")


def _cast_boolean(schema: PathSchema, value: Any) -> Any:
    normalized = value.lower() if isinstance(value, str) else value
    if normalized in _TRUE_VALUES:
        return True
    elif normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def _cast_date(schema: PathSchema, value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        return value
    elif isinstance(value, str):
        return iso8601.parse_date(value)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value / 1000, tz=datetime.timezone.utc)
    raise TypeError(f"Not a date: {value!r}")


def _cast_buffer(schema: PathSchema, value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value
    elif isinstance(value, str):
        return value.encode('utf-8')
    elif dicts.is_sequence(value):
        return bytes(value)
    raise TypeError(f"Not a buffer: {value!r}")


def _cast_as_is(schema: PathSchema, value: Any) -> Any:
    return value


def _cast_array(schema: PathSchema, value: Any) -> Any:
    items = value if dicts.is_sequence(value) else [value]
    caster = schema.caster
    return [caster.cast(item) if caster is not None else item for item in items]


def _cast_document_array(schema: PathSchema, value: Any) -> Any:
    items = value if dicts.is_sequence(value) else [value]
    result: List[Any] = []
    for item in items:
        if isinstance(item, collections.abc.Mapping) and schema.schema is not None:
            result.append(schema.schema.cast_fields(item))
        elif item is None or isinstance(item, collections.abc.Mapping):
            result.append(item)
        else:
            raise TypeError(f"Not a sub-document: {item!r}")
    return result


_CASTERS: Mapping[SchemaType, Callable[[PathSchema, Any], Any]] = {
    SchemaType.STRING: _cast_string,
    SchemaType.NUMBER: _cast_number,
    SchemaType.BOOLEAN: _cast_boolean,
    SchemaType.DATE: _cast_date,
    SchemaType.BUFFER: _cast_buffer,
    SchemaType.OBJECT_ID: _cast_as_is,  # incl. populated documents in place of ids
    SchemaType.MIXED: _cast_as_is,
    SchemaType.ARRAY: _cast_array,
    SchemaType.DOCUMENT_ARRAY: _cast_document_array,
}


def _is_type_options(spec: Mapping[str, Any]) -> bool:
    return 'type' in spec and not isinstance(spec['type'], collections.abc.Mapping)


class Schema:

    def __init__(
            self,
            fields: Optional[Mapping[str, Any]] = None,
            *,
            version_key: Union[str, bool] = '__v',
            discriminator_key: str = '__t',
            id_key: str = '_id',
            collection: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.options = SchemaOptions(
            version_key=version_key,
            discriminator_key=discriminator_key,
            id_key=id_key,
            collection=collection,
        )
        self.discriminator_mapping: Optional[DiscriminatorMapping] = None
        self.plugins: List[Tuple[PluginFn, Mapping[str, Any]]] = []
        self._paths: Dict[str, PathSchema] = {}
        if fields is not None:
            self.add(fields)

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {list(self._paths)!r}>'

    @property
    def paths(self) -> Mapping[str, PathSchema]:
        return dict(self._paths)

    @property
    def version_key(self) -> Union[str, bool]:
        key = self.options.version_key
        return key if key and isinstance(key, str) else False

    @property
    def id_key(self) -> str:
        return self.options.id_key

    def add(self, fields: Mapping[str, Any], prefix: str = '') -> None:
        for name, spec in fields.items():
            path = f'{prefix}{name}'
            if isinstance(spec, Schema):
                for subpath, subschema in spec.paths.items():
                    self._paths[f'{path}.{subpath}'] = dataclasses.replace(
                        subschema, path=f'{path}.{subpath}')
                continue
            interpreted = self._interpret(path, spec)
            if interpreted is None:
                self.add(spec, prefix=f'{path}.')
            else:
                self._paths[path] = interpreted

    def _interpret(self, path: str, spec: Any) -> Optional[PathSchema]:
        if isinstance(spec, list):
            if not spec:
                return PathSchema(path, SchemaType.ARRAY, caster=PathSchema(path, SchemaType.MIXED))
            item = spec[0]
            if isinstance(item, Schema):
                return PathSchema(path, SchemaType.DOCUMENT_ARRAY, schema=item)
            if isinstance(item, collections.abc.Mapping) and item and not _is_type_options(item):
                subschema = Schema(item, version_key=False, id_key=self.options.id_key)
                return PathSchema(path, SchemaType.DOCUMENT_ARRAY, schema=subschema)
            caster = self._interpret(path, item)
            if caster is None:  # pragma: no cover  -- mappings are handled above
                raise TypeError(f"Invalid array item type for path {path!r}: {item!r}")
            return PathSchema(path, SchemaType.ARRAY, caster=caster, ref=caster.ref)
        elif isinstance(spec, collections.abc.Mapping):
            if not spec:
                return PathSchema(path, SchemaType.MIXED)
            elif _is_type_options(spec):
                base = self._interpret(path, spec['type'])
                if base is None:  # pragma: no cover
                    raise TypeError(f"Invalid type for path {path!r}: {spec!r}")
                return dataclasses.replace(
                    base,
                    ref=spec.get('ref', base.ref),
                    default=spec.get('default', base.default),
                )
            else:
                return None  # nested fields
        elif isinstance(spec, Ref):
            return PathSchema(path, SchemaType.OBJECT_ID, ref=spec.model)
        elif isinstance(spec, SchemaType):
            return PathSchema(path, spec)
        elif isinstance(spec, str) and spec.lower() in _TYPE_NAMES:
            return PathSchema(path, _TYPE_NAMES[spec.lower()])
        elif isinstance(spec, type) and spec in _PYTHON_TYPES:
            return PathSchema(path, _PYTHON_TYPES[spec])
        else:
            raise TypeError(f"Invalid type for path {path!r}: {spec!r}")

    def path(self, path: str) -> Optional[PathSchema]:
        return self._paths.get(path)

    def resolve_path(self, path: str) -> Optional[PathSchema]:
        """
        Find the schema for ``path``, including the positional paths.

        This is different from `path` as it also resolves the paths with
        positional selectors and indexes into arrays of sub-documents
        (``comments.$.text``, ``comments.0.text``), and sub-paths of arrays
        of untyped ("mixed") items.
        """
        found = self._paths.get(path)
        if found is not None:
            return found
        return self._search(path.split('.'))

    def _search(self, parts: List[str]) -> Optional[PathSchema]:
        for p in range(len(parts), 0, -1):
            found = self._paths.get('.'.join(parts[:p]))
            if found is None:
                continue
            if found.is_array:
                if found.caster is not None and found.caster.is_mixed:
                    return found.caster
                if p < len(parts):
                    positional = parts[p] == '$' or parts[p].isdigit()
                    rest = parts[p + 1:] if positional else parts[p:]
                    if found.schema is not None and rest:
                        return found.schema._search(rest)
                    if positional and not rest and found.caster is not None:
                        return found.caster
            return found
        return None

    def defaults(self) -> Iterator[Tuple[str, Any]]:
        for path, schema in self._paths.items():
            if schema.default is not None:
                default = schema.default() if callable(schema.default) else schema.default
                yield path, default

    def cast_fields(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        """ Cast the declared paths of a raw (sub-)document into a new dict. """
        result = _copy_mapping(raw)
        for path, schema in self._paths.items():
            value = dicts.resolve(result, path, None)
            if value is not None:
                dicts.ensure(result, path, schema.cast(value))
        return result

    def plugin(self, fn: PluginFn, **opts: Any) -> "Schema":
        fn(self, **opts)
        self.plugins.append((fn, opts))
        return self

    def clone(self) -> "Schema":
        schema = Schema()
        schema.options = self.options
        schema.discriminator_mapping = self.discriminator_mapping
        schema.plugins = list(self.plugins)
        schema._paths = dict(self._paths)
        return schema

    def merged_into(self, base: "Schema") -> "Schema":
        """ A new schema with the base's paths, overridden by this schema's paths. """
        schema = base.clone()
        schema._paths.update(self._paths)
        schema.plugins = list(base.plugins) + list(self.plugins)
        return schema


def _copy_mapping(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: _copy_mapping(val) if isinstance(val, collections.abc.Mapping) else
                 list(val) if isinstance(val, list) else val
            for key, val in raw.items()}
