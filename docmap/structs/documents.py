"""
Documents: the raw data with the dirty-tracking and the population state.

A document keeps its raw data (as plain dicts/lists, with the tracked arrays
and buffers for the array- and buffer-typed paths), and remembers:

* which paths were modified since the document was loaded or saved;
* which fields were selected when it was loaded (the projection);
* which paths were populated with the referenced documents, and how;
* what should be done with its version when it is saved.

The tracked changes are then turned into the updates: see `docmap.structs.deltas`.
"""
import collections.abc
from typing import Any, Callable, Dict, Iterator, List, Mapping, NamedTuple, Optional, Union

from docmap.structs import arrays, bodies, codecs, dicts, schemas, versions


class DirtyRecord(NamedTuple):
    path: str
    value: Any  # incl. UNDEFINED for the removed paths
    schema: Optional[schemas.PathSchema]


class PopulateOptions(NamedTuple):
    path: str
    model: Optional[str] = None
    match: Optional[Mapping[str, Any]] = None
    select: Union[None, str, Mapping[str, Any]] = None
    sort: Optional[Mapping[str, int]] = None
    skip: Optional[int] = None
    limit: Optional[int] = None
    exclude_id: bool = False


class PopulationMeta(NamedTuple):
    path: str
    ids: Any
    options: PopulateOptions


def parse_projection(
        fields: Union[None, str, bodies.RawProjection],
) -> Optional[Dict[str, Any]]:
    """
    Convert any projection into a dict of fields to their inclusion flags.

    Supported notations:

    * ``None`` (for all fields).
    * ``"title comments -secret"`` (space-separated, ``-`` excludes).
    * ``{"title": 1, "comments": {"$elemMatch": {...}}}`` (as is).
    """
    if fields is None:
        return None
    elif isinstance(fields, str):
        result: Dict[str, Any] = {}
        for token in fields.split():
            if token.startswith('-'):
                result[token[1:]] = 0
            else:
                result[token.lstrip('+')] = 1
        return result or None
    elif isinstance(fields, collections.abc.Mapping):
        return dict(fields) or None
    else:
        raise ValueError(f"Projection must be either a str, or a mapping. Got {fields!r}")


class Document(bodies.Body):
    schema: schemas.Schema

    def __init__(
            self,
            data: Optional[Mapping[str, Any]] = None,
            *,
            schema: Optional[schemas.Schema] = None,
            fields: Union[None, str, bodies.RawProjection] = None,
            is_new: bool = True,
    ) -> None:
        super().__init__()
        if schema is not None:
            self.schema = schema
        elif getattr(self, 'schema', None) is None:
            raise TypeError("A schema is required for a document.")
        self.is_new = is_new
        self.version = versions.NONE
        self._data: bodies.RawDocument = {}
        self._selected = parse_projection(fields)
        self._modified: Dict[str, None] = {}
        self._populated: Dict[str, PopulationMeta] = {}
        if data is not None:
            self._init(data)
        if is_new:
            for path, default in self.schema.defaults():
                if self._get_raw(path) is bodies.UNDEFINED:
                    self.set_value(path, default)

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self._data!r}>'

    def __getitem__(self, path: str) -> Any:
        return dicts.resolve(self._data, path)

    def __setitem__(self, path: str, value: Any) -> None:
        self.set(path, value)

    def __delitem__(self, path: str) -> None:
        self.unset(path)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self._get_raw(path) is not bodies.UNDEFINED

    def _init(self, data: Mapping[str, Any]) -> None:
        raw = self.schema.cast_fields(data)
        for path, schema in self.schema.paths.items():
            if schema.is_array or schema.type is schemas.SchemaType.BUFFER:
                value = dicts.resolve(raw, path, None)
                if value is not None:
                    dicts.ensure(raw, path, self._wrap(path, schema, value))
        self._data.update(raw)

    def _wrap(self, path: str, schema: Optional[schemas.PathSchema], value: Any) -> Any:
        if schema is None or value is None:
            return value
        elif schema.is_array and dicts.is_sequence(value):
            if isinstance(value, arrays.TrackedArray) and value.path == path and value.parent is self:
                return value
            return arrays.TrackedArray(value, path=path, parent=self, caster=_item_caster(schema))
        elif schema.type is schemas.SchemaType.BUFFER and isinstance(value, (bytes, bytearray)):
            return arrays.TrackedBuffer(value, path=path, parent=self)
        else:
            return value

    @property
    def id(self) -> Any:
        return self._data.get(self.schema.id_key)

    @property
    def selected(self) -> Optional[Mapping[str, Any]]:
        """ The projection used when loading the document (``None`` for all fields). """
        return self._selected

    #
    # Reading & writing with the dirty-tracking.
    #

    def get(self, path: str, default: Any = None) -> Any:
        return dicts.resolve(self._data, path, default)

    def set(self, path: str, value: Any) -> None:
        if value is bodies.UNDEFINED:
            self.unset(path)
            return
        schema = self.schema.resolve_path(path)
        if schema is not None and not isinstance(value, arrays.TrackedArray):
            value = schema.cast(value)
        wrapped = self._wrap(path, schema, value)
        if isinstance(wrapped, arrays.TrackedArray) and wrapped is not value:
            wrapped.mark_replaced()  # the new array replaces the stored one as a whole
        dicts.ensure(self._data, path, wrapped)
        self.mark_modified(path)

    def unset(self, path: str) -> None:
        dicts.remove(self._data, path)
        self.mark_modified(path)

    def mark_modified(self, path: str) -> None:
        if path not in self._modified:
            self._modified[path] = None

    def is_modified(self, path: Optional[str] = None) -> bool:
        if path is None:
            return bool(self._modified)
        return any(modified == path or
                   dicts.is_ancestor(path, modified) or
                   dicts.is_ancestor(modified, path)
                   for modified in self._modified)

    @property
    def modified_paths(self) -> List[str]:
        return list(self._modified)

    def get_dirty_records(self) -> List[DirtyRecord]:
        """
        The changes since the last load or save, in the order of their happening.

        The changes of the sub-paths are dropped if their parent path is also
        changed: the parent's value carries all of them.
        """
        paths = list(self._modified)
        return [DirtyRecord(path, self._get_raw(path), self.schema.resolve_path(path))
                for path in paths
                if not any(dicts.is_ancestor(other, path) for other in paths)]

    def mark_saved(self) -> None:
        """ Forget all the tracked changes once they are stored. """
        self._modified.clear()
        for array in _iter_tracked_arrays(self._data):
            array.reset_atomics()
        self.is_new = False
        self.version = versions.NONE

    #
    # Reading & writing with no dirty-tracking.
    #

    def get_value(self, path: str, default: Any = None) -> Any:
        return dicts.resolve(self._data, path, default)

    def get_values(self, path: str) -> Any:
        """ Same as `get_value`, but fanning out over the arrays on the way. """
        return dicts.resolve_all(self._data, path)

    def set_value(
            self,
            path: str,
            value: Any,
            *,
            mapper: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """
        Store the value as is, fanning out over the arrays on the way.

        If the path goes through the arrays, the value must have the same
        nested shape, and its leaves are stored to the respective items.
        The ``mapper`` (if any) is applied to every leaf before storing.
        """
        if value is bodies.UNDEFINED:
            dicts.remove(self._data, path)
            return

        def setter(v: Any, p: dicts.FieldPath) -> Any:
            concrete = dicts.join_field(p)
            v = mapper(v) if mapper is not None else v
            return self._wrap(concrete, self.schema.resolve_path(concrete), v)

        dicts.assign_all(self._data, path, value, setter)

    def _get_raw(self, path: str) -> Any:
        return dicts.resolve(self._data, path, bodies.UNDEFINED)

    #
    # The loading & population state.
    #

    def is_selected(self, path: str) -> bool:
        """
        Check if the path was loaded from the store (or is it absent due to the projection).
        """
        selected = self._selected
        if not selected:
            return True

        id_key = self.schema.id_key
        if path == id_key:
            return selected.get(id_key) != 0

        keys = list(selected)
        if keys == [id_key]:
            return selected[id_key] == 0  # only the id was selected or deselected

        inclusive = False
        for key in reversed(keys):
            if key != id_key:
                inclusive = bool(selected[key])
                break

        if path in selected:
            return inclusive

        for key in keys:
            if key != id_key and (dicts.is_ancestor(path, key) or dicts.is_ancestor(key, path)):
                return inclusive

        return not inclusive

    def populated(self, path: str) -> Optional[PopulationMeta]:
        return self._populated.get(path)

    def set_populated(self, meta: PopulationMeta) -> None:
        self._populated[meta.path] = meta

    @property
    def populated_paths(self) -> List[str]:
        return list(self._populated)

    def to_object(self, *, depopulate: bool = False) -> bodies.RawDocument:
        result: bodies.RawDocument = codecs.clone(self._data, depopulate=depopulate)
        return result


def _item_caster(schema: schemas.PathSchema) -> Optional[arrays.Caster]:
    subschema = schema.schema
    caster = schema.caster
    if schema.type is schemas.SchemaType.DOCUMENT_ARRAY and subschema is not None:
        return lambda v: subschema.cast_fields(v) if isinstance(v, collections.abc.Mapping) else v
    elif caster is not None:
        return caster.cast
    else:
        return None


def _iter_tracked_arrays(value: Any) -> Iterator[arrays.TrackedArray]:
    if isinstance(value, arrays.TrackedArray):
        yield value
    if isinstance(value, collections.abc.Mapping):
        for item in value.values():
            yield from _iter_tracked_arrays(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_tracked_arrays(item)
