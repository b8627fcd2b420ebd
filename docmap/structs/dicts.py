"""
Dotted-path manipulation helpers for nested documents.

Documents are mappings with lists inside. A path segment made of digits
addresses a list item by its position (``"comments.0.text"``), while
a non-digit segment applied to a list fans out over all of its items
(``"comments.author"`` means the author of every comment).
"""
import collections.abc
import enum
from typing import Any, Callable, Iterable, Iterator, List, Mapping, \
                   MutableMapping, Optional, Tuple, TypeVar, Union

FieldPath = Tuple[str, ...]
FieldSpec = Union[None, str, FieldPath, List[str]]

_T = TypeVar('_T')


class _UNSET(enum.Enum):
    token = enum.auto()


def parse_field(
        field: FieldSpec,
) -> FieldPath:
    """
    Convert any field into a tuple of nested sub-fields.

    Supported notations:

    * ``None`` (for root of a dict).
    * ``"field.subfield"``
    * ``("field", "subfield")``
    * ``["field", "subfield"]``
    """
    if field is None:
        return tuple()
    elif isinstance(field, str):
        return tuple(field.split('.'))
    elif isinstance(field, (list, tuple)):
        return tuple(str(key) for key in field)
    else:
        raise ValueError(f"Field must be either a str, or a list/tuple. Got {field!r}")


def join_field(field: FieldSpec) -> str:
    return '.'.join(parse_field(field))


def is_ancestor(parent: str, child: str) -> bool:
    """ Check if ``parent`` is a strict dotted prefix of ``child``. """
    return child.startswith(parent + '.')


def is_sequence(value: Any) -> bool:
    return (isinstance(value, collections.abc.Sequence) and
            not isinstance(value, (str, bytes, bytearray)))


def _step(value: Any, key: str) -> Any:
    if isinstance(value, collections.abc.Mapping):
        return value[key]
    elif is_sequence(value) and key.isdigit():
        try:
            return value[int(key)]
        except IndexError:
            raise KeyError(key) from None
    else:
        raise TypeError(f"The structure is not a dict/list with field {key!r}: {value!r}")


def resolve(
        d: Optional[Mapping[Any, Any]],
        field: FieldSpec,
        default: Union[_T, _UNSET] = _UNSET.token,
) -> Union[Any, _T]:
    """
    Retrieve a nested sub-field from a document.

    If ``default`` is provided, then all non-existent and non-container values
    are assumed to be empty, and ``default`` is returned.

    Otherwise (with no default), attempts to get the inexistent keys will
    raise either a ``TypeError`` or ``KeyError``:

    * ``KeyError`` for actual absence of keys while the structures are correct.
    * ``TypeError`` for attempting to get a key for a non-container:
      e.g. ``None['key']``, ``"string"['key']``, ``123['key']``, etc.
    """
    path = parse_field(field)
    try:
        result: Any = d
        for key in path:
            result = _step(result, key)
        return result
    except (KeyError, TypeError):
        if not isinstance(default, _UNSET):
            return default
        raise


def ensure(
        d: MutableMapping[Any, Any],
        field: FieldSpec,
        value: Any,
) -> None:
    """
    Force-set a nested sub-field in a document.

    If some levels of parents are missing, they are created as empty dicts
    (this what makes it "ensuring", not just "setting"). Positional keys
    beyond the end of a list pad it with ``None``, as the stores do.
    """
    result: Any = d
    path = parse_field(field)
    if not path:
        raise ValueError("Setting a root of a dict is impossible. Provide the specific fields.")
    for key in path[:-1]:
        if is_sequence(result) and key.isdigit():
            _pad(result, int(key))
            if result[int(key)] is None:
                list.__setitem__(result, int(key), {})
            result = result[int(key)]
        else:
            try:
                result = result[key]
            except KeyError:
                result = result.setdefault(key, {})
    if is_sequence(result) and path[-1].isdigit():
        _pad(result, int(path[-1]))
        list.__setitem__(result, int(path[-1]), value)
    else:
        result[path[-1]] = value


def _pad(seq: Any, index: int) -> None:
    # Plain list.extend(): tracked lists must not record the padding as a change.
    if len(seq) <= index:
        list.extend(seq, [None] * (index + 1 - len(seq)))


def remove(
        d: MutableMapping[Any, Any],
        field: FieldSpec,
) -> None:
    """
    Remove a nested sub-field from a document.

    Unlike an update's ``$unset``, the parents are never removed, even if empty.
    If the target key is absent already, or any of the intermediate parents
    is absent (which implies that the target key is also absent), no error
    is raised, since the goal of deletion is achieved. List items cannot be
    removed without shifting the others, so they are set to ``None`` instead.
    """
    path = parse_field(field)
    if not path:
        raise ValueError("Removing a root of a dict is impossible. Provide a specific field.")

    try:
        parent = resolve(d, path[:-1])
    except KeyError:
        return

    key = path[-1]
    if isinstance(parent, collections.abc.MutableMapping):
        parent.pop(key, None)
    elif is_sequence(parent) and key.isdigit():
        if int(key) < len(parent):
            list.__setitem__(parent, int(key), None)
    else:
        raise TypeError(f"The structure is not a dict/list with field {key!r}: {parent!r}")


def resolve_all(
        d: Any,
        field: FieldSpec,
) -> Any:
    """
    Retrieve a nested sub-field, fanning out over the lists on the way.

    ``resolve_all({'a': [{'b': 1}, {'b': 2}]}, 'a.b')`` gives ``[1, 2]``.
    Absent values are reported as ``None``; no errors are raised.
    """
    return _resolve_all(d, parse_field(field))


def _resolve_all(value: Any, path: FieldPath) -> Any:
    if not path:
        return value
    key, rest = path[0], path[1:]
    if is_sequence(value) and not key.isdigit():
        return [_resolve_all(item, path) for item in value]
    try:
        return _resolve_all(_step(value, key), rest)
    except (KeyError, TypeError):
        return None


def assign_all(
        d: MutableMapping[Any, Any],
        field: FieldSpec,
        value: Any,
        setter: Optional[Callable[[Any, FieldPath], Any]] = None,
) -> None:
    """
    The opposite of `resolve_all`: distribute the values over the lists.

    The ``value`` must mirror the shape returned by `resolve_all` for the same
    field. The ``setter`` (if any) converts every leaf value right before
    it is stored, and gets the concrete positional path of that leaf.
    """
    path = parse_field(field)
    if not path:
        raise ValueError("Setting a root of a dict is impossible. Provide the specific fields.")
    _assign_all(d, path, (), value, setter if setter is not None else lambda v, p: v)


def _assign_all(
        obj: Any,
        path: FieldPath,
        prefix: FieldPath,
        value: Any,
        setter: Callable[[Any, FieldPath], Any],
) -> None:
    key, rest = path[0], path[1:]
    if is_sequence(obj) and not key.isdigit():
        values = value if is_sequence(value) else []
        for idx, (item, val) in enumerate(zip(obj, values)):
            if item is not None:
                _assign_all(item, path, prefix + (str(idx),), val, setter)
    elif not rest:
        ensure(obj, (key,), setter(value, prefix + (key,)))
    else:
        try:
            child = _step(obj, key)
        except KeyError:
            child = None
        if child is None:
            child = {}
            ensure(obj, (key,), child)
        _assign_all(child, rest, prefix + (key,), value, setter)


def walk(
        objs: Union[_T, Iterable[_T], Iterable[Union[_T, Iterable[_T]]]],
) -> Iterator[_T]:
    """
    Iterate over objects, flattening the lists/tuples recursively.

    In plain English, the source is either an object, or a list/tuple
    of objects with any level of nesting. The dicts/mappings are excluded,
    despite they are iterables too, as they are treated as objects themselves.
    ``None`` values are skipped at any level.
    """
    if objs is None:
        pass
    elif isinstance(objs, collections.abc.Mapping):
        yield objs  # type: ignore
    elif is_sequence(objs):
        for obj in objs:  # type: ignore
            yield from walk(obj)
    else:
        yield objs  # type: ignore
