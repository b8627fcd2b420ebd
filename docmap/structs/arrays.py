"""
Mutable containers that remember how they were changed.

A `TrackedArray` is a list that queues its mutations as atomic operations
(``$push``, ``$addToSet``, ``$pull``, ``$pop``) -- so that the document can be
saved with the store-native array operators instead of replacing the whole
array, which would clobber the items added to the store by someone else.

The store cannot apply different operators to the same path in one update,
and cannot pop more than one item at once. Such combinations, as well as all
positional changes (item assignment, insertion, sorting, etc), collapse into
a full replacement of the array (``$set``).

A `TrackedBuffer` is a byte array that marks its path as modified when changed.

Both containers are bound to a path of a parent document, and mark that path
as modified on every change (the parent decides what to do with that).
"""
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, SupportsIndex, Tuple

from typing_extensions import Protocol

Caster = Callable[[Any], Any]


class Parent(Protocol):
    def mark_modified(self, path: str) -> None: ...


class TrackedArray(List[Any]):

    def __init__(
            self,
            values: Iterable[Any] = (),
            *,
            path: Optional[str] = None,
            parent: Optional[Parent] = None,
            caster: Optional[Caster] = None,
    ) -> None:
        self._path = path
        self._parent = parent
        self._caster = caster
        self._atomics: Dict[str, Any] = {}
        super().__init__(self._cast(value) for value in values)

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def parent(self) -> Optional[Parent]:
        return self._parent

    @property
    def atomics(self) -> Mapping[str, Any]:
        """ The queued operations: operator names to their accumulated values. """
        return dict(self._atomics)

    def get_atomics(self) -> List[Tuple[str, Any]]:
        """ The queued operations as pairs of the update's operators & operands. """
        result: List[Tuple[str, Any]] = []
        for op, val in self._atomics.items():
            if op == '$set':
                result.append((op, list(self)))
            elif op in ('$push', '$addToSet'):
                result.append((op, {'$each': list(val)}))
            elif op == '$pull':
                result.append((op, {'$in': list(val)}))
            else:
                result.append((op, val))
        return result

    def reset_atomics(self) -> None:
        self._atomics = {}

    def mark_replaced(self) -> None:
        """ Save the array as a whole, regardless of the operations queued later. """
        self._register('$set', None)

    def _cast(self, value: Any) -> Any:
        return self._caster(value) if self._caster is not None else value

    def _register(self, op: str, value: Any) -> None:
        if op == '$set' or '$set' in self._atomics:
            self._atomics = {'$set': True}
        elif self._atomics and op not in self._atomics:
            self._atomics = {'$set': True}
        elif op == '$pop':
            self._atomics = {'$set': True} if '$pop' in self._atomics else {'$pop': value}
        else:
            self._atomics.setdefault(op, []).extend(value)
        self._mark_modified()

    def _mark_modified(self) -> None:
        if self._parent is not None and self._path is not None:
            self._parent.mark_modified(self._path)

    #
    # Atomic operations.
    #

    def push(self, *values: Any) -> int:
        casted = [self._cast(value) for value in values]
        list.extend(self, casted)
        self._register('$push', casted)
        return len(self)

    def add_to_set(self, *values: Any) -> List[Any]:
        """ Append only the values that are not in the array yet; return them. """
        added: List[Any] = []
        for value in (self._cast(value) for value in values):
            if value not in self and value not in added:
                added.append(value)
        if added:
            list.extend(self, added)
            self._register('$addToSet', added)
        return added

    def pull(self, *values: Any) -> None:
        """ Remove all occurrences of the values (both here and in the store). """
        casted = [self._cast(value) for value in values]
        list.__setitem__(self, slice(None), [item for item in self if item not in casted])
        self._register('$pull', casted)

    def pop(self, index: SupportsIndex = -1) -> Any:
        size = len(self)
        value = list.pop(self, index)
        position = index.__index__()
        if position in (-1, size - 1):
            self._register('$pop', 1)
        elif position in (0, -size):
            self._register('$pop', -1)
        else:
            self._register('$set', None)
        return value

    def shift(self) -> Any:
        return self.pop(0)

    #
    # Regular list methods, mapped to the atomic operations where possible.
    #

    def append(self, value: Any) -> None:
        self.push(value)

    def extend(self, values: Iterable[Any]) -> None:
        self.push(*values)

    def __iadd__(self, values: Iterable[Any]) -> "TrackedArray":  # type: ignore
        self.push(*values)
        return self

    def __imul__(self, times: SupportsIndex) -> "TrackedArray":  # type: ignore
        list.__imul__(self, times)
        self._register('$set', None)
        return self

    def remove(self, value: Any) -> None:
        """ Same as `pull`: removes all occurrences, not only the first one. """
        if value not in self:
            raise ValueError(f"{value!r} is not in the array.")
        self.pull(value)

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            list.__setitem__(self, index, [self._cast(item) for item in value])
        else:
            list.__setitem__(self, index, self._cast(value))
        self._register('$set', None)

    def __delitem__(self, index: Any) -> None:
        list.__delitem__(self, index)
        self._register('$set', None)

    def insert(self, index: SupportsIndex, value: Any) -> None:
        list.insert(self, index, self._cast(value))
        self._register('$set', None)

    def sort(self, *args: Any, **kwargs: Any) -> None:
        list.sort(self, *args, **kwargs)
        self._register('$set', None)

    def reverse(self) -> None:
        list.reverse(self)
        self._register('$set', None)

    def clear(self) -> None:
        list.clear(self)
        self._register('$set', None)


class TrackedBuffer(bytearray):

    def __init__(
            self,
            data: bytes = b'',
            *,
            path: Optional[str] = None,
            parent: Optional[Parent] = None,
    ) -> None:
        super().__init__(data)
        self._path = path
        self._parent = parent

    @property
    def path(self) -> Optional[str]:
        return self._path

    def to_bytes(self) -> bytes:
        return bytes(self)

    def _mark_modified(self) -> None:
        if self._parent is not None and self._path is not None:
            self._parent.mark_modified(self._path)

    def __setitem__(self, index: Any, value: Any) -> None:
        super().__setitem__(index, value)
        self._mark_modified()

    def __delitem__(self, index: Any) -> None:
        super().__delitem__(index)
        self._mark_modified()

    def __iadd__(self, data: Any) -> "TrackedBuffer":  # type: ignore
        super().extend(data)
        self._mark_modified()
        return self

    def append(self, item: int) -> None:
        super().append(item)
        self._mark_modified()

    def extend(self, data: Any) -> None:
        super().extend(data)
        self._mark_modified()

    def clear(self) -> None:
        super().clear()
        self._mark_modified()
