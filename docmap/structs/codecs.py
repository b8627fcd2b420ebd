"""
Normalisation of the changed values for inclusion into the updates.

Every changed value falls into one of the few kinds, which define how
it is sent to the store: removed (``$unset``), set to ``None``, changed by
the queued atomic array operations, or set as a whole -- in which case
it is cloned with the populated documents replaced by their ids (the store
keeps the references, not the referenced documents).
"""
import collections.abc
import enum
from typing import Any, List, Tuple

from docmap.structs import arrays, bodies


class ValueKind(enum.Enum):
    UNSET = enum.auto()
    NULL = enum.auto()
    ATOMICS = enum.auto()
    BUFFER = enum.auto()
    VALUE = enum.auto()


def classify(value: Any) -> ValueKind:
    if value is bodies.UNDEFINED:
        return ValueKind.UNSET
    elif value is None:
        return ValueKind.NULL
    elif isinstance(value, arrays.TrackedArray) and value.atomics:
        return ValueKind.ATOMICS
    elif isinstance(value, arrays.TrackedBuffer):
        return ValueKind.BUFFER
    else:
        return ValueKind.VALUE


def encode(value: Any) -> Tuple[ValueKind, Any]:
    """
    Classify the value and convert it to the operand of an update.

    For the atomic operations, the operand is a list of pairs
    ``(operator, operand)``, one per queued operator, depopulated.
    For removals, the operand is ``1``, as the stores expect for ``$unset``.
    The source value is never modified, so encoding is repeatable.
    """
    kind = classify(value)
    if kind is ValueKind.UNSET:
        return kind, 1
    elif kind is ValueKind.NULL:
        return kind, None
    elif kind is ValueKind.ATOMICS:
        ops: List[Tuple[str, Any]] = [(op, clone(val, depopulate=True))
                                      for op, val in value.get_atomics()]
        return kind, ops
    elif kind is ValueKind.BUFFER:
        return kind, value.to_bytes()
    else:
        return kind, clone(value, depopulate=True)


def clone(value: Any, *, depopulate: bool = False) -> Any:
    """
    Deep-copy a value into plain dicts, lists, and scalars.

    The tracked containers become the plain lists & bytes. The documents
    become either their ids (when depopulating) or their raw dicts.
    All other values (e.g. strings, numbers, dates) are treated as immutable.
    """
    if isinstance(value, bodies.Body):
        return value.id if depopulate else value.to_object(depopulate=depopulate)
    elif isinstance(value, collections.abc.Mapping):
        return {key: clone(val, depopulate=depopulate) for key, val in value.items()}
    elif isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    elif isinstance(value, (list, tuple)):
        return [clone(item, depopulate=depopulate) for item in value]
    else:
        return value
