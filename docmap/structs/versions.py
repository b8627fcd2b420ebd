"""
Optimistic concurrency via the version counter of the documents.

Every model has a version key (``__v`` by default) -- a counter field, which
is incremented by the updates that can reorder or remove the array items.
Such updates are guarded by the version in their ``where`` clause: if the
document was changed in the store since it was loaded, the update matches
nothing, and the conflict is reported to the caller. There are no locks.

The updates that only append to the arrays do not need the guard, but still
increment the version (to guard the others). The positional updates of array
items (``comments.3.text``) need the guard, but do not change the order.
"""
import enum
import re
from typing import TYPE_CHECKING, Any, Dict, MutableMapping, Union

if TYPE_CHECKING:
    from docmap.structs import documents


class VersionFlags(enum.Flag):
    """
    What should be done with the version when the document is saved.

    The flags are accumulated on the document from its changes, and cleared
    after every successful save. The empty flags mean "no versioning".
    """
    WHERE = 1
    INC = 2
    ALL = WHERE | INC


NONE = VersionFlags(0)


class _Insert(enum.Enum):
    token = enum.auto()

    def __repr__(self) -> str:
        return 'INSERT'


INSERT = _Insert.token
""" A marker used in place of the ``where`` clause for the inserts. """

_POSITIONAL_PATH = re.compile(r'\.\d+\.|\.\d+$')


def escalate(
        flags: VersionFlags,
        op: str,
        path: str,
        value: Any,
) -> VersionFlags:
    """
    Decide on the versioning needed for an operation on a path.

    Returns the new flags, which include the old ones.
    """
    if flags is VersionFlags.ALL:
        return flags
    elif op in ('$push', '$addToSet'):
        return flags | VersionFlags.INC
    elif op in ('$pull', '$pop'):
        return VersionFlags.ALL
    elif op not in ('$set', '$unset'):
        return flags
    elif isinstance(value, list):
        return VersionFlags.ALL
    elif _POSITIONAL_PATH.search(path):
        return flags | VersionFlags.WHERE
    else:
        return flags


def apply_version(
        where: Union[MutableMapping[str, Any], _Insert],
        update: Dict[str, Any],
        doc: "documents.Document",
        flags: VersionFlags,
) -> None:
    """
    Append the versioning to the ``where`` and ``update`` clauses (in place).

    For the inserts, the version is initialised to zero, both in the document
    and in the update. For the updates, nothing can be guarded if the version
    was not loaded (excluded from the projection): its current value is unknown.
    """
    key = doc.schema.version_key
    if not key or not isinstance(key, str):
        return

    if where is INSERT:
        doc.set_value(key, 0)
        update.setdefault('$set', {})[key] = 0
        return

    if not doc.is_selected(key):
        return

    if VersionFlags.WHERE in flags:
        where[key] = doc.get_value(key)

    if VersionFlags.INC in flags:
        increments = update.setdefault('$inc', {})
        increments[key] = increments.get(key, 0) + 1
