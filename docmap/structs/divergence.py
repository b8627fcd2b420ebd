"""
Detection of the arrays that diverged from their stored state.

An array is "divergent" when the document holds only a part of its items,
while the store holds all of them. Then, replacing the array as a whole
(or popping an item from its end) would destroy the items never loaded.

There are two sources of such arrays:

* The projection with ``$elemMatch``: only the matching items are loaded.
  The stores support it on the top-level arrays only, so the whole top-level
  field is unsafe to write, whatever sub-path of it is changed.

* The population with filters: ``match``, ``skip``, ``limit`` (even zero),
  or the id field excluded from the referenced documents' projection
  (so that it is unknown which references the documents stand for).
  The atomic appends and removals are still safe, while the full replacement
  (an array with no atomic operations, or with ``$set``) and ``$pop`` are not.
"""
import collections.abc
import re
from typing import Any, Optional

from docmap.structs import arrays, documents


def check_divergence(
        doc: documents.Document,
        path: str,
        value: Any,
) -> Optional[str]:
    """
    Return the path that makes the change of ``path`` unsafe, or ``None`` if safe.
    """
    meta = doc.populated(path)

    selected = doc.selected
    if meta is None and selected:
        top = path.split('.')[0]
        projection = selected.get(top)
        if isinstance(projection, collections.abc.Mapping) and '$elemMatch' in projection:
            return top

    if meta is None or not isinstance(value, arrays.TrackedArray):
        return None

    if is_partial(meta.options, id_key=doc.schema.id_key):
        atomics = value.atomics
        if not atomics or '$set' in atomics or '$pop' in atomics:
            return path

    return None


def is_partial(
        options: documents.PopulateOptions,
        *,
        id_key: str = '_id',
) -> bool:
    """
    Check if the population could skip some of the referenced documents.
    """
    return bool(
        options.match or
        options.limit is not None or
        options.skip or
        (options.select is not None and excludes_id(options.select, id_key=id_key))
    )


def excludes_id(
        select: Any,
        *,
        id_key: str = '_id',
) -> bool:
    if isinstance(select, str):
        return re.search(rf'\s?-{re.escape(id_key)}\s?', select) is not None
    elif isinstance(select, collections.abc.Mapping):
        return id_key in select and type(select[id_key]) is int and select[id_key] == 0
    else:
        return False
