"""
Reassembly of the populated documents into the structures of their ids.

The population goes in three steps:

* The ids are collected from all the documents being populated, preserving
  their shape: one item per document, which is a scalar for the single
  references, a list for the arrays of references, or the lists of lists
  for the arrays of arrays (``collect_ids``).
* All the referenced documents are fetched at once, and indexed by their ids
  (as strings) and by their positions in the sorted results (if sorted).
* The fetched documents are put in place of their ids in the collected
  structure (``reassemble``), and the results are assigned to the documents
  (``assign_vals``), with some backward-compatible filtering (``value_filter``).

The rules differ for the single references ("findOne" rules) and the arrays
of references ("find" rules): a single reference with no document becomes
``None``; an array item with no document keeps its id (but is then dropped
by the filtering when assigned). Missing documents are never an error:
dangling references are a data consistency issue, not a failure.
"""
import collections.abc
import functools
from typing import Any, Dict, Iterable, List, Mapping, MutableSequence, Sequence

from docmap.structs import bodies, dicts, documents


def reassemble(
        ids: MutableSequence[Any],
        docs: Mapping[str, Any],
        order: Mapping[str, int],
        options: documents.PopulateOptions,
        *,
        nested: bool = False,
) -> None:
    """
    Replace the ids with the documents (in place), honoring the sort order.

    The top-level items (``nested=False``) follow the "findOne" rules:
    every item becomes either its document or ``None``, in the same position.
    The nested lists follow the "find" rules: the found documents are placed
    in the order of their arrival, or of their rank in the sorted results
    (if sorted), and the ids with no documents are kept as they are.

    ``None`` items are kept in their positions unless sorted, in which case
    they are dropped. Sorting only applies to the lists of 2+ items.
    """
    sorting = bool(options.sort) and len(ids) > 1
    reordered: Dict[int, Any] = {}

    def append(value: Any) -> None:
        reordered[max(reordered) + 1 if reordered else 0] = value

    for idx, id in enumerate(ids):
        if dicts.is_sequence(id):
            reassemble(id, docs, order, options, nested=True)
            if nested:
                append(id)
            else:
                reordered[idx] = id
            continue

        if not nested:
            reordered[idx] = None if id is None else docs.get(str(id))
            continue

        if id is None:
            if not sorting:
                append(id)
            continue

        sid = str(id)
        doc = docs.get(sid)
        if doc is None:
            append(id)
        elif sorting and sid in order:
            reordered[order[sid]] = doc
        else:
            append(doc)

    ids[:] = [reordered[idx] for idx in sorted(reordered)]


def value_filter(
        value: Any,
        options: documents.PopulateOptions,
        *,
        id_key: str = '_id',
) -> Any:
    """
    Apply the backward-compatible rules to a reassembled value before assigning.

    For the arrays ("find" rules), everything that is not a document is dropped
    (i.e. the ids that had no documents). For the single values ("findOne" rules),
    a non-document becomes ``None``. In both cases, the documents' ids are
    removed if the caller excluded them from the projection -- they were only
    fetched to map the documents to their references.
    """
    if dicts.is_sequence(value):
        result: List[Any] = []
        for item in value:
            if is_doc(item):
                result.append(_maybe_remove_id(item, options, id_key=id_key))
        return result
    elif is_doc(value):
        return _maybe_remove_id(value, options, id_key=id_key)
    else:
        return None


def _maybe_remove_id(doc: Any, options: documents.PopulateOptions, *, id_key: str) -> Any:
    if options.exclude_id:
        if isinstance(doc, documents.Document):
            doc.set_value(id_key, bodies.UNDEFINED)
        elif isinstance(doc, collections.abc.MutableMapping):
            doc.pop(id_key, None)
    return doc


def is_doc(value: Any) -> bool:
    """ Check if the value is a document returned by a population (not an id). """
    return isinstance(value, (bodies.Body, collections.abc.Mapping))


def convert_to_id(value: Any) -> Any:
    """ Replace the documents (or the lists of them) with their ids. """
    if isinstance(value, bodies.Body):
        return value.id
    elif dicts.is_sequence(value):
        return [convert_to_id(item) for item in value]
    else:
        return value


def collect_ids(
        docs: Iterable[documents.Document],
        path: str,
) -> List[Any]:
    """
    Collect the ids to populate, one item per document, as plain (nested) lists.

    The result is a new structure, which can be reassembled in place without
    affecting the documents (their arrays are not reused).
    """
    return [convert_to_id(doc.get_values(path)) for doc in docs]


def unique_ids(ids: Iterable[Any]) -> List[Any]:
    """ Flatten the collected ids, with no ``None`` values and no duplicates. """
    seen: Dict[str, Any] = {}
    for id in dicts.walk(ids):
        if id is not None and str(id) not in seen:
            seen[str(id)] = id
    return list(seen.values())


def assign_vals(
        docs: Sequence[documents.Document],
        path: str,
        ids: Sequence[Any],
        options: documents.PopulateOptions,
        *,
        original: Sequence[Any] = (),
) -> None:
    """
    Assign the reassembled values to the documents, and remember the population.

    ``ids`` must be already reassembled. The ``original`` ids (as collected,
    before reassembly) are remembered for every document together with the
    population options -- to later detect the divergent arrays.
    """
    for idx, doc in enumerate(docs):
        mapper = functools.partial(value_filter, options=options, id_key=doc.schema.id_key)
        value = ids[idx] if idx < len(ids) else None
        doc.set_value(path, value, mapper=mapper)
        raw_ids = original[idx] if idx < len(original) else None
        doc.set_populated(documents.PopulationMeta(path=path, ids=raw_ids, options=options))
