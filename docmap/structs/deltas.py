"""
Calculation of the minimal updates from the tracked changes of the documents.

The result is a pair of ``where`` & ``update`` clauses, as accepted by the
document stores for updating one document::

    where:  {'__v': 3}
    update: {'$set': {'title': 'New'},
             '$unset': {'draft': 1},
             '$push': {'tags': {'$each': ['news']}},
             '$inc': {'__v': 1}}

The ``where`` clause does not include the document's id: it is added by the
caller, who knows which document is being saved. The ``where`` clause only
contains the conditions that make the update safe for concurrent changes.
"""
from typing import Any, Dict, List, NamedTuple, Sequence, Tuple, Union

from docmap.structs import codecs, divergence, documents, versions


class Delta(NamedTuple):
    where: Dict[str, Any]
    update: Dict[str, Any]
    version: versions.VersionFlags  # as escalated by the changes themselves


class DivergenceFailure(NamedTuple):
    paths: Tuple[str, ...]


DeltaOutcome = Union[None, Delta, DivergenceFailure]


def compute_delta(
        doc: documents.Document,
        records: Sequence[documents.DirtyRecord],
        version: versions.VersionFlags = versions.NONE,
) -> DeltaOutcome:
    """
    Build the update for the changed paths of the document.

    Returns ``None`` if there is nothing to update (no changes and no versioning
    requested), or a `DivergenceFailure` if some changed arrays are unsafe to
    save -- in that case, nothing should be saved at all, including the safe
    changes. Otherwise, returns the `Delta` with the ``where`` & ``update`` clauses.

    The operands are added in the order of the records; if the same path
    is changed twice, the latter record wins. The document is not modified.
    """
    if not records and not version:
        return None

    versioned = bool(doc.schema.version_key)
    where: Dict[str, Any] = {}
    update: Dict[str, Any] = {}
    divergent: List[str] = []

    for record in records:
        match = divergence.check_divergence(doc, record.path, record.value)
        if match is not None:
            if match not in divergent:
                divergent.append(match)
            continue

        if divergent:
            continue

        kind, operand = codecs.encode(record.value)
        if kind is codecs.ValueKind.ATOMICS:
            if record.path in update.get('$set', {}):
                continue  # the full replacement has precedence over the atomic operations
            for op, val in operand:
                _add_operand(update, op, record.path, val)
                version = versions.escalate(version, op, record.path, val) if versioned else version
        else:
            op = '$unset' if kind is codecs.ValueKind.UNSET else '$set'
            _add_operand(update, op, record.path, operand)
            version = versions.escalate(version, op, record.path, operand) if versioned else version

    if divergent:
        return DivergenceFailure(tuple(divergent))

    if version:
        versions.apply_version(where, update, doc, version)

    return Delta(where, update, version)


def _add_operand(update: Dict[str, Any], op: str, path: str, value: Any) -> None:
    update.setdefault(op, {})[path] = value
