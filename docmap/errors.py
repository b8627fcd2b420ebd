"""
Errors of the object-document mapping.

These errors are exposed to the users, who can catch them in ``except:``
clauses around saving, populating, or declaring the models. The errors of the
underlying transport are a separate hierarchy: see `docmap.clients.errors`.
"""
from typing import Any, Collection


class DocmapError(Exception):
    """ A base class for all errors of the object-document mapping. """


class CastError(DocmapError, ValueError):
    """ A value cannot be converted to the type declared for its path. """

    def __init__(self, path: str, kind: str, value: Any) -> None:
        super().__init__(f"Cast to {kind} failed for value {value!r} at path {path!r}")
        self.path = path
        self.kind = kind
        self.value = value


class DivergentArrayError(DocmapError):
    """
    Some arrays were loaded partially, and saving them would lose the data.

    The arrays populated with a filter (``match``, ``skip``, ``limit``, or
    the id field excluded), or projected with ``$elemMatch``, do not hold all
    the items that are in the store. Replacing such arrays as a whole
    (or popping from them) would destroy the items that were never loaded.
    Nothing is sent to the store when this error is raised.
    """

    def __init__(self, paths: Collection[str]) -> None:
        super().__init__(
            f"For your own good, saving these arrays is prevented: {', '.join(paths)}. "
            f"They were loaded partially, and saving them would overwrite the data "
            f"which was not loaded. Use atomic operations (push/add_to_set/pull) "
            f"or re-load the arrays without the filters.")
        self.paths = list(paths)


class VersionError(DocmapError):
    """
    The document was changed in the store since it was loaded.

    The version-guarded update has matched no documents: the version counter
    in the store is not the one that was loaded. The document must be
    re-loaded and the changes re-applied (or the save abandoned).
    """

    def __init__(self, model: str, id: Any, version: Any) -> None:
        super().__init__(f"No matching document found for {model} id={id!r} version={version!r}.")
        self.model = model
        self.id = id
        self.version = version


class DocumentNotFoundError(DocmapError):
    """ The document to update is absent in the store (e.g. deleted). """

    def __init__(self, model: str, id: Any) -> None:
        super().__init__(f"No document found for {model} id={id!r}.")
        self.model = model
        self.id = id


class MissingSchemaError(DocmapError):
    """ A model is requested by name, but it was never declared. """

    def __init__(self, name: str) -> None:
        super().__init__(f"Schema hasn't been registered for model {name!r}. "
                         f"Use registry.model(name, schema).")
        self.name = name


class OverwriteModelError(DocmapError):
    """ A model is re-declared with a different schema. """

    def __init__(self, name: str) -> None:
        super().__init__(f"Cannot overwrite {name!r} model once compiled.")
        self.name = name


class DiscriminatorError(DocmapError):
    """ A discriminator cannot be declared for the model. """
