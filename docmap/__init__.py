"""
The main docmap module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from docmap._version import (
    version as __version__,
)
from docmap.clients.errors import (
    APIError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APIServerError,
)
from docmap.clients.transport import (
    Transport,
    HTTPTransport,
)
from docmap.engines.loggers import (
    LogFormat,
    DocumentLogger,
    configure,
)
from docmap.errors import (
    DocmapError,
    CastError,
    DivergentArrayError,
    VersionError,
    DocumentNotFoundError,
    MissingSchemaError,
    OverwriteModelError,
    DiscriminatorError,
)
from docmap.models.models import (
    Model,
)
from docmap.models.registries import (
    Registry,
    get_default_registry,
    set_default_registry,
    model,
)
from docmap.structs.arrays import (
    TrackedArray,
    TrackedBuffer,
)
from docmap.structs.bodies import (
    UNDEFINED,
    RawDocument,
)
from docmap.structs.configuration import (
    Settings,
    NetworkingSettings,
    DataSourceSettings,
    VersioningSettings,
)
from docmap.structs.deltas import (
    Delta,
    DivergenceFailure,
    compute_delta,
)
from docmap.structs.dicts import (
    FieldSpec,
    FieldPath,
)
from docmap.structs.documents import (
    Document,
    DirtyRecord,
    PopulateOptions,
)
from docmap.structs.ids import (
    generate_id,
)
from docmap.structs.schemas import (
    Schema,
    SchemaType,
    PathSchema,
    Ref,
)
from docmap.structs.versions import (
    VersionFlags,
)

__all__ = [
    'APIError', 'APIUnauthorizedError', 'APIForbiddenError',
    'APINotFoundError', 'APIConflictError', 'APIServerError',
    'Transport', 'HTTPTransport',
    'LogFormat', 'DocumentLogger', 'configure',
    'DocmapError', 'CastError', 'DivergentArrayError', 'VersionError',
    'DocumentNotFoundError', 'MissingSchemaError', 'OverwriteModelError',
    'DiscriminatorError',
    'Model',
    'Registry', 'get_default_registry', 'set_default_registry', 'model',
    'TrackedArray', 'TrackedBuffer',
    'UNDEFINED', 'RawDocument',
    'Settings', 'NetworkingSettings', 'DataSourceSettings', 'VersioningSettings',
    'Delta', 'DivergenceFailure', 'compute_delta',
    'FieldSpec', 'FieldPath',
    'Document', 'DirtyRecord', 'PopulateOptions',
    'generate_id',
    'Schema', 'SchemaType', 'PathSchema', 'Ref',
    'VersionFlags',
]
