"""
All configuration flags, options, settings to fine-tune the models.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

The settings are passed to the models via their registry. There is no global
mutable configuration: two registries with different settings can co-exist
in the same process (e.g. for two different data sources).
"""
import dataclasses
from typing import Iterable, Optional, Union


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: Optional[float] = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the whole request to the data API (in seconds).

    It includes the connection, the sending, and the reading of the response.
    """

    connect_timeout: Optional[float] = None
    """
    A timeout for the connection to the data API (in seconds).
    """

    error_backoffs: Union[float, Iterable[float]] = (1, 1, 2, 3, 5)
    """
    Backoffs (in seconds) for the retries of the failed requests.

    Only the connection errors, the timeouts, and the server-side errors
    (HTTP 5xx) are retried. The client-side errors (HTTP 4xx) are not.

    The number of backoffs is the number of retries. For no retries at all,
    set it to an empty list. A single number means one retry.
    """


@dataclasses.dataclass
class DataSourceSettings:

    server: str = 'http://localhost:8080'
    """
    The base URL of the data API, with no trailing ``/action/...`` part.
    """

    data_source: str = 'default'
    """
    The name of the data source (a cluster) as known to the data API.
    """

    database: str = 'test'
    """
    The database where the models' collections are stored.
    """

    api_key: Optional[str] = None
    """
    The API key for the ``api-key`` header. No authentication if ``None``.
    """


@dataclasses.dataclass
class VersioningSettings:

    enabled: bool = True
    """
    Whether the version key of the schemas is honored when saving.

    If disabled, the documents are saved with no optimistic concurrency:
    the version is neither checked nor incremented, regardless of the schemas.
    The schemas with no version key are never versioned anyway.
    """


@dataclasses.dataclass
class Settings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    datasource: DataSourceSettings = dataclasses.field(default_factory=DataSourceSettings)
    versioning: VersioningSettings = dataclasses.field(default_factory=VersioningSettings)
