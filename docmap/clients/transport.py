"""
The transports: how the models reach the store.

The models need only three operations from the store, all for one collection:
insert a document, update one document by a ``where`` clause (reporting how
many documents matched it), and find the documents by a filter. Anything that
implements these three coroutines can serve as a transport -- e.g. a driver's
wrapper, an in-memory fake for tests, or the HTTP transport below.

The HTTP transport talks to a "data API" -- a JSON-over-HTTP gateway to the
store, one POST request per operation::

    POST {server}/action/updateOne
    {"dataSource": "...", "database": "...", "collection": "...",
     "filter": {...}, "update": {...}}

    -> {"matchedCount": 1, "modifiedCount": 1}
"""
import logging
import types
from typing import Any, Collection, Dict, List, Mapping, Optional, Type

import aiohttp
from typing_extensions import Protocol

from docmap.clients import api
from docmap.structs import bodies, configuration

logger = logging.getLogger(__name__)


class Transport(Protocol):

    async def insert_one(
            self,
            collection: str,
            document: bodies.RawDocument,
    ) -> None: ...

    async def update_one(
            self,
            collection: str,
            where: Mapping[str, Any],
            update: Mapping[str, Any],
    ) -> int: ...

    async def find(
            self,
            collection: str,
            filter: Mapping[str, Any],
            *,
            projection: Optional[bodies.RawProjection] = None,
            sort: Optional[Mapping[str, int]] = None,
            skip: Optional[int] = None,
            limit: Optional[int] = None,
    ) -> Collection[bodies.RawDocument]: ...


class HTTPTransport:
    """
    A transport over the data API, with one HTTP session for all requests.

    It is an async context manager: the session is opened on entering,
    and closed on exiting. A pre-made session can also be provided instead,
    in which case it is not closed by the transport.
    """

    def __init__(
            self,
            *,
            settings: Optional[configuration.Settings] = None,
            session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__()
        self.settings = settings if settings is not None else configuration.Settings()
        self._session = session
        self._own_session = False

    async def __aenter__(self) -> "HTTPTransport":
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self._headers)
            self._own_session = True
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc_val: Optional[BaseException],
            exc_tb: Optional[types.TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._own_session:
            await self._session.close()
            self._session = None
            self._own_session = False

    @property
    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.settings.datasource.api_key is not None:
            headers['api-key'] = self.settings.datasource.api_key
        return headers

    async def _action(self, action: str, collection: str, **fields: Any) -> Any:
        if self._session is None:
            raise RuntimeError("The transport is not opened. Use `async with` or provide a session.")
        payload = dict(
            dataSource=self.settings.datasource.data_source,
            database=self.settings.datasource.database,
            collection=collection,
            **{key: val for key, val in fields.items() if val is not None},
        )
        return await api.post(
            url=f'/action/{action}',
            session=self._session,
            settings=self.settings,
            payload=payload,
            headers=self._headers,
            logger=logger,
        )

    async def insert_one(
            self,
            collection: str,
            document: bodies.RawDocument,
    ) -> None:
        await self._action('insertOne', collection, document=document)

    async def update_one(
            self,
            collection: str,
            where: Mapping[str, Any],
            update: Mapping[str, Any],
    ) -> int:
        result = await self._action('updateOne', collection, filter=where, update=update)
        return int(result.get('matchedCount', 0))

    async def find(
            self,
            collection: str,
            filter: Mapping[str, Any],
            *,
            projection: Optional[bodies.RawProjection] = None,
            sort: Optional[Mapping[str, int]] = None,
            skip: Optional[int] = None,
            limit: Optional[int] = None,
    ) -> List[bodies.RawDocument]:
        result = await self._action('find', collection, filter=filter, projection=projection,
                                    sort=sort, skip=skip, limit=limit)
        documents: List[bodies.RawDocument] = list(result.get('documents') or [])
        return documents
