"""
Data API errors.

The underlying client library (now, ``aiohttp``) can be replaced in the future.
We cannot rely on embedding its exceptions all over the code in the library.
Hence, we have our own hierarchy of exceptions for the data API errors.

Low-level errors, such as the network connectivity issues, SSL/HTTPS issues,
etc, are escalated from the client library as is, since they are related not
to the domain of the data API, but rather to the networking and encryption.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.

Some selected reasons of the API errors are made into their own classes,
so that they could be intercepted and handled in other places of the library
(e.g. the server-side errors are retried, the client-side errors are not).
All other reasons are raised as the base error class.

Note that the conflicts of the documents' versions are not the API errors:
the data API reports them as a successful update with no matched documents.
They are detected and raised by the models: see `docmap.errors.VersionError`.
"""
import collections.abc
import json
from typing import Any, Optional

import aiohttp
from typing_extensions import TypedDict


class RawErrorPayload(TypedDict, total=False):
    error: str
    error_code: str
    link: str


class APIError(Exception):

    def __init__(
            self,
            payload: Optional[RawErrorPayload],
            *,
            status: int,
    ) -> None:
        message = payload.get('error') if payload else None
        super().__init__(message, payload)
        self._status = status
        self._payload = payload

    @property
    def status(self) -> int:
        return self._status

    @property
    def code(self) -> Optional[str]:
        return self._payload.get('error_code') if self._payload else None

    @property
    def message(self) -> Optional[str]:
        return self._payload.get('error') if self._payload else None


class APIUnauthorizedError(APIError):
    pass


class APIForbiddenError(APIError):
    pass


class APINotFoundError(APIError):
    pass


class APIConflictError(APIError):
    pass


class APIServerError(APIError):
    pass


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Check for specialised data API errors, and raise with extended information.
    """
    if response.status >= 400:

        # Read the response's body before it is closed by raise_for_status().
        payload: Optional[RawErrorPayload]
        try:
            payload = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
            payload = None

        # Better be safe: only the known error fields are kept, nothing else is dumped.
        if not isinstance(payload, collections.abc.Mapping) or 'error' not in payload:
            payload = None
        else:
            payload = RawErrorPayload(**{key: val for key, val in payload.items()
                                         if key in RawErrorPayload.__annotations__})

        cls = (
            APIUnauthorizedError if response.status == 401 else
            APIForbiddenError if response.status == 403 else
            APINotFoundError if response.status == 404 else
            APIConflictError if response.status == 409 else
            APIServerError if response.status >= 500 else
            APIError
        )

        # Raise the library-specific error while keeping the original error in scope.
        # This call also closes the response's body, so it cannot be read afterwards.
        try:
            response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise cls(payload, status=response.status) from e


async def parse_response(
        response: aiohttp.ClientResponse,
) -> Any:
    """
    Check the response for errors, and either raise or returned the parsed data.
    """
    await check_response(response)
    payload = await response.json()
    return payload
