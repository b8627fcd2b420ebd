"""
Low-level requests to the data API: retries, timeouts, and the JSON dialect.

The data API speaks the "extended JSON": plain JSON plus a few wrapped types,
which have no representation in JSON itself::

    {"$date": "2024-01-31T12:34:56.789Z"}
    {"$binary": {"base64": "AAEC", "subType": "00"}}
    {"$oid": "65b9f1c2a1b2c3d4e5f60718"}

The documents are converted to/from it right at the boundary, so that
the rest of the library deals with the native Python types only.
"""
import asyncio
import base64
import collections.abc
import datetime
import itertools
from typing import Any, Mapping, Optional

import aiohttp
import iso8601

from docmap.clients import errors
from docmap.structs import configuration


async def request(
        method: str,
        url: str,  # relative to the server root.
        *,
        session: aiohttp.ClientSession,
        settings: configuration.Settings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: Any,
) -> aiohttp.ClientResponse:

    if '://' not in url:
        url = settings.datasource.server.rstrip('/') + '/' + url.lstrip('/')

    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    backoffs = settings.networking.error_backoffs
    backoffs = backoffs if isinstance(backoffs, collections.abc.Iterable) else [backoffs]
    count = len(backoffs) + 1 if isinstance(backoffs, collections.abc.Sized) else None
    backoff: Optional[float]
    for retry, backoff in enumerate(itertools.chain(backoffs, [None]), start=1):
        idx = f"#{retry}/{count}" if count is not None else f"#{retry}"
        what = f"{method.upper()} {url}"
        try:
            if retry > 1:
                logger.debug(f"Request attempt {idx}: {what}")

            response = await session.request(
                method=method,
                url=url,
                json=encode_json(payload),
                headers=headers,
                timeout=timeout,
            )
            await errors.check_response(response)  # but do not parse it!

        except (aiohttp.ClientConnectionError, errors.APIServerError, asyncio.TimeoutError) as e:
            if backoff is None:  # i.e. the last or the only attempt.
                logger.error(f"Request attempt {idx} failed; escalating: {what} -> {e!r}")
                raise
            else:
                logger.error(f"Request attempt {idx} failed; will retry: {what} -> {e!r}")
                await asyncio.sleep(backoff)  # non-awakable! but still cancellable.
        else:
            if retry > 1:
                logger.debug(f"Request attempt {idx} succeeded: {what}")
            return response

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.


async def post(
        url: str,  # relative to the server root.
        *,
        session: aiohttp.ClientSession,
        settings: configuration.Settings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: Any,
) -> Any:
    response = await request(
        method='post',
        url=url,
        session=session,
        payload=payload,
        headers=headers,
        timeout=timeout,
        settings=settings,
        logger=logger,
    )
    async with response:
        return decode_json(await response.json())


def encode_json(value: Any) -> Any:
    """ Convert the native values into the extended JSON structures. """
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return {'$date': value.isoformat()}
    elif isinstance(value, (bytes, bytearray, memoryview)):
        encoded = base64.b64encode(bytes(value)).decode('ascii')
        return {'$binary': {'base64': encoded, 'subType': '00'}}
    elif isinstance(value, collections.abc.Mapping):
        return {key: encode_json(val) for key, val in value.items()}
    elif isinstance(value, (list, tuple)):
        return [encode_json(item) for item in value]
    else:
        return value


def decode_json(value: Any) -> Any:
    """ Convert the extended JSON structures into the native values. """
    if isinstance(value, collections.abc.Mapping):
        if len(value) == 1 and '$date' in value:
            date = value['$date']
            if isinstance(date, collections.abc.Mapping):  # {"$numberLong": "1706704496789"}
                date = int(date['$numberLong'])
            if isinstance(date, (int, float)):
                return datetime.datetime.fromtimestamp(date / 1000, tz=datetime.timezone.utc)
            return iso8601.parse_date(date)
        elif len(value) == 1 and '$binary' in value:
            binary = value['$binary']
            encoded = binary['base64'] if isinstance(binary, collections.abc.Mapping) else binary
            return base64.b64decode(encoded)
        elif len(value) == 1 and '$oid' in value:
            return value['$oid']
        else:
            return {key: decode_json(val) for key, val in value.items()}
    elif isinstance(value, list):
        return [decode_json(item) for item in value]
    else:
        return value
