import aiohttp.web
import pytest
from aiohttp.test_utils import TestServer

from docmap.clients.transport import HTTPTransport


@pytest.fixture()
def requests():
    """ All requests to the fake data API: (action, lowercased headers, payload). """
    return []


@pytest.fixture()
def responses():
    """
    Canned responses of the fake data API per action: lists of (status, payload).

    They are served in order; the last one is repeated for all further requests.
    The payload can be a string to respond with a non-JSON body.
    """
    return {}


@pytest.fixture()
async def server(settings, requests, responses):

    async def handler(request: aiohttp.web.Request) -> aiohttp.web.Response:
        action = request.match_info['action']
        headers = {key.lower(): val for key, val in request.headers.items()}
        requests.append((action, headers, await request.json()))
        queue = responses.setdefault(action, [(200, {})])
        status, payload = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(payload, str):
            return aiohttp.web.Response(status=status, text=payload)
        return aiohttp.web.json_response(payload, status=status)

    app = aiohttp.web.Application()
    app.router.add_post('/action/{action}', handler)
    server = TestServer(app)
    await server.start_server()
    settings.datasource.server = str(server.make_url('/'))
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture()
async def http_transport(server, settings):
    async with HTTPTransport(settings=settings) as transport:
        yield transport
