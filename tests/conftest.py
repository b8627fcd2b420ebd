import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from docmap.models.registries import Registry, set_default_registry
from docmap.structs.configuration import Settings
from docmap.structs.schemas import Ref, Schema


# Make all tests in this directory and below asyncio-compatible by default.
# Due to how pytest-async checks for these markers, they should be added as early as possible.
@pytest.hookimpl(hookwrapper=True)
def pytest_pycollect_makeitem(collector, name, obj):
    if collector.funcnamefilter(name) and asyncio.iscoroutinefunction(obj):
        pytest.mark.asyncio(obj)
    yield


@pytest.fixture()
def settings():
    settings = Settings()
    settings.networking.error_backoffs = [0, 0]  # retry, but do not sleep in tests
    return settings


@pytest.fixture()
def transport():
    """ A fake store: nothing is stored, the updates match one document by default. """
    return Mock(
        spec_set=['insert_one', 'update_one', 'find'],
        insert_one=AsyncMock(return_value=None),
        update_one=AsyncMock(return_value=1),
        find=AsyncMock(return_value=[]),
    )


@pytest.fixture()
def registry(transport, settings):
    return Registry(transport=transport, settings=settings)


@pytest.fixture(autouse=True)
def _clean_default_registry():
    set_default_registry(Registry())
    yield
    set_default_registry(Registry())


@pytest.fixture()
def User(registry):
    return registry.model('User', {'name': str})


@pytest.fixture()
def Post(registry, User):
    return registry.model('Post', {
        'title': str,
        'tags': [str],
        'author': Ref('User'),
        'friends': [Ref('User')],
        'comments': [{'text': str, 'by': Ref('User')}],
        'meta': {'votes': int},
    })


@pytest.fixture()
def post_schema():
    return Schema({
        'title': str,
        'tags': [str],
        'author': Ref('User'),
        'friends': [Ref('User')],
        'comments': [{'text': str, 'by': Ref('User')}],
        'meta': {'votes': int},
        'data': bytes,
        'count': {'type': int, 'default': 0},
    })
