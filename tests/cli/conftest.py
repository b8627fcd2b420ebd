import functools
import logging
import textwrap

import click.testing
import pytest

from docmap.cli import main
from docmap.engines.loggers import _DocmapStreamHandler


@pytest.fixture(autouse=True)
def _restore_logging():
    logger = logging.getLogger()
    level = logger.level
    handlers = logger.handlers[:]
    yield
    logger.handlers[:] = [h for h in handlers if not isinstance(h, _DocmapStreamHandler)]
    logger.setLevel(level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def scenario(tmp_path):
    """ A factory of the scenario files: from the YAML text to the file path. """
    counter = iter(range(1000))

    def make(text: str) -> str:
        path = tmp_path / f'scenario{next(counter)}.yaml'
        path.write_text(textwrap.dedent(text))
        return str(path)

    return make
