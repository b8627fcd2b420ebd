import functools
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, TextIO

import click
import yaml

from docmap.clients import api
from docmap.engines import loggers
from docmap.structs import arrays, deltas, documents, schemas, versions

logger = logging.getLogger(__name__)

_ARRAY_OPERATIONS = ('push', 'add_to_set', 'pull', 'pop', 'shift')


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='docmap')
@click.group(name='docmap', context_settings=dict(
    auto_envvar_prefix='DOCMAP',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-o', '--output', type=click.Choice(['yaml', 'json']), default='yaml')
@click.argument('scenario', type=click.File('r'))
def delta(
        scenario: TextIO,
        output: str,
) -> None:
    """
    Show the update for the changes of a document, as described in a YAML file.

    The scenario declares the ``schema``, the ``loaded`` document, optionally
    the ``fields`` projection and the ``populated`` paths, and the ``changes``
    to apply: ``set``, ``unset``, ``push``, ``add_to_set``, ``pull``, ``pop``,
    ``shift``, ``increment``. Nothing is sent anywhere.
    """
    spec = yaml.safe_load(scenario) or {}
    if not isinstance(spec, Mapping):
        raise click.UsageError("The scenario must be a YAML mapping.")

    doc = load_scenario(spec)
    outcome = deltas.compute_delta(doc, doc.get_dirty_records(), doc.version)
    result = render_outcome(outcome)

    if output == 'json':
        click.echo(json.dumps(api.encode_json(result), indent=2, default=str))
    else:
        click.echo(yaml.safe_dump(result, sort_keys=False), nl=False)

    if isinstance(outcome, deltas.DivergenceFailure):
        raise click.exceptions.Exit(1)


def load_scenario(spec: Mapping[str, Any]) -> documents.Document:
    """ Build a loaded document from the scenario, and apply the scenario's changes. """
    try:
        schema = schemas.Schema(spec.get('schema') or {}, **(spec.get('options') or {}))
    except TypeError as e:
        raise click.UsageError(f"Invalid schema: {e}") from e

    doc = documents.Document(spec.get('loaded') or {}, schema=schema,
                             fields=spec.get('fields'), is_new=False)

    for populated in spec.get('populated') or []:
        options = documents.PopulateOptions(**populated)
        ids = doc.get_values(options.path)
        doc.set_populated(documents.PopulationMeta(path=options.path, ids=ids, options=options))

    for change in spec.get('changes') or []:
        apply_change(doc, change)
        logger.debug(f"Applied {change!r}; modified paths: {doc.modified_paths}")

    return doc


def apply_change(doc: documents.Document, change: Any) -> None:
    if change == 'increment' or (isinstance(change, Mapping) and 'increment' in change):
        doc.version = versions.VersionFlags.ALL
        return

    if not isinstance(change, Mapping) or len(change) != 1:
        raise click.UsageError(f"A change must be a mapping with one operation: {change!r}")

    (op, args), = change.items()
    if op == 'unset':
        doc.unset(args['path'] if isinstance(args, Mapping) else args)
    elif op == 'set':
        doc.set(args['path'], args.get('value'))
    elif op in _ARRAY_OPERATIONS:
        path = args['path'] if isinstance(args, Mapping) else args
        array = doc.get(path)
        if not isinstance(array, arrays.TrackedArray):
            raise click.UsageError(f"The path {path!r} is not an array: cannot {op} it.")
        if op == 'pop':
            array.pop(args.get('index', -1) if isinstance(args, Mapping) else -1)
        elif op == 'shift':
            array.shift()
        else:
            values: List[Any] = list(args.get('values') or [])
            getattr(array, op)(*values)
    else:
        raise click.UsageError(f"Unknown operation {op!r}.")


def render_outcome(outcome: deltas.DeltaOutcome) -> Dict[str, Any]:
    if outcome is None:
        return {'noop': True}
    elif isinstance(outcome, deltas.DivergenceFailure):
        return {'divergent': list(outcome.paths)}
    else:
        return {
            'where': outcome.where,
            'update': outcome.update,
            'version': [flag.name for flag in versions.VersionFlags
                        if flag in outcome.version and flag is not versions.VersionFlags.ALL],
        }
