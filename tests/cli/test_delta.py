import json
import logging

import pytest
import yaml

POST = """
    schema:
      title: str
      data: bytes
      tags: [str]
      friends: [{type: objectid, ref: User}]
    loaded:
      _id: p1
      title: Hello
      tags: [a, b]
      friends: [u1, u2]
      __v: 3
"""


def test_noop(invoke, scenario):
    result = invoke(['delta', scenario(POST)])
    assert result.exit_code == 0
    assert yaml.safe_load(result.output) == {'noop': True}


def test_yaml_output(invoke, scenario):
    path = scenario(POST + """
    changes:
      - set: {path: title, value: New}
      - push: {path: tags, values: [c]}
    """)
    result = invoke(['delta', path])
    assert result.exit_code == 0
    assert yaml.safe_load(result.output) == {
        'where': {},
        'update': {'$set': {'title': 'New'}, '$push': {'tags': {'$each': ['c']}}, '$inc': {'__v': 1}},
        'version': ['INC'],
    }


def test_json_output(invoke, scenario):
    path = scenario(POST + """
    changes:
      - set: {path: data, value: ab}
      - pull: {path: tags, values: [a]}
    """)
    result = invoke(['delta', '-o', 'json', path])
    assert result.exit_code == 0
    assert json.loads(result.output) == {
        'where': {'__v': 3},
        'update': {
            '$set': {'data': {'$binary': {'base64': 'YWI=', 'subType': '00'}}},
            '$pull': {'tags': {'$in': ['a']}},
            '$inc': {'__v': 1},
        },
        'version': ['WHERE', 'INC'],
    }


@pytest.mark.parametrize('change, expected_update, expected_version', [
    ('unset: title', {'$unset': {'title': 1}}, []),
    ('unset: {path: title}', {'$unset': {'title': 1}}, []),
    ('increment', {'$inc': {'__v': 1}}, ['WHERE', 'INC']),
    ('pop: tags', {'$pop': {'tags': 1}, '$inc': {'__v': 1}}, ['WHERE', 'INC']),
    ('pop: {path: tags, index: 0}', {'$pop': {'tags': -1}, '$inc': {'__v': 1}}, ['WHERE', 'INC']),
    ('shift: tags', {'$pop': {'tags': -1}, '$inc': {'__v': 1}}, ['WHERE', 'INC']),
    ('add_to_set: {path: tags, values: [a, c]}',
     {'$addToSet': {'tags': {'$each': ['c']}}, '$inc': {'__v': 1}}, ['INC']),
    ('set: {path: tags, value: [x]}', {'$set': {'tags': ['x']}, '$inc': {'__v': 1}}, ['WHERE', 'INC']),
])
def test_changes(invoke, scenario, change, expected_update, expected_version):
    result = invoke(['delta', scenario(POST + f"""
    changes:
      - {change}
    """)])
    assert result.exit_code == 0
    outcome = yaml.safe_load(result.output)
    assert outcome['update'] == expected_update
    assert outcome['version'] == expected_version


def test_unversioned_schemas(invoke, scenario):
    result = invoke(['delta', scenario(POST + """
    options:
      version_key: false
    changes:
      - pull: {path: tags, values: [a]}
    """)])
    assert result.exit_code == 0
    assert yaml.safe_load(result.output) == {
        'where': {},
        'update': {'$pull': {'tags': {'$in': ['a']}}},
        'version': [],
    }


def test_unselected_versions(invoke, scenario):
    result = invoke(['delta', scenario(POST + """
    fields: title tags
    changes:
      - pull: {path: tags, values: [a]}
    """)])
    assert result.exit_code == 0
    assert yaml.safe_load(result.output)['where'] == {}


def test_divergence(invoke, scenario):
    result = invoke(['delta', scenario(POST + """
    populated:
      - {path: friends, limit: 1}
    changes:
      - set: {path: title, value: New}
      - set: {path: friends, value: [u3]}
    """)])
    assert result.exit_code == 1
    assert yaml.safe_load(result.output) == {'divergent': ['friends']}


def test_elemmatch_divergence(invoke, scenario):
    result = invoke(['delta', scenario("""
    schema:
      comments: [{text: str}]
    loaded:
      _id: p1
      comments: [{text: first}]
    fields:
      comments: {$elemMatch: {text: first}}
    changes:
      - set: {path: comments.0.text, value: changed}
    """)])
    assert result.exit_code == 1
    assert yaml.safe_load(result.output) == {'divergent': ['comments']}


@pytest.mark.parametrize('text, message', [
    (POST + "\n    changes: [{explode: title}]\n", "Unknown operation"),
    (POST + "\n    changes: [{push: {path: title, values: [x]}}]\n", "not an array"),
    (POST + "\n    changes: [{set: {path: title, value: x}, unset: tags}]\n", "one operation"),
    ("- just a list\n", "must be a YAML mapping"),
    ("schema: {title: nonsense}\n", "Invalid schema"),
])
def test_invalid_scenarios(invoke, scenario, text, message):
    result = invoke(['delta', scenario(text)])
    assert result.exit_code == 2
    assert message in result.output


def test_absent_scenario_files(invoke, tmp_path):
    result = invoke(['delta', str(tmp_path / 'absent.yaml')])
    assert result.exit_code == 2


@pytest.mark.parametrize('expected_level, options, envvars', [
    (logging.INFO, [], {}),
    (logging.WARNING, ['-q'], {}),
    (logging.WARNING, ['--quiet'], {}),
    (logging.WARNING, [], {'DOCMAP_DELTA_QUIET': 'true'}),
    (logging.DEBUG, ['-d'], {}),
    (logging.DEBUG, ['--verbose'], {}),
    (logging.DEBUG, [], {'DOCMAP_DELTA_VERBOSE': 'true'}),
], ids=[
    'default', 'opt-short-q', 'opt-long-quiet', 'env-quiet',
    'opt-short-d', 'opt-long-verbose', 'env-verbose',
])
def test_verbosity(invoke, scenario, expected_level, options, envvars):
    result = invoke(['delta'] + options + [scenario(POST)], env=envvars)
    assert result.exit_code == 0
    assert logging.getLogger().level == expected_level


def test_debug_logs_of_the_changes(invoke, scenario):
    path = scenario(POST + """
    changes:
      - set: {path: title, value: New}
    """)
    result = invoke(['delta', '--verbose', '--log-format=plain', path])
    assert result.exit_code == 0
    assert "Applied {'set': {'path': 'title', 'value': 'New'}}" in result.output
