import pytest

from docmap.structs.documents import Document
from docmap.structs.schemas import Schema
from docmap.structs.versions import INSERT, NONE, VersionFlags, apply_version, escalate


@pytest.fixture()
def schema():
    return Schema({'title': str, 'tags': [str]})


@pytest.fixture()
def doc(schema):
    return Document({'_id': 'p1', 'title': 'Hello', '__v': 7}, schema=schema, is_new=False)


def test_inserts_initialise_the_version(schema):
    doc = Document({'title': 'Hello'}, schema=schema)
    update = {'$set': {'title': 'Hello'}}
    apply_version(INSERT, update, doc, NONE)
    assert update == {'$set': {'title': 'Hello', '__v': 0}}
    assert doc.get_value('__v') == 0


def test_guarding(doc):
    where, update = {}, {}
    apply_version(where, update, doc, VersionFlags.WHERE)
    assert where == {'__v': 7}
    assert update == {}


def test_incrementing(doc):
    where, update = {}, {}
    apply_version(where, update, doc, VersionFlags.INC)
    assert where == {}
    assert update == {'$inc': {'__v': 1}}


def test_incrementing_accumulates(doc):
    where, update = {}, {'$inc': {'__v': 1, 'views': 1}}
    apply_version(where, update, doc, VersionFlags.ALL)
    assert where == {'__v': 7}
    assert update == {'$inc': {'__v': 2, 'views': 1}}


def test_no_versioning_if_not_selected(schema):
    doc = Document({'_id': 'p1', 'title': 'Hello'}, schema=schema, fields='title', is_new=False)
    where, update = {}, {}
    apply_version(where, update, doc, VersionFlags.ALL)
    assert where == {}
    assert update == {}


def test_no_versioning_if_no_version_key():
    doc = Document({'_id': 'p1'}, schema=Schema({}, version_key=False), is_new=False)
    where, update = {}, {}
    apply_version(where, update, doc, VersionFlags.ALL)
    apply_version(INSERT, update, doc, VersionFlags.ALL)
    assert where == {}
    assert update == {}


def test_custom_version_keys():
    doc = Document({'_id': 'p1', 'rev': 2}, schema=Schema({}, version_key='rev'), is_new=False)
    where, update = {}, {}
    apply_version(where, update, doc, VersionFlags.ALL)
    assert where == {'rev': 2}
    assert update == {'$inc': {'rev': 1}}


@pytest.mark.parametrize('flags, op, path, value, expected', [
    (NONE, '$push', 'tags', ['a'], VersionFlags.INC),
    (NONE, '$addToSet', 'tags', ['a'], VersionFlags.INC),
    (VersionFlags.WHERE, '$push', 'tags', ['a'], VersionFlags.ALL),
    (NONE, '$pull', 'tags', ['a'], VersionFlags.ALL),
    (NONE, '$pop', 'tags', 1, VersionFlags.ALL),
    (NONE, '$set', 'tags', ['a'], VersionFlags.ALL),
    (NONE, '$set', 'title', 'x', NONE),
    (NONE, '$unset', 'title', 1, NONE),
    (NONE, '$set', 'comments.3.text', 'x', VersionFlags.WHERE),
    (NONE, '$set', 'comments.3', {'text': 'x'}, VersionFlags.WHERE),
    (NONE, '$unset', 'comments.3', 1, VersionFlags.WHERE),
    (VersionFlags.INC, '$set', 'comments.3', {}, VersionFlags.ALL),
    (NONE, '$set', 'item3.text', 'x', NONE),
    (NONE, '$inc', 'views', 1, NONE),
    (VersionFlags.ALL, '$set', 'title', 'x', VersionFlags.ALL),
])
def test_escalation(flags, op, path, value, expected):
    assert escalate(flags, op, path, value) == expected
