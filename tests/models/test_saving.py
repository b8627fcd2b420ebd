import logging
import re

import pytest

from docmap.errors import DivergentArrayError, DocumentNotFoundError, VersionError
from docmap.models.registries import Registry
from docmap.structs.documents import PopulateOptions, PopulationMeta
from docmap.structs.versions import VersionFlags


@pytest.fixture()
def post(Post):
    return Post.hydrate({
        '_id': 'p1',
        'title': 'Hello',
        'tags': ['a', 'b'],
        'friends': ['u1', 'u2'],
        '__v': 3,
    })


def test_new_documents_get_ids(User):
    user = User({'name': 'John'})
    assert re.fullmatch(r'[0-9a-f]{24}', user.id)
    assert user.is_new


def test_new_documents_keep_their_ids(User):
    user = User({'_id': 'u1', 'name': 'John'})
    assert user.id == 'u1'


def test_loaded_documents_get_no_ids(User):
    user = User({'name': 'John'}, is_new=False)
    assert user.id is None


async def test_inserting(User, transport):
    user = User({'_id': 'u1', 'name': 'John'})
    result = await user.save()
    assert result is user
    transport.insert_one.assert_awaited_once_with('users', {'_id': 'u1', 'name': 'John', '__v': 0})
    assert not transport.update_one.called
    assert not user.is_new
    assert user['__v'] == 0


async def test_inserting_depopulates(Post, User, transport):
    user = User.hydrate({'_id': 'u1', 'name': 'John'})
    post = Post({'_id': 'p1', 'author': user, 'friends': [user]})
    await post.save()
    raw = transport.insert_one.call_args[0][1]
    assert raw['author'] == 'u1'
    assert raw['friends'] == ['u1']
    assert post['author'] is user


async def test_inserting_forgets_the_changes(Post):
    post = Post({'title': 'Hello', 'tags': []})
    post['tags'].push('a')
    post['title'] = 'New'
    await post.save()
    assert not post.is_modified()
    assert post['tags'].atomics == {}


async def test_creating(User, transport):
    users = await User.create({'name': 'John'}, {'name': 'Mary'})
    assert [user['name'] for user in users] == ['John', 'Mary']
    assert all(not user.is_new for user in users)
    assert transport.insert_one.await_count == 2


async def test_updating(post, transport):
    post['title'] = 'New'
    await post.save()
    transport.update_one.assert_awaited_once_with(
        'posts', {'_id': 'p1'}, {'$set': {'title': 'New'}})
    assert not post.is_modified()
    assert post['__v'] == 3


async def test_updating_with_atomics(post, transport):
    post['tags'].push('c')
    await post.save()
    transport.update_one.assert_awaited_once_with(
        'posts', {'_id': 'p1'}, {'$push': {'tags': {'$each': ['c']}}, '$inc': {'__v': 1}})
    assert post['__v'] == 4
    assert post['tags'].atomics == {}
    assert post.version == VersionFlags(0)


async def test_updating_with_guards(post, transport):
    post['tags'].pull('a')
    await post.save()
    transport.update_one.assert_awaited_once_with(
        'posts', {'__v': 3, '_id': 'p1'}, {'$pull': {'tags': {'$in': ['a']}}, '$inc': {'__v': 1}})
    assert post['__v'] == 4


async def test_nothing_to_update(post, transport):
    await post.save()
    assert not transport.update_one.called
    assert not transport.insert_one.called


async def test_nothing_to_update_when_the_version_is_unknown(Post, transport):
    post = Post.hydrate({'_id': 'p1', 'title': 'Hello'}, fields='title')
    post.increment()
    await post.save()
    assert not transport.update_one.called


async def test_incrementing(post, transport):
    result = post.increment()
    assert result is post
    await post.save()
    transport.update_one.assert_awaited_once_with(
        'posts', {'__v': 3, '_id': 'p1'}, {'$inc': {'__v': 1}})
    assert post['__v'] == 4
    assert post.version == VersionFlags(0)


async def test_version_conflicts(post, transport, caplog):
    caplog.set_level(logging.DEBUG)
    transport.update_one.return_value = 0
    post['tags'].pull('a')
    with pytest.raises(VersionError) as e:
        await post.save()
    assert e.value.model == 'Post'
    assert e.value.id == 'p1'
    assert e.value.version == 3
    assert post.is_modified('tags')
    assert post['__v'] == 3
    assert "changed since loaded" in caplog.text


async def test_absent_documents(post, transport):
    transport.update_one.return_value = 0
    post['title'] = 'New'
    with pytest.raises(DocumentNotFoundError) as e:
        await post.save()
    assert e.value.model == 'Post'
    assert e.value.id == 'p1'
    assert post.is_modified('title')


async def test_divergent_arrays(post, transport, caplog):
    options = PopulateOptions('friends', model='User', limit=1)
    post.set_populated(PopulationMeta(path='friends', ids=['u1', 'u2'], options=options))
    post['title'] = 'New'
    post['friends'] = ['u3']
    with pytest.raises(DivergentArrayError) as e:
        await post.save()
    assert e.value.paths == ['friends']
    assert not transport.update_one.called
    assert post.is_modified()
    assert "partially loaded arrays" in caplog.text


async def test_saving_with_no_transport():
    User = Registry().model('User', {'name': str})
    user = User({'name': 'John'})
    with pytest.raises(RuntimeError, match=r"No transport"):
        await user.save()
    assert user.is_new


async def test_unversioned_models(registry, settings, transport):
    settings.versioning.enabled = False
    Thing = registry.model('Thing', {'tags': [str]})
    thing = Thing.hydrate({'_id': 't1', 'tags': ['a'], '__v': 3})
    thing['tags'].pull('a')
    await thing.save()
    transport.update_one.assert_awaited_once_with(
        'things', {'_id': 't1'}, {'$pull': {'tags': {'$in': ['a']}}})
    assert thing['__v'] == 3
