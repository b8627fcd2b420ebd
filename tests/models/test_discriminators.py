import pytest

from docmap.errors import DiscriminatorError
from docmap.structs.schemas import Schema, SchemaType


@pytest.fixture()
def Event(registry):
    return registry.model('Event', {'time': str})


@pytest.fixture()
def Click(Event):
    return Event.discriminator('Click', {'url': str})


def test_submodels(registry, Event, Click):
    assert issubclass(Click, Event)
    assert Click.model_name == 'Click'
    assert Click.collection == 'events'
    assert registry.get('Click') is Click
    assert Event.discriminators == {'Click': Click}
    assert Click.discriminators == {}


def test_submodel_schemas(Event, Click):
    assert Click.schema.path('time').type is SchemaType.STRING
    assert Click.schema.path('url').type is SchemaType.STRING
    assert Click.schema.path('__t').default == 'Click'
    assert Event.schema.path('url') is None
    assert Click.schema.discriminator_mapping.value == 'Click'
    assert not Click.schema.discriminator_mapping.is_root
    assert Event.schema.discriminator_mapping.is_root


def test_new_documents_are_tagged(Click):
    click = Click({'url': '/home'})
    assert click['__t'] == 'Click'


def test_hydrating_via_the_base_model(Event, Click):
    event = Event.hydrate({'_id': 'e1', '__t': 'Click', 'url': '/home'})
    assert type(event) is Click
    assert not event.is_new


@pytest.mark.parametrize('raw', [
    {'_id': 'e1'},
    {'_id': 'e1', '__t': None},
    {'_id': 'e1', '__t': 'Unknown'},
])
def test_hydrating_of_untagged_documents(Event, Click, raw):
    event = Event.hydrate(raw)
    assert type(event) is Event


async def test_finding_via_submodels(Click, transport):
    transport.find.return_value = [{'_id': 'e1', '__t': 'Click'}]
    clicks = await Click.find({'url': '/home'})
    transport.find.assert_awaited_once_with(
        'events', {'url': '/home', '__t': 'Click'},
        projection=None, sort=None, skip=None, limit=None)
    assert type(clicks[0]) is Click


async def test_finding_via_the_base_model(Event, Click, transport):
    transport.find.return_value = [{'_id': 'e1', '__t': 'Click'}, {'_id': 'e2'}]
    events = await Event.find()
    transport.find.assert_awaited_once_with(
        'events', {}, projection=None, sort=None, skip=None, limit=None)
    assert [type(event) for event in events] == [Click, Event]


async def test_saving_of_submodels(Click, transport):
    click = Click({'_id': 'e1', 'url': '/home'})
    await click.save()
    transport.insert_one.assert_awaited_once_with(
        'events', {'_id': 'e1', 'url': '/home', '__t': 'Click', '__v': 0})


def test_several_discriminators(Event, Click):
    View = Event.discriminator('View', Schema({'page': str}))
    assert Event.discriminators == {'Click': Click, 'View': View}
    assert View.schema.path('url') is None


def test_duplicate_discriminators(Event, Click):
    with pytest.raises(DiscriminatorError, match=r"already exists"):
        Event.discriminator('Click', {'other': str})


def test_discriminators_of_submodels(Click):
    with pytest.raises(DiscriminatorError, match=r"root model"):
        Click.discriminator('DoubleClick', {'delay': int})


def test_discriminator_keys_in_schemas(Event):
    with pytest.raises(DiscriminatorError, match=r"cannot have field"):
        Event.discriminator('Click', {'__t': str})


def test_custom_options_of_discriminators(Event):
    with pytest.raises(DiscriminatorError, match=r"not customizable"):
        Event.discriminator('Click', Schema({'url': str}, version_key='rev'))
