import docmap


async def test_declared_public_interface_and_promised_defaults():
    settings = docmap.Settings()
    assert settings.networking.request_timeout == 300
    assert settings.networking.connect_timeout is None
    assert settings.networking.error_backoffs == (1, 1, 2, 3, 5)
    assert settings.datasource.server == 'http://localhost:8080'
    assert settings.datasource.data_source == 'default'
    assert settings.datasource.database == 'test'
    assert settings.datasource.api_key is None
    assert settings.versioning.enabled == True


async def test_settings_are_not_shared():
    settings1 = docmap.Settings()
    settings2 = docmap.Settings()
    settings1.versioning.enabled = False
    settings1.datasource.database = 'other'
    assert settings2.versioning.enabled == True
    assert settings2.datasource.database == 'test'


async def test_settings_of_registries():
    settings = docmap.Settings()
    registry = docmap.Registry(settings=settings)
    assert registry.settings is settings
