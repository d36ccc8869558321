from unittest.mock import Mock

import pytest

from credkeep.application.credential_store import CredentialStore
from credkeep.application.credentials_manager import CredentialsManager
from credkeep.config.config import Settings
from credkeep.domain.secure_storage import SecureStorage
from credkeep.domain.token_endpoint import TokenEndpointClient
from credkeep.infrastructure.di_container import Container, build_container, build_credentials_manager
from credkeep.infrastructure.file_storage import FileSecureStorage
from credkeep.infrastructure.oauth_client import OAuthTokenClient


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        CREDKEEP_STORAGE_DIR=tmp_path / "vault",
        CREDKEEP_STORE_KEY="profile",
        OAUTH_DOMAIN="samples.example.com",
        OAUTH_CLIENT_ID="CLIENT_ID",
    )


def test_default_graph_is_built_from_settings(config, tmp_path):
    container = build_container(config=config)

    manager = build_credentials_manager(container)
    client = container.resolve(TokenEndpointClient)
    storage = container.resolve(SecureStorage)

    assert isinstance(manager, CredentialsManager)
    assert manager.store_key == "profile"
    assert isinstance(client, OAuthTokenClient)
    assert client.token_url == "https://samples.example.com/oauth/token"
    assert isinstance(storage, FileSecureStorage)
    assert storage.directory == tmp_path / "vault"


def test_overrides_replace_collaborators(config):
    token_client = Mock(spec=TokenEndpointClient)

    container = build_container({TokenEndpointClient: token_client}, config=config)

    assert container.resolve(TokenEndpointClient) is token_client
    assert isinstance(container.resolve(CredentialStore), CredentialStore)


def test_token_client_requires_endpoint(tmp_path):
    config = Settings(CREDKEEP_STORAGE_DIR=tmp_path, OAUTH_DOMAIN=None, OAUTH_TOKEN_URL=None)
    container = build_container(config=config)

    with pytest.raises(ValueError):
        container.resolve(TokenEndpointClient)


def test_resolve_unknown_service_raises():
    with pytest.raises(KeyError):
        Container().resolve(CredentialsManager)


def test_register_requires_factory_or_instance():
    with pytest.raises(ValueError):
        Container().register(CredentialsManager)
