"""Dependency injection container wiring credkeep services from settings."""
from __future__ import annotations

from functools import lru_cache
import inspect
from typing import Any, Callable, Dict, Type

from credkeep.application.credential_store import CredentialStore
from credkeep.application.credentials_manager import CredentialsManager
from credkeep.config import Settings, settings as app_settings
from credkeep.domain.secure_storage import SecureStorage
from credkeep.domain.token_endpoint import TokenEndpointClient
from credkeep.infrastructure.file_storage import FileSecureStorage
from credkeep.infrastructure.oauth_client import OAuthTokenClient

ServiceType = Type[Any]
Factory = Callable[["Container"], Any]


class Container:
    """Minimal service container supporting factories and instances."""

    def __init__(self) -> None:
        self._factories: Dict[ServiceType, Factory] = {}
        self._instances: Dict[ServiceType, Any] = {}

    def register(
        self,
        service: ServiceType,
        *,
        factory: Factory | None = None,
        instance: Any | None = None,
    ) -> None:
        if instance is not None:
            self._instances[service] = instance
            self._factories.pop(service, None)
            return
        if factory is None:
            raise ValueError("Either factory or instance must be provided.")
        self._factories[service] = factory
        self._instances.pop(service, None)

    def resolve(self, service: ServiceType) -> Any:
        if service in self._instances:
            return self._instances[service]
        try:
            factory = self._factories[service]
        except KeyError as exc:
            raise KeyError(f"No provider registered for {service!r}") from exc
        return factory(self)


def _build_token_client(config: Settings) -> OAuthTokenClient:
    token_url = config.token_url
    if not token_url:
        raise ValueError("Token endpoint is not configured; set OAUTH_DOMAIN or OAUTH_TOKEN_URL.")
    return OAuthTokenClient(
        token_url,
        config.OAUTH_CLIENT_ID,
        config.OAUTH_CLIENT_SECRET,
        timeout=config.OAUTH_REQUEST_TIMEOUT,
    )


def _register_defaults(container: Container, config: Settings) -> None:
    """Register the production service graph with the container."""
    container.register(SecureStorage, factory=lambda _c: FileSecureStorage(config.CREDKEEP_STORAGE_DIR))
    container.register(TokenEndpointClient, factory=lambda _c: _build_token_client(config))
    container.register(
        CredentialStore,
        factory=lambda c: CredentialStore(c.resolve(SecureStorage), config.CREDKEEP_STORE_KEY),
    )
    container.register(
        CredentialsManager,
        factory=lambda c: CredentialsManager(
            c.resolve(CredentialStore),
            c.resolve(TokenEndpointClient),
            min_ttl=config.CREDKEEP_MIN_TTL_SECONDS,
            deduplicate_renewals=config.CREDKEEP_DEDUPLICATE_RENEWALS,
        ),
    )


def _wrap_override(provider: Any) -> Factory:
    if inspect.isfunction(provider) or inspect.ismethod(provider):
        signature = inspect.signature(provider)
        if len(signature.parameters) == 0:
            return lambda _c, fn=provider: fn()
        return lambda c, fn=provider: fn(c)
    if isinstance(provider, type):
        return lambda _c, cls=provider: cls()
    return lambda _c, value=provider: value


def build_container(
    overrides: Dict[ServiceType, Any] | None = None,
    *,
    config: Settings | None = None,
) -> Container:
    """Create a new container with optional dependency overrides."""
    container = Container()
    _register_defaults(container, config or app_settings)

    if overrides:
        for service, provider in overrides.items():
            factory = _wrap_override(provider)
            if isinstance(provider, (type,)) or inspect.isfunction(provider) or inspect.ismethod(provider):
                container.register(service, factory=factory)
            else:
                container.register(service, instance=factory(container))

    return container


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Return a cached container instance for application use."""
    return build_container()


def build_credentials_manager(container: Container | None = None) -> CredentialsManager:
    """Resolve a :class:`CredentialsManager` from ``container`` or the shared one."""
    return (container or get_container()).resolve(CredentialsManager)


__all__ = ["Container", "build_container", "get_container", "build_credentials_manager"]
