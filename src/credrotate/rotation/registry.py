"""Provider registry for credential rotation backends.

Maps backend names to provider factories. A factory receives the
credential set of one environment and returns a ready provider; the
registry itself never holds credentials.
"""

import importlib
from collections.abc import Callable
from typing import TYPE_CHECKING

from credrotate.core.logging import get_logger
from credrotate.rotation.config import EnvironmentCredentials
from credrotate.rotation.errors import RotationValidationError
from credrotate.rotation.memory import MEMORY_BACKENDS
from credrotate.rotation.protocol import CredentialProvider
from credrotate.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from credrotate.config.settings import Settings

logger = get_logger(__name__)

ProviderFactory = Callable[[EnvironmentCredentials], CredentialProvider]

BUILTIN_BACKENDS = frozenset(MEMORY_BACKENDS)


class ProviderRegistry:
    """Registry of credential provider factories.

    Usage:
        registry = ProviderRegistry()
        registry.register("github-app", create_github_app_provider)

        credentials = load_environment_credentials("github-app", "prod")
        provider = registry.resolve("github-app", credentials)
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory, *, replace: bool = False) -> None:
        """Register a provider factory.

        Args:
            name: Backend name
            factory: Callable building a provider from environment credentials
            replace: Allow replacing an existing registration

        Raises:
            ValueError: If the name is taken and replace is false
        """
        if name in self._factories and not replace:
            raise ValueError(f"Backend already registered: {name}")

        self._factories[name] = factory
        logger.debug("backend_registered", backend=name, factory=getattr(factory, "__name__", repr(factory)))

    def unregister(self, name: str) -> bool:
        """Remove a backend.

        Returns:
            True if the backend was registered
        """
        return self._factories.pop(name, None) is not None

    def names(self) -> list[str]:
        """List registered backend names."""
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def resolve(self, name: str, credentials: EnvironmentCredentials | None = None) -> CredentialProvider:
        """Build the provider for a backend.

        Args:
            name: Backend name
            credentials: Credential set for the target environment

        Returns:
            A provider instance

        Raises:
            RotationValidationError: If the backend is not registered
            ConfigurationError: If the factory does not produce a provider
        """
        factory = self._factories.get(name)
        if factory is None:
            known = ", ".join(self.names()) or "none"
            raise RotationValidationError(
                f"Unknown backend {name!r}. Registered backends: {known}",
                field_name="backend",
            )

        if credentials is None:
            credentials = EnvironmentCredentials(backend=name, environment="")

        provider = factory(credentials)
        if not isinstance(provider, CredentialProvider):
            raise ConfigurationError(
                f"Factory for backend {name!r} returned {type(provider).__name__}, "
                "which does not implement CredentialProvider"
            )
        return provider

    @staticmethod
    def load(import_path: str) -> ProviderFactory:
        """Import a provider factory from a ``module:attribute`` path.

        Args:
            import_path: Import path, e.g. "mycompany.rotation.github:create_provider"

        Returns:
            The imported factory

        Raises:
            ConfigurationError: If the path is malformed or cannot be imported
        """
        module_name, sep, attribute = import_path.partition(":")
        if not sep or not module_name or not attribute:
            raise ConfigurationError(f"Invalid provider import path {import_path!r}; expected module:attribute")

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ConfigurationError(f"Cannot import provider module {module_name!r}: {e}") from e

        try:
            factory = getattr(module, attribute)
        except AttributeError as e:
            raise ConfigurationError(f"Module {module_name!r} has no attribute {attribute!r}") from e

        if not callable(factory):
            raise ConfigurationError(f"Provider factory {import_path!r} is not callable")
        return factory


def create_default_registry(settings: "Settings | None" = None) -> ProviderRegistry:
    """Create a registry with the built-in and configured backends.

    Args:
        settings: Settings providing configured factories (default: global settings)

    Returns:
        ProviderRegistry instance
    """
    if settings is None:
        from credrotate.config.settings import get_settings

        settings = get_settings()

    registry = ProviderRegistry()
    for name, factory in MEMORY_BACKENDS.items():
        registry.register(name, factory)

    for name, import_path in settings.providers.items():
        registry.register(name, ProviderRegistry.load(import_path), replace=True)
        logger.info("backend_configured", backend=name, import_path=import_path)

    return registry
