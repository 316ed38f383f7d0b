"""Credential provider protocol.

This module defines the capability interface every backend (token issuer,
IAM key store, secret store, database password store) implements, and the
capability declaration the engine reads before touching a backend.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from credrotate.rotation.generator import (
    DATABASE_PASSWORD_MIN_LENGTH,
    GENERIC_SECRET_MIN_LENGTH,
)
from credrotate.rotation.types import (
    Credential,
    CredentialKind,
    GenerationSpec,
)
from credrotate.utils.exceptions import ConfigurationError

DEFAULT_ENVIRONMENTS = frozenset({"dev", "stage", "prod"})


class BackendKind(str, Enum):
    """Backend variants a credential provider can implement."""

    TOKEN_ISSUER = "token_issuer"
    IAM_KEY_STORE = "iam_key_store"
    SECRET_STORE = "secret_store"
    DATABASE_PASSWORD_STORE = "database_password_store"


_BACKEND_DEFAULTS: dict[BackendKind, dict[str, Any]] = {
    BackendKind.TOKEN_ISSUER: {
        "credential_kind": CredentialKind.OPAQUE_TOKEN,
        "caller_generates_value": False,
        "min_secret_length": GENERIC_SECRET_MIN_LENGTH,
    },
    BackendKind.IAM_KEY_STORE: {
        "credential_kind": CredentialKind.ACCESS_KEY_PAIR,
        "caller_generates_value": False,
        "min_secret_length": GENERIC_SECRET_MIN_LENGTH,
    },
    BackendKind.SECRET_STORE: {
        "credential_kind": CredentialKind.GENERIC_SECRET,
        "caller_generates_value": True,
        "min_secret_length": GENERIC_SECRET_MIN_LENGTH,
    },
    BackendKind.DATABASE_PASSWORD_STORE: {
        "credential_kind": CredentialKind.PASSWORD,
        "caller_generates_value": True,
        "min_secret_length": DATABASE_PASSWORD_MIN_LENGTH,
    },
}


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    """Static capability declaration of a credential provider.

    Attributes:
        name: Unique provider name (e.g., "github-app-token")
        backend: Backend variant
        credential_kind: Kind of credential the backend issues
        environments: Closed set of environments this provider accepts
        supports_verify: Whether the backend can prove a new credential works
        requires_switch_in: Whether dependents must be updated after create
        caller_generates_value: Whether create expects a pre-generated value
        min_secret_length: Minimum generated value length the backend accepts
            (at least 8, or 12 for database password stores)
        default_generation: Generation parameters used when the request has none
    """

    name: str
    backend: BackendKind
    credential_kind: CredentialKind
    environments: frozenset[str] = DEFAULT_ENVIRONMENTS
    supports_verify: bool = True
    requires_switch_in: bool = True
    caller_generates_value: bool = False
    min_secret_length: int = GENERIC_SECRET_MIN_LENGTH
    default_generation: GenerationSpec | None = None

    def __post_init__(self) -> None:
        floor = _BACKEND_DEFAULTS[self.backend]["min_secret_length"]
        if self.min_secret_length < floor:
            raise ConfigurationError(
                f"{self.name}: min_secret_length {self.min_secret_length} is below "
                f"the {self.backend.value} floor of {floor}"
            )

    @classmethod
    def for_backend(cls, name: str, backend: BackendKind, **overrides: Any) -> "ProviderInfo":
        """Build provider info with the defaults of a backend variant.

        Args:
            name: Provider name
            backend: Backend variant
            **overrides: Fields that differ from the backend defaults

        Returns:
            ProviderInfo for the backend

        Raises:
            ConfigurationError: If min_secret_length is below the backend floor
        """
        values = dict(_BACKEND_DEFAULTS[backend])
        if "environments" in overrides:
            overrides["environments"] = frozenset(overrides["environments"])
        values.update(overrides)
        return cls(name=name, backend=backend, **values)


@runtime_checkable
class CredentialProvider(Protocol):
    """Protocol for backend-specific execution of the rotation primitives.

    Implementations wrap a provider SDK or API. They must not perform
    backend I/O in their constructor; any retry policy belongs inside the
    individual methods, since only the backend knows whether a primitive
    is safe to repeat.

    Example implementation:
        class GitHubAppTokenProvider:
            @property
            def info(self) -> ProviderInfo:
                return ProviderInfo.for_backend("github-app", BackendKind.TOKEN_ISSUER)

            async def create(self, target, new_value=None) -> Credential:
                token = await self._client.create_installation_token(target)
                return Credential(
                    kind=CredentialKind.OPAQUE_TOKEN,
                    target=target,
                    identifier=token.id,
                    value=token.token,
                    status=CredentialStatus.ACTIVE,
                )
            ...
    """

    @property
    def info(self) -> ProviderInfo:
        """Get the provider's capability declaration.

        Returns:
            ProviderInfo describing backend, environments and capabilities.
        """
        ...

    async def create(self, target: str, new_value: str | None = None) -> Credential:
        """Mint a new credential at the backend.

        Args:
            target: Backend-specific locator
            new_value: Pre-generated value for backends that take one

        Returns:
            The created credential (status pending or active)

        Raises:
            CreateFailedError: If the backend rejects the request
        """
        ...

    async def verify(self, credential: Credential) -> bool:
        """Prove that a new credential is usable.

        Only called when ``info.supports_verify`` is true.

        Args:
            credential: The newly created credential

        Returns:
            True if the credential works against the backend
        """
        ...

    async def switch_in(self, credential: Credential) -> None:
        """Publish a new credential to its dependents.

        Must be idempotent: repeating the call with the same credential has
        no additional effect.

        Args:
            credential: The verified credential

        Raises:
            SwitchFailedError: If publishing fails
        """
        ...

    async def revoke(self, credential: Credential) -> None:
        """Destroy or retire the previous credential.

        Args:
            credential: The credential being replaced

        Raises:
            RevokeFailedError: If the backend does not retire the credential
        """
        ...
