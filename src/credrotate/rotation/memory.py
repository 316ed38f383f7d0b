"""In-memory credential providers for development and testing.

These providers hold credentials in process memory and implement the
rotation primitives with the same observable behaviour a real backend
has: a per-target cap on live credentials, idempotent switch-in and
revocation of known identifiers only. Failures and delays can be
injected per step to exercise the engine's failure handling.

Example:
    provider = InMemoryCredentialProvider.for_backend(BackendKind.SECRET_STORE)
    old = provider.seed("app/db-password")

    result = await RotationEngine(provider).rotate(
        RotationRequest(environment="dev", target="app/db-password", old_credential_id=old.identifier)
    )
"""

import asyncio
import secrets
import string
from collections import Counter
from collections.abc import Callable, Mapping

from credrotate.rotation.config import EnvironmentCredentials
from credrotate.rotation.errors import (
    CreateFailedError,
    RevokeFailedError,
    SwitchFailedError,
)
from credrotate.rotation.generator import SecretGenerator
from credrotate.rotation.protocol import BackendKind, ProviderInfo
from credrotate.rotation.types import (
    AccessKeyPair,
    Credential,
    CredentialKind,
    CredentialStatus,
    Encoding,
    GenerationSpec,
    RotationStep,
)

# Cloud IAM services typically allow two access keys per user
DEFAULT_MAX_CREDENTIALS_PER_TARGET = 2

ACCESS_KEY_ID_PREFIX = "AKIA"
ACCESS_KEY_ID_LENGTH = 20
SECRET_ACCESS_KEY_LENGTH = 40
TOKEN_LENGTH = 40

_BACKEND_NAMES: dict[BackendKind, str] = {
    BackendKind.TOKEN_ISSUER: "memory-token",
    BackendKind.IAM_KEY_STORE: "memory-iam",
    BackendKind.SECRET_STORE: "memory-secret-store",
    BackendKind.DATABASE_PASSWORD_STORE: "memory-database",
}


class InMemoryCredentialProvider:
    """Credential provider backed by a dictionary.

    Attributes:
        calls: Number of calls per rotation step
        failures: Exceptions to raise per step
        delays: Seconds to sleep per step before acting
    """

    def __init__(
        self,
        info: ProviderInfo,
        *,
        max_credentials_per_target: int = DEFAULT_MAX_CREDENTIALS_PER_TARGET,
        failures: Mapping[RotationStep, Exception] | None = None,
        delays: Mapping[RotationStep, float] | None = None,
        verify_result: bool = True,
        generator: SecretGenerator | None = None,
    ):
        """Initialize the provider.

        Args:
            info: Capability declaration to expose
            max_credentials_per_target: Live credentials allowed per target
            failures: Exceptions to raise per step
            delays: Seconds to sleep per step (for timeout testing)
            verify_result: Value returned by verify for known credentials
            generator: Generator for backend-minted values
        """
        self._info = info
        self.max_credentials_per_target = max_credentials_per_target
        self.failures: dict[RotationStep, Exception] = dict(failures or {})
        self.delays: dict[RotationStep, float] = dict(delays or {})
        self.verify_result = verify_result
        self._generator = generator or SecretGenerator()

        self._store: dict[str, dict[str, Credential]] = {}
        self._published: dict[str, str] = {}
        self.calls: Counter[RotationStep] = Counter()

    @classmethod
    def for_backend(
        cls,
        backend: BackendKind,
        name: str | None = None,
        environments: tuple[str, ...] | None = None,
        **kwargs,
    ) -> "InMemoryCredentialProvider":
        """Create a provider with the default capabilities of a backend variant.

        Args:
            backend: Backend variant to emulate
            name: Provider name (defaults to the built-in memory backend name)
            environments: Accepted environments (defaults to dev, stage, prod)
            **kwargs: Passed to the constructor, or ProviderInfo overrides
                when prefixed with ``info_`` (e.g. ``info_supports_verify=False``)

        Returns:
            InMemoryCredentialProvider instance
        """
        overrides = {key[5:]: kwargs.pop(key) for key in list(kwargs) if key.startswith("info_")}
        if environments is not None:
            overrides["environments"] = environments
        info = ProviderInfo.for_backend(name or _BACKEND_NAMES[backend], backend, **overrides)
        return cls(info, **kwargs)

    @property
    def info(self) -> ProviderInfo:
        """Get the provider's capability declaration."""
        return self._info

    # ----------------------------------------------------------------
    # Rotation primitives
    # ----------------------------------------------------------------

    async def create(self, target: str, new_value: str | None = None) -> Credential:
        """Mint a new credential for a target."""
        await self._enter(RotationStep.CREATE)

        if self._info.caller_generates_value and not new_value:
            raise CreateFailedError(f"{self._info.name} requires a caller-generated value")

        live = self._store.setdefault(target, {})
        if len(live) >= self.max_credentials_per_target:
            raise CreateFailedError(
                f"Target already holds {len(live)} credentials "
                f"(limit {self.max_credentials_per_target})"
            )

        identifier, value = self._mint(new_value)
        credential = Credential(
            kind=self._info.credential_kind,
            target=target,
            identifier=identifier,
            value=value,
            status=CredentialStatus.ACTIVE,
        )
        live[identifier] = credential
        if not self._info.requires_switch_in:
            self._published[target] = identifier
        return credential

    async def verify(self, credential: Credential) -> bool:
        """Check that the credential exists and holds the stored value."""
        await self._enter(RotationStep.VERIFY)

        stored = self._store.get(credential.target, {}).get(credential.identifier or "")
        if stored is None or stored.value != credential.value:
            return False
        return self.verify_result

    async def switch_in(self, credential: Credential) -> None:
        """Mark the credential as the one dependents use."""
        await self._enter(RotationStep.SWITCH_IN)

        if credential.identifier not in self._store.get(credential.target, {}):
            raise SwitchFailedError(f"Unknown credential {credential.identifier!r}")
        self._published[credential.target] = credential.identifier

    async def revoke(self, credential: Credential) -> None:
        """Delete a credential.

        Without an identifier, every live credential for the target except
        the published one is deleted.
        """
        await self._enter(RotationStep.REVOKE)

        live = self._store.get(credential.target, {})
        if credential.identifier is None:
            published = self._published.get(credential.target)
            for identifier in [i for i in live if i != published]:
                del live[identifier]
            return

        if credential.identifier not in live:
            raise RevokeFailedError(f"Unknown credential {credential.identifier!r}")
        if credential.identifier == self._published.get(credential.target):
            raise RevokeFailedError(f"Credential {credential.identifier!r} is still in use")
        del live[credential.identifier]

    # ----------------------------------------------------------------
    # Inspection helpers
    # ----------------------------------------------------------------

    def seed(self, target: str, value: str | None = None) -> Credential:
        """Store a live, published credential as if created earlier.

        Args:
            target: Backend locator
            value: Value to store (minted like create when omitted)

        Returns:
            The stored credential
        """
        if value is None and self._info.caller_generates_value:
            value = self._generator.generate(min_length=self._info.min_secret_length)

        identifier, minted = self._mint(value)
        credential = Credential(
            kind=self._info.credential_kind,
            target=target,
            identifier=identifier,
            value=minted,
            status=CredentialStatus.ACTIVE,
        )
        self._store.setdefault(target, {})[identifier] = credential
        self._published[target] = identifier
        return credential

    def live_credentials(self, target: str) -> list[Credential]:
        """List credentials that still exist for a target."""
        return list(self._store.get(target, {}).values())

    def published(self, target: str) -> str | None:
        """Get the identifier dependents currently use for a target."""
        return self._published.get(target)

    # ----------------------------------------------------------------
    # Internals
    # ----------------------------------------------------------------

    async def _enter(self, step: RotationStep) -> None:
        self.calls[step] += 1
        delay = self.delays.get(step)
        if delay:
            await asyncio.sleep(delay)
        failure = self.failures.get(step)
        if failure is not None:
            raise failure

    def _mint(self, new_value: str | None) -> tuple[str, str | AccessKeyPair]:
        if self._info.credential_kind == CredentialKind.ACCESS_KEY_PAIR:
            alphabet = string.ascii_uppercase + string.digits
            suffix = "".join(
                secrets.choice(alphabet)
                for _ in range(ACCESS_KEY_ID_LENGTH - len(ACCESS_KEY_ID_PREFIX))
            )
            access_key_id = ACCESS_KEY_ID_PREFIX + suffix
            secret = self._generator.generate(GenerationSpec(length=SECRET_ACCESS_KEY_LENGTH))
            return access_key_id, AccessKeyPair(access_key_id, secret)

        identifier = f"{self._info.name}-{secrets.token_hex(6)}"
        if new_value is not None:
            return identifier, new_value
        return identifier, self._generator.generate(
            GenerationSpec(length=TOKEN_LENGTH, encoding=Encoding.HEX)
        )


def _memory_factory(
    backend: BackendKind,
) -> Callable[[EnvironmentCredentials], InMemoryCredentialProvider]:
    def factory(credentials: EnvironmentCredentials) -> InMemoryCredentialProvider:
        return InMemoryCredentialProvider.for_backend(backend)

    factory.__name__ = f"create_{_BACKEND_NAMES[backend].replace('-', '_')}_provider"
    return factory


MEMORY_BACKENDS: dict[str, Callable[[EnvironmentCredentials], InMemoryCredentialProvider]] = {
    name: _memory_factory(backend) for backend, name in _BACKEND_NAMES.items()
}
