"""Contract tests for credential providers, run against every in-memory backend."""

import re

import pytest

from credrotate.rotation.config import EnvironmentCredentials
from credrotate.rotation.errors import CreateFailedError, RevokeFailedError, SwitchFailedError
from credrotate.rotation.generator import SecretGenerator
from credrotate.rotation.memory import MEMORY_BACKENDS, InMemoryCredentialProvider
from credrotate.rotation.protocol import BackendKind, CredentialProvider, ProviderInfo
from credrotate.rotation.types import (
    AccessKeyPair,
    Credential,
    CredentialKind,
    CredentialStatus,
    GenerationSpec,
    RotationStep,
)
from credrotate.utils.exceptions import ConfigurationError

TARGET = "app/service-credential"


async def create_for(provider: InMemoryCredentialProvider, target: str = TARGET):
    """Create a credential, supplying a value when the backend expects one."""
    value = None
    if provider.info.caller_generates_value:
        value = SecretGenerator().generate(
            GenerationSpec(length=24), min_length=provider.info.min_secret_length
        )
    return await provider.create(target, value)


class TestProviderContract:
    """Behaviour every provider implementation must show."""

    def test_implements_protocol(self, memory_provider: InMemoryCredentialProvider) -> None:
        """Test the provider satisfies the runtime protocol check."""
        assert isinstance(memory_provider, CredentialProvider)

    def test_info_declares_capabilities(self, memory_provider: InMemoryCredentialProvider) -> None:
        """Test the declared capabilities are consistent."""
        info = memory_provider.info

        assert info.name.startswith("memory-")
        assert info.environments == frozenset({"dev", "stage", "prod"})
        assert info.min_secret_length >= 8

    @pytest.mark.asyncio
    async def test_create_returns_live_credential(
        self, memory_provider: InMemoryCredentialProvider
    ) -> None:
        """Test create returns an active credential with identifier and value."""
        credential = await create_for(memory_provider)

        assert credential.status in (CredentialStatus.PENDING, CredentialStatus.ACTIVE)
        assert credential.identifier
        assert credential.value is not None
        assert credential.kind == memory_provider.info.credential_kind
        assert credential.target == TARGET

    @pytest.mark.asyncio
    async def test_created_credential_verifies(self, memory_provider: InMemoryCredentialProvider) -> None:
        """Test a fresh credential passes verification."""
        credential = await create_for(memory_provider)

        assert await memory_provider.verify(credential) is True

    @pytest.mark.asyncio
    async def test_switch_in_is_idempotent(self, memory_provider: InMemoryCredentialProvider) -> None:
        """Test repeating switch-in has no further effect."""
        credential = await create_for(memory_provider)

        await memory_provider.switch_in(credential)
        await memory_provider.switch_in(credential)

        assert memory_provider.published(TARGET) == credential.identifier
        assert len(memory_provider.live_credentials(TARGET)) == 1

    @pytest.mark.asyncio
    async def test_revoke_removes_old_credential(
        self, memory_provider: InMemoryCredentialProvider
    ) -> None:
        """Test revoking the replaced credential leaves only the new one."""
        old = memory_provider.seed(TARGET)
        new = await create_for(memory_provider)
        await memory_provider.switch_in(new)

        await memory_provider.revoke(old)

        live = memory_provider.live_credentials(TARGET)
        assert [c.identifier for c in live] == [new.identifier]
        assert await memory_provider.verify(old) is False

    @pytest.mark.asyncio
    async def test_creation_cap(self, memory_provider: InMemoryCredentialProvider) -> None:
        """Test the per-target cap surfaces as a create failure."""
        await create_for(memory_provider)
        await create_for(memory_provider)

        with pytest.raises(CreateFailedError, match="limit 2"):
            await create_for(memory_provider)


class TestInMemoryCredentialProvider:
    """Tests specific to the in-memory implementation."""

    @pytest.mark.asyncio
    async def test_access_key_format(self) -> None:
        """Test IAM credentials look like access key pairs."""
        provider = InMemoryCredentialProvider.for_backend(BackendKind.IAM_KEY_STORE)

        credential = await provider.create(TARGET)

        assert credential.kind == CredentialKind.ACCESS_KEY_PAIR
        assert isinstance(credential.value, AccessKeyPair)
        assert re.fullmatch(r"AKIA[A-Z0-9]{16}", credential.value.access_key_id)
        assert credential.identifier == credential.value.access_key_id
        assert len(credential.value.secret_access_key) == 40

    @pytest.mark.asyncio
    async def test_caller_value_stored(self, secret_store_provider: InMemoryCredentialProvider) -> None:
        """Test secret stores keep the value they were given."""
        credential = await secret_store_provider.create(TARGET, "given-value-123")

        assert credential.value == "given-value-123"

    @pytest.mark.asyncio
    async def test_caller_value_required(self, secret_store_provider: InMemoryCredentialProvider) -> None:
        """Test secret stores refuse to create without a value."""
        with pytest.raises(CreateFailedError, match="caller-generated"):
            await secret_store_provider.create(TARGET)

    @pytest.mark.asyncio
    async def test_token_minted(self, token_provider: InMemoryCredentialProvider) -> None:
        """Test token issuers mint a hex token."""
        credential = await token_provider.create(TARGET)

        assert isinstance(credential.value, str)
        assert re.fullmatch(r"[0-9a-f]{40}", credential.value)

    @pytest.mark.asyncio
    async def test_injected_failure(self, token_provider: InMemoryCredentialProvider) -> None:
        """Test injected failures are raised and counted."""
        token_provider.failures[RotationStep.CREATE] = RuntimeError("backend down")

        with pytest.raises(RuntimeError, match="backend down"):
            await token_provider.create(TARGET)

        assert token_provider.calls[RotationStep.CREATE] == 1
        assert token_provider.live_credentials(TARGET) == []

    @pytest.mark.asyncio
    async def test_verify_result_override(self, token_provider: InMemoryCredentialProvider) -> None:
        """Test verification can be forced to fail."""
        token_provider.verify_result = False
        credential = await token_provider.create(TARGET)

        assert await token_provider.verify(credential) is False

    @pytest.mark.asyncio
    async def test_switch_in_unknown_credential(self, token_provider: InMemoryCredentialProvider) -> None:
        """Test switching in a credential the backend never created fails."""
        other = InMemoryCredentialProvider.for_backend(BackendKind.TOKEN_ISSUER)
        foreign = await other.create(TARGET)

        with pytest.raises(SwitchFailedError):
            await token_provider.switch_in(foreign)

    @pytest.mark.asyncio
    async def test_revoke_published_credential_refused(
        self, token_provider: InMemoryCredentialProvider
    ) -> None:
        """Test the credential dependents use cannot be revoked."""
        current = token_provider.seed(TARGET)

        with pytest.raises(RevokeFailedError, match="still in use"):
            await token_provider.revoke(current)

    @pytest.mark.asyncio
    async def test_revoke_unknown_identifier(self, token_provider: InMemoryCredentialProvider) -> None:
        """Test revoking an unknown identifier fails."""
        token_provider.seed(TARGET)
        other = InMemoryCredentialProvider.for_backend(BackendKind.TOKEN_ISSUER)
        foreign = await other.create(TARGET)

        with pytest.raises(RevokeFailedError, match="Unknown credential"):
            await token_provider.revoke(foreign)

    @pytest.mark.asyncio
    async def test_revoke_without_identifier(self, token_provider: InMemoryCredentialProvider) -> None:
        """Test revoking without an identifier removes everything but the published credential."""
        old = token_provider.seed(TARGET)
        new = await token_provider.create(TARGET)
        await token_provider.switch_in(new)

        anonymous = Credential(kind=old.kind, target=TARGET, status=CredentialStatus.ACTIVE)
        await token_provider.revoke(anonymous)

        assert [c.identifier for c in token_provider.live_credentials(TARGET)] == [new.identifier]

    def test_info_overrides(self) -> None:
        """Test info_ keyword arguments override declared capabilities."""
        provider = InMemoryCredentialProvider.for_backend(
            BackendKind.SECRET_STORE,
            name="vault-kv",
            environments=("sandbox",),
            info_supports_verify=False,
            max_credentials_per_target=5,
        )

        assert provider.info.name == "vault-kv"
        assert provider.info.environments == frozenset({"sandbox"})
        assert provider.info.supports_verify is False
        assert provider.max_credentials_per_target == 5

    def test_seed_publishes(self, secret_store_provider: InMemoryCredentialProvider) -> None:
        """Test seeded credentials are live and published."""
        credential = secret_store_provider.seed(TARGET, "existing-value")

        assert credential.value == "existing-value"
        assert secret_store_provider.published(TARGET) == credential.identifier


class TestMemoryBackends:
    """Tests for the built-in backend factories."""

    def test_all_variants_registered(self) -> None:
        """Test one factory exists per backend variant."""
        assert set(MEMORY_BACKENDS) == {
            "memory-token",
            "memory-iam",
            "memory-secret-store",
            "memory-database",
        }

    @pytest.mark.parametrize("name", sorted(MEMORY_BACKENDS))
    def test_factory_builds_provider(self, name: str) -> None:
        """Test each factory returns a provider with its own name."""
        provider = MEMORY_BACKENDS[name](EnvironmentCredentials(backend=name, environment="dev"))

        assert isinstance(provider, CredentialProvider)
        assert provider.info.name == name

    def test_database_minimum_length(self) -> None:
        """Test the database backend declares a 12 character minimum."""
        provider = MEMORY_BACKENDS["memory-database"](
            EnvironmentCredentials(backend="memory-database", environment="dev")
        )

        assert provider.info.min_secret_length == 12
        assert provider.info.caller_generates_value is True


class TestProviderInfo:
    """Tests for provider capability declarations."""

    @pytest.mark.parametrize(
        ("backend", "minimum"),
        [
            (BackendKind.TOKEN_ISSUER, 8),
            (BackendKind.IAM_KEY_STORE, 8),
            (BackendKind.SECRET_STORE, 8),
            (BackendKind.DATABASE_PASSWORD_STORE, 12),
        ],
    )
    def test_backend_floor(self, backend: BackendKind, minimum: int) -> None:
        """Test each backend variant defaults to its minimum secret length."""
        assert ProviderInfo.for_backend("custom", backend).min_secret_length == minimum

    @pytest.mark.parametrize(
        ("backend", "length"),
        [
            (BackendKind.SECRET_STORE, 1),
            (BackendKind.SECRET_STORE, 7),
            (BackendKind.DATABASE_PASSWORD_STORE, 1),
            (BackendKind.DATABASE_PASSWORD_STORE, 11),
        ],
    )
    def test_min_secret_length_below_floor_rejected(
        self, backend: BackendKind, length: int
    ) -> None:
        """Test a declaration cannot lower the minimum below the backend floor."""
        with pytest.raises(ConfigurationError, match="min_secret_length"):
            ProviderInfo.for_backend("custom", backend, min_secret_length=length)

    def test_min_secret_length_raised(self) -> None:
        """Test a backend may demand longer values than the floor."""
        info = ProviderInfo.for_backend("custom", BackendKind.SECRET_STORE, min_secret_length=64)
        assert info.min_secret_length == 64

    def test_environments_normalized(self) -> None:
        """Test environments passed as a tuple become a frozenset."""
        info = ProviderInfo.for_backend("custom", BackendKind.TOKEN_ISSUER, environments=("qa",))
        assert info.environments == frozenset({"qa"})
