"""Credential rotation types and data structures.

This module defines the typed data structures shared by the rotation
engine, the secret generator and credential provider implementations.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum


class CredentialKind(str, Enum):
    """Kinds of credentials a provider can issue."""

    OPAQUE_TOKEN = "opaque_token"
    ACCESS_KEY_PAIR = "access_key_pair"
    PASSWORD = "password"
    GENERIC_SECRET = "generic_secret"


class CredentialStatus(str, Enum):
    """Lifecycle status of a credential within a rotation."""

    PENDING = "pending"
    ACTIVE = "active"
    VERIFIED = "verified"
    SWITCHED_IN = "switched_in"
    REVOKED = "revoked"
    ORPHANED = "orphaned"


# Forward-only status changes; anything else is a programming error.
ALLOWED_TRANSITIONS: dict[CredentialStatus, frozenset[CredentialStatus]] = {
    CredentialStatus.PENDING: frozenset({CredentialStatus.ACTIVE, CredentialStatus.ORPHANED}),
    CredentialStatus.ACTIVE: frozenset(
        {CredentialStatus.VERIFIED, CredentialStatus.REVOKED, CredentialStatus.ORPHANED}
    ),
    CredentialStatus.VERIFIED: frozenset(
        {CredentialStatus.SWITCHED_IN, CredentialStatus.ORPHANED}
    ),
    CredentialStatus.SWITCHED_IN: frozenset({CredentialStatus.REVOKED}),
    CredentialStatus.ORPHANED: frozenset({CredentialStatus.REVOKED}),
    CredentialStatus.REVOKED: frozenset(),
}

LIVE_STATUSES = frozenset(
    {
        CredentialStatus.ACTIVE,
        CredentialStatus.VERIFIED,
        CredentialStatus.SWITCHED_IN,
        CredentialStatus.ORPHANED,
    }
)


class Encoding(str, Enum):
    """Encodings supported by the secret generator."""

    ALPHANUMERIC = "alphanumeric"
    BASE64 = "base64"
    HEX = "hex"


class RotationOutcome(str, Enum):
    """Caller-visible classification of a rotation."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


class OldCredentialStatus(str, Enum):
    """What happened to the credential being replaced."""

    REVOKED = "revoked"
    STILL_ACTIVE = "still_active"
    UNKNOWN = "unknown"


class RotationStep(str, Enum):
    """Steps of the rotation protocol, in execution order."""

    CREATE = "create"
    VERIFY = "verify"
    SWITCH_IN = "switch_in"
    REVOKE = "revoke"


class RotationState(str, Enum):
    """States of the rotation state machine."""

    START = "start"
    CREATED = "created"
    VERIFIED = "verified"
    SWITCHED_IN = "switched_in"
    REVOKED = "revoked"

    # Failure exits
    CREATE_FAILED = "create_failed"
    VERIFY_FAILED = "verify_failed"
    SWITCH_FAILED = "switch_failed"
    REVOKE_FAILED = "revoke_failed"


FAILURE_STATES: dict[RotationStep, RotationState] = {
    RotationStep.CREATE: RotationState.CREATE_FAILED,
    RotationStep.VERIFY: RotationState.VERIFY_FAILED,
    RotationStep.SWITCH_IN: RotationState.SWITCH_FAILED,
    RotationStep.REVOKE: RotationState.REVOKE_FAILED,
}


@dataclass(frozen=True, slots=True)
class AccessKeyPair:
    """A public/private access key pair (e.g. an IAM access key).

    Attributes:
        access_key_id: Public key identifier
        secret_access_key: Private key material
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)


CredentialValue = str | AccessKeyPair


@dataclass(frozen=True, slots=True)
class Credential:
    """A credential value and its lifecycle status.

    Attributes:
        kind: Kind of credential
        target: Backend locator the credential belongs to
        identifier: Provider-assigned handle (absent until created)
        value: Sensitive payload, never included in repr
        status: Current lifecycle status
        created_at: When this record was created
    """

    kind: CredentialKind
    target: str = field(repr=False)
    identifier: str | None = None
    value: CredentialValue | None = field(default=None, repr=False)
    status: CredentialStatus = CredentialStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def transition(self, status: CredentialStatus) -> "Credential":
        """Return a copy of this credential in a new status.

        Args:
            status: Target status

        Returns:
            New Credential with the updated status

        Raises:
            InvalidTransitionError: If the change is not a legal forward transition
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            from credrotate.rotation.errors import InvalidTransitionError

            raise InvalidTransitionError(self.status, status)
        return replace(self, status=status)

    @property
    def is_live(self) -> bool:
        """Whether the backend still holds a usable credential."""
        return self.status in LIVE_STATUSES

    @property
    def secret_value(self) -> str | None:
        """The sensitive string (private half for key pairs)."""
        if isinstance(self.value, AccessKeyPair):
            return self.value.secret_access_key
        return self.value


@dataclass(frozen=True, slots=True)
class GenerationSpec:
    """Parameters for synthesizing a new credential value.

    Attributes:
        length: Characters for alphanumeric/hex, random bytes for base64
        encoding: Output encoding
        include_special_chars: Add punctuation to the alphanumeric charset
    """

    length: int = 32
    encoding: Encoding = Encoding.ALPHANUMERIC
    include_special_chars: bool = False


@dataclass(frozen=True, slots=True)
class RotationRequest:
    """Caller intent for a single rotation.

    Attributes:
        environment: Backend-defined environment selecting the credential set
        target: Opaque backend-specific locator
        generation: Value generation parameters, when the engine synthesizes the value
        old_credential_id: Handle of the credential being replaced, if known
    """

    environment: str
    target: str = field(repr=False)
    generation: GenerationSpec | None = None
    old_credential_id: str | None = None


@dataclass
class RotationResult:
    """Outcome of a rotation.

    Attributes:
        rotation_id: Unique ID for this rotation
        backend: Provider name that performed the rotation
        environment: Environment the rotation ran against
        target: Backend locator (sensitive for some backends, excluded from repr)
        outcome: Success, partial success or failure
        state: Final state machine state
        old_credential_status: Whether the old credential still needs cleanup
        started_at: When the rotation started
        completed_at: When the rotation finished
        failure_stage: Step that failed, if any
        new_credential: The working new credential (success/partial success)
        orphaned_credential: Created but unused credential left at the backend
        old_credential: The credential that was, or was to be, revoked
        error: The step error when a step failed
        warnings: Operator-facing warnings
        verification_skipped: Backend declares no verification primitive
    """

    rotation_id: str
    backend: str
    environment: str
    target: str = field(repr=False)
    outcome: RotationOutcome = RotationOutcome.FAILED
    state: RotationState = RotationState.START
    old_credential_status: OldCredentialStatus = OldCredentialStatus.STILL_ACTIVE
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    failure_stage: RotationStep | None = None
    new_credential: Credential | None = None
    orphaned_credential: Credential | None = None
    old_credential: Credential | None = None
    error: Exception | None = None
    warnings: list[str] = field(default_factory=list)
    verification_skipped: bool = False

    @property
    def success(self) -> bool:
        """Whether every step completed."""
        return self.outcome == RotationOutcome.SUCCESS

    @property
    def requires_operator_action(self) -> bool:
        """Whether anything is left for an operator to clean up or reconcile."""
        return self.outcome != RotationOutcome.SUCCESS

    @property
    def both_credentials_live(self) -> bool:
        """Whether old and new credentials are known to be valid at the backend.

        False after a revoke timeout, where the old credential may be gone.
        """
        if self.state == RotationState.SWITCH_FAILED:
            return True
        return (
            self.state == RotationState.REVOKE_FAILED
            and self.old_credential_status == OldCredentialStatus.STILL_ACTIVE
        )

    @property
    def duration_seconds(self) -> float | None:
        """Elapsed time, once completed."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()
