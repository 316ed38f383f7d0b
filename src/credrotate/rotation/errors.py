"""Rotation error taxonomy.

Every failure along the rotation protocol maps to exactly one exception
type here. Step errors carry what is known about the old credential so a
caller can tell which remediation applies.
"""

from credrotate.rotation.types import CredentialStatus, OldCredentialStatus, RotationStep
from credrotate.utils.exceptions import CredRotateError


class RotationError(CredRotateError):
    """Base exception for rotation errors."""

    pass


class RotationValidationError(RotationError):
    """Raised when a request is rejected before any backend call."""

    def __init__(self, message: str, field_name: str | None = None):
        self.field_name = field_name
        super().__init__(message)


class InvalidTransitionError(RotationError):
    """Raised on an illegal credential status change."""

    def __init__(self, current: CredentialStatus, requested: CredentialStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move credential from {current.value} to {requested.value}")


class StepTimeoutError(RotationError, TimeoutError):
    """Raised when a provider call exceeds the step timeout."""

    def __init__(self, step: RotationStep, timeout_seconds: float):
        self.step = step
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{step.value} timed out after {timeout_seconds}s")


class RotationStepError(RotationError):
    """Raised when a rotation step fails.

    Attributes:
        step: The step that failed
        cause: Underlying exception, if any
        old_credential_status: What is known about the old credential
    """

    step: RotationStep

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        old_credential_status: OldCredentialStatus = OldCredentialStatus.STILL_ACTIVE,
    ):
        self.cause = cause
        self.old_credential_status = old_credential_status
        super().__init__(message)

    @property
    def timed_out(self) -> bool:
        """Whether the step failed because of a timeout."""
        return isinstance(self.cause, TimeoutError)

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.step.value}): {self.args[0]}"


class CreateFailedError(RotationStepError):
    """Raised when the backend refuses to mint a new credential."""

    step = RotationStep.CREATE


class VerifyFailedError(RotationStepError):
    """Raised when a new credential cannot be proven operable."""

    step = RotationStep.VERIFY


class SwitchFailedError(RotationStepError):
    """Raised when a new credential cannot be published to its dependents."""

    step = RotationStep.SWITCH_IN


class RevokeFailedError(RotationStepError):
    """Raised when the previous credential could not be retired."""

    step = RotationStep.REVOKE


STEP_ERRORS: dict[RotationStep, type[RotationStepError]] = {
    RotationStep.CREATE: CreateFailedError,
    RotationStep.VERIFY: VerifyFailedError,
    RotationStep.SWITCH_IN: SwitchFailedError,
    RotationStep.REVOKE: RevokeFailedError,
}
