"""Credential rotation engine.

Drives a credential provider through create -> verify -> switch-in ->
revoke. The old credential is never revoked before its replacement has
been verified (or the backend declared that it cannot verify) and
switched in. Every failure has exactly one resulting state:

    create fails     -> failed, old credential untouched; a rejected new
                        credential is reported as orphaned
    verify fails     -> failed, old still active, new orphaned
    switch-in fails  -> failed, old still active, new orphaned, both live
    revoke fails     -> partial success, new credential in use, old needs cleanup
"""

import asyncio
import time
from collections.abc import Awaitable
from dataclasses import replace
from datetime import UTC, datetime
from typing import TypeVar

from uuid_utils import uuid7

from credrotate.core.logging import LogContext, fingerprint, get_logger, log_external_call
from credrotate.rotation.config import RotationConfig
from credrotate.rotation.errors import (
    STEP_ERRORS,
    CreateFailedError,
    RotationStepError,
    RotationValidationError,
    StepTimeoutError,
    VerifyFailedError,
)
from credrotate.rotation.generator import SecretGenerator
from credrotate.rotation.protocol import CredentialProvider, ProviderInfo
from credrotate.rotation.types import (
    FAILURE_STATES,
    Credential,
    CredentialStatus,
    GenerationSpec,
    OldCredentialStatus,
    RotationOutcome,
    RotationRequest,
    RotationResult,
    RotationState,
    RotationStep,
)

logger = get_logger(__name__)

T = TypeVar("T")


class RotationEngine:
    """Runs the rotation protocol against one credential provider.

    The engine holds no state between calls, so one instance can serve
    concurrent rotations of different targets. At most one rotation per
    target may run at a time; that is the caller's responsibility.

    Example:
        engine = RotationEngine(provider, config=RotationConfig(step_timeout_seconds=10))

        result = await engine.rotate(
            RotationRequest(environment="prod", target="arn:aws:secretsmanager:..."),
        )
        if result.requires_operator_action:
            for warning in result.warnings:
                print(warning)
    """

    def __init__(
        self,
        provider: CredentialProvider,
        generator: SecretGenerator | None = None,
        config: RotationConfig | None = None,
    ):
        """Initialize the engine.

        Args:
            provider: Backend implementation of the rotation primitives
            generator: Secret generator (created from config if not provided)
            config: Engine configuration
        """
        if not isinstance(provider, CredentialProvider):
            raise TypeError(f"{type(provider).__name__} does not implement CredentialProvider")

        self.provider = provider
        self.config = config or RotationConfig()
        self.generator = generator or SecretGenerator(max_length=self.config.max_secret_length)

    # ----------------------------------------------------------------
    # Public API
    # ----------------------------------------------------------------

    async def rotate(self, request: RotationRequest) -> RotationResult:
        """Rotate the credential identified by a request.

        Args:
            request: Environment, target and generation parameters

        Returns:
            RotationResult describing the outcome and what is left to clean up

        Raises:
            RotationValidationError: If the request is rejected before any backend call
        """
        info = self.provider.info
        new_value = self._prepare(request, info)

        result = RotationResult(
            rotation_id=str(uuid7()),
            backend=info.name,
            environment=request.environment,
            target=request.target,
            old_credential=Credential(
                kind=info.credential_kind,
                target=request.target,
                identifier=request.old_credential_id,
                status=CredentialStatus.ACTIVE,
            ),
        )

        with LogContext(
            rotation_id=result.rotation_id,
            backend=info.name,
            environment=request.environment,
            target_fingerprint=fingerprint(request.target),
        ):
            logger.info(
                "rotation_started",
                backend_kind=info.backend.value,
                caller_generates_value=info.caller_generates_value,
                supports_verify=info.supports_verify,
                requires_switch_in=info.requires_switch_in,
            )

            try:
                await self._run(request, info, new_value, result)
            except asyncio.CancelledError:
                new = result.new_credential or result.orphaned_credential
                logger.warning(
                    "rotation_cancelled",
                    state=result.state.value,
                    new_credential_id=new.identifier if new else None,
                )
                raise
            finally:
                result.completed_at = datetime.now(UTC)

            logger.info(
                "rotation_finished",
                outcome=result.outcome.value,
                state=result.state.value,
                old_credential_status=result.old_credential_status.value,
                failure_stage=result.failure_stage.value if result.failure_stage else None,
                duration_seconds=result.duration_seconds,
            )

        return result

    # ----------------------------------------------------------------
    # Pre-flight validation
    # ----------------------------------------------------------------

    def _prepare(self, request: RotationRequest, info: ProviderInfo) -> str | None:
        """Validate a request and generate the new value if the caller supplies it.

        Returns:
            The generated value, or None when the backend mints its own
        """
        if request.environment not in info.environments:
            allowed = ", ".join(sorted(info.environments))
            raise RotationValidationError(
                f"Unknown environment {request.environment!r} for {info.name}. Use one of: {allowed}",
                field_name="environment",
            )

        if not request.target or not request.target.strip():
            raise RotationValidationError("Target must not be empty", field_name="target")

        if self.config.require_verification and not info.supports_verify:
            raise RotationValidationError(
                f"{info.name} has no verification primitive and verification is required",
                field_name="require_verification",
            )

        if not info.caller_generates_value:
            if request.generation is not None:
                # Validate anyway so a bad spec is never silently ignored
                self.generator.validate(request.generation, info.min_secret_length)
            return None

        spec = self._generation_spec(request, info)
        return self.generator.generate(spec, min_length=info.min_secret_length)

    def _generation_spec(self, request: RotationRequest, info: ProviderInfo) -> GenerationSpec:
        if request.generation is not None:
            return request.generation
        if info.default_generation is not None:
            return info.default_generation

        default = self.config.default_generation
        if default.length < info.min_secret_length:
            return GenerationSpec(
                length=info.min_secret_length,
                encoding=default.encoding,
                include_special_chars=default.include_special_chars,
            )
        return default

    # ----------------------------------------------------------------
    # State machine
    # ----------------------------------------------------------------

    async def _run(
        self,
        request: RotationRequest,
        info: ProviderInfo,
        new_value: str | None,
        result: RotationResult,
    ) -> None:
        old = result.old_credential
        assert old is not None

        # Start -> Created
        created = None
        try:
            created = await self._call(
                RotationStep.CREATE, self.provider.create(request.target, new_value)
            )
            new = self._accept_created(created, new_value)
        except Exception as e:
            if isinstance(created, Credential):
                # The backend issued something the engine will not use
                result.orphaned_credential = replace(created, status=CredentialStatus.ORPHANED)
            self._fail(result, RotationStep.CREATE, e)
            return
        result.state = RotationState.CREATED
        logger.info("credential_created", new_credential_id=new.identifier)

        # Created -> Verified
        if info.supports_verify:
            try:
                verified = await self._call(RotationStep.VERIFY, self.provider.verify(new))
                if not verified:
                    raise VerifyFailedError("Backend did not accept the new credential")
            except Exception as e:
                result.orphaned_credential = new.transition(CredentialStatus.ORPHANED)
                self._fail(result, RotationStep.VERIFY, e)
                return
        else:
            result.verification_skipped = True
            message = (
                f"{info.name} provides no verification primitive; "
                f"new credential {new.identifier or ''} was switched in unverified"
            )
            result.warnings.append(message)
            logger.warning("verification_skipped", new_credential_id=new.identifier)
        new = new.transition(CredentialStatus.VERIFIED)
        result.state = RotationState.VERIFIED

        # Verified -> SwitchedIn
        if info.requires_switch_in:
            try:
                await self._call(RotationStep.SWITCH_IN, self.provider.switch_in(new))
            except Exception as e:
                result.orphaned_credential = new.transition(CredentialStatus.ORPHANED)
                self._fail(result, RotationStep.SWITCH_IN, e)
                return
        else:
            logger.debug("switch_in_not_required", new_credential_id=new.identifier)
        new = new.transition(CredentialStatus.SWITCHED_IN)
        result.state = RotationState.SWITCHED_IN
        result.new_credential = new

        # SwitchedIn -> Revoked
        try:
            await self._call(RotationStep.REVOKE, self.provider.revoke(old))
        except Exception as e:
            self._fail(result, RotationStep.REVOKE, e)
            return
        result.old_credential = old.transition(CredentialStatus.REVOKED)
        result.old_credential_status = OldCredentialStatus.REVOKED
        result.state = RotationState.REVOKED
        result.outcome = RotationOutcome.SUCCESS

    def _accept_created(self, created: Credential, new_value: str | None) -> Credential:
        """Normalize the credential returned by create to the active status."""
        if not isinstance(created, Credential):
            raise CreateFailedError(
                f"Provider returned {type(created).__name__} instead of a Credential"
            )

        if not created.value:
            if new_value is None:
                raise CreateFailedError("Provider returned no credential value")
            created = replace(created, value=new_value)

        if created.status == CredentialStatus.ACTIVE:
            return created
        if created.status == CredentialStatus.PENDING:
            return created.transition(CredentialStatus.ACTIVE)
        raise CreateFailedError(f"Provider returned a credential in status {created.status.value}")

    async def _call(self, step: RotationStep, awaitable: Awaitable[T]) -> T:
        """Await one provider call under the step timeout."""
        timeout = self.config.step_timeout_seconds
        started = time.perf_counter()

        try:
            value = await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            log_external_call(
                logger,
                service=self.provider.info.name,
                operation=step.value,
                duration_ms=(time.perf_counter() - started) * 1000,
                success=False,
                timed_out=True,
            )
            raise StepTimeoutError(step, timeout) from e
        except Exception as e:
            log_external_call(
                logger,
                service=self.provider.info.name,
                operation=step.value,
                duration_ms=(time.perf_counter() - started) * 1000,
                success=False,
                error_type=type(e).__name__,
            )
            raise

        log_external_call(
            logger,
            service=self.provider.info.name,
            operation=step.value,
            duration_ms=(time.perf_counter() - started) * 1000,
            success=True,
        )
        return value

    def _fail(self, result: RotationResult, step: RotationStep, exc: Exception) -> None:
        """Record a step failure on the result."""
        error = self._step_error(step, exc)

        result.state = FAILURE_STATES[step]
        result.failure_stage = step
        result.error = error
        result.old_credential_status = error.old_credential_status
        result.outcome = (
            RotationOutcome.PARTIAL_SUCCESS if step == RotationStep.REVOKE else RotationOutcome.FAILED
        )

        log = logger.warning if step == RotationStep.REVOKE else logger.error
        log(
            "rotation_step_failed",
            step=step.value,
            error_type=type(error.cause or error).__name__,
            error_message=error.args[0],
            old_credential_status=error.old_credential_status.value,
        )

        warning = self._operator_warning(result, error)
        if warning:
            result.warnings.append(warning)
            logger.warning("operator_action_required", step=step.value, detail=warning)

    def _step_error(self, step: RotationStep, exc: Exception) -> RotationStepError:
        """Wrap an exception in the error type of the step that raised it."""
        timed_out = isinstance(exc, TimeoutError) or (
            isinstance(exc, RotationStepError) and exc.timed_out
        )
        # A timed-out revoke may still have been applied by the backend
        old_status = (
            OldCredentialStatus.UNKNOWN
            if step == RotationStep.REVOKE and timed_out
            else OldCredentialStatus.STILL_ACTIVE
        )

        error_cls = STEP_ERRORS[step]
        if isinstance(exc, error_cls):
            exc.old_credential_status = old_status
            return exc
        return error_cls(str(exc) or type(exc).__name__, cause=exc, old_credential_status=old_status)

    @staticmethod
    def _operator_warning(result: RotationResult, error: RotationStepError) -> str | None:
        orphan = result.orphaned_credential
        orphan_id = orphan.identifier if orphan and orphan.identifier else "(no identifier)"

        match error.step:
            case RotationStep.CREATE:
                if orphan is None:
                    return None
                return (
                    f"Credential {orphan_id} was issued by the backend but rejected by the "
                    "engine. The old credential is still active; delete the new credential manually."
                )
            case RotationStep.VERIFY:
                return (
                    f"New credential {orphan_id} failed verification and was left unused. "
                    "The old credential is still active; delete the new credential manually."
                )
            case RotationStep.SWITCH_IN:
                return (
                    f"Switch-in failed after credential {orphan_id} was created. Two valid "
                    "credentials now exist for this target; manual reconciliation is required."
                )
            case RotationStep.REVOKE:
                old = result.old_credential
                old_id = old.identifier if old and old.identifier else "for this target"
                if error.old_credential_status == OldCredentialStatus.UNKNOWN:
                    return (
                        f"Revocation of old credential {old_id} timed out. The new credential "
                        "is in use; check whether the old credential still exists and remove it."
                    )
                return (
                    f"Old credential {old_id} was not revoked. The new credential is in use; "
                    "clean up the old credential out of band."
                )
            case _:
                return None


def create_rotation_engine(
    provider: CredentialProvider,
    config: RotationConfig | None = None,
    generator: SecretGenerator | None = None,
) -> RotationEngine:
    """Create a RotationEngine instance.

    Args:
        provider: Credential provider to drive
        config: Optional engine configuration
        generator: Optional secret generator

    Returns:
        RotationEngine instance
    """
    return RotationEngine(provider, generator=generator, config=config)


async def rotate_credential(
    provider: CredentialProvider,
    request: RotationRequest,
    config: RotationConfig | None = None,
) -> RotationResult:
    """Run a single rotation with a one-off engine."""
    return await RotationEngine(provider, config=config).rotate(request)
