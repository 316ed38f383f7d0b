"""Rotation result reporting.

Maps rotation outcomes to process exit codes and to the flat output
fields automation consumes. The new credential value is masked unless
the caller explicitly asks for it.
"""

import secrets
from enum import IntEnum
from pathlib import Path

from credrotate.rotation.errors import RotationValidationError
from credrotate.rotation.types import RotationOutcome, RotationResult
from credrotate.utils.exceptions import ConfigurationError

MASK = "***"


class ExitCode(IntEnum):
    """Process exit codes for rotation commands."""

    SUCCESS = 0
    FAILED = 1
    INVALID_REQUEST = 2
    PARTIAL_SUCCESS = 3


_OUTCOME_EXIT_CODES: dict[RotationOutcome, ExitCode] = {
    RotationOutcome.SUCCESS: ExitCode.SUCCESS,
    RotationOutcome.PARTIAL_SUCCESS: ExitCode.PARTIAL_SUCCESS,
    RotationOutcome.FAILED: ExitCode.FAILED,
}


def exit_code_for(result: RotationResult) -> ExitCode:
    """Get the exit code for a rotation result."""
    return _OUTCOME_EXIT_CODES[result.outcome]


def exit_code_for_exception(exc: BaseException) -> ExitCode:
    """Get the exit code for an exception raised before a result existed."""
    if isinstance(exc, RotationValidationError | ConfigurationError):
        return ExitCode.INVALID_REQUEST
    return ExitCode.FAILED


def mask_value(value: str | None) -> str:
    """Mask a sensitive value, keeping only whether one is present."""
    return MASK if value else ""


def build_output_fields(result: RotationResult, reveal_value: bool = False) -> dict[str, str]:
    """Flatten a rotation result into string output fields.

    Args:
        result: The rotation result
        reveal_value: Include the new credential value unmasked

    Returns:
        Ordered mapping of output names to values
    """
    new = result.new_credential
    value = new.secret_value if new is not None else None

    return {
        "success": "true" if result.success else "false",
        "outcome": result.outcome.value,
        "rotation_id": result.rotation_id,
        "backend": result.backend,
        "environment": result.environment,
        "new_credential_id": (new.identifier or "") if new is not None else "",
        "new_credential_value": (value or "") if reveal_value else mask_value(value),
        "old_credential_status": result.old_credential_status.value,
        "failure_stage": result.failure_stage.value if result.failure_stage else "",
        "verification_skipped": "true" if result.verification_skipped else "false",
        "warnings": "\n".join(result.warnings),
    }


def format_output_line(key: str, value: str) -> str:
    """Format one output entry.

    Single-line values use ``key=value``. Multi-line values use a heredoc
    with a random delimiter that does not occur in the value:

        key<<ghadelimiter_3f9a...
        line one
        line two
        ghadelimiter_3f9a...
    """
    if "\n" not in value and "\r" not in value:
        return f"{key}={value}\n"

    delimiter = f"ghadelimiter_{secrets.token_hex(8)}"
    while delimiter in value:
        delimiter = f"ghadelimiter_{secrets.token_hex(8)}"
    return f"{key}<<{delimiter}\n{value}\n{delimiter}\n"


def write_output_file(path: str | Path, fields: dict[str, str]) -> None:
    """Append output fields to a CI output file.

    Args:
        path: File to append to (created if missing)
        fields: Output names and values
    """
    with Path(path).open("a", encoding="utf-8") as f:
        for key, value in fields.items():
            f.write(format_output_line(key, value))
