"""Credential rotation module.

This module provides:
- SecretGenerator for cryptographically secure credential values
- CredentialProvider protocol for backend-specific rotation primitives
- RotationEngine driving create, verify, switch-in and revoke
- ProviderRegistry mapping backend names to provider factories
- In-memory providers for development and testing
- Reporting helpers mapping results to exit codes and output fields

Example:
    from credrotate.rotation import RotationEngine, RotationRequest, create_default_registry

    registry = create_default_registry()
    provider = registry.resolve("memory-secret-store")

    result = await RotationEngine(provider).rotate(
        RotationRequest(environment="dev", target="app/api-key"),
    )
    if result.requires_operator_action:
        for warning in result.warnings:
            print(warning)
"""

from credrotate.rotation.config import (
    EnvironmentCredentials,
    RotationConfig,
    env_var_name,
    load_environment_credentials,
)
from credrotate.rotation.engine import RotationEngine, create_rotation_engine, rotate_credential
from credrotate.rotation.errors import (
    CreateFailedError,
    InvalidTransitionError,
    RevokeFailedError,
    RotationError,
    RotationStepError,
    RotationValidationError,
    StepTimeoutError,
    SwitchFailedError,
    VerifyFailedError,
)
from credrotate.rotation.generator import SecretGenerator, generate_secret
from credrotate.rotation.memory import InMemoryCredentialProvider
from credrotate.rotation.protocol import BackendKind, CredentialProvider, ProviderInfo
from credrotate.rotation.registry import ProviderRegistry, create_default_registry
from credrotate.rotation.reporter import ExitCode, build_output_fields, exit_code_for, write_output_file
from credrotate.rotation.types import (
    AccessKeyPair,
    Credential,
    CredentialKind,
    CredentialStatus,
    Encoding,
    GenerationSpec,
    OldCredentialStatus,
    RotationOutcome,
    RotationRequest,
    RotationResult,
    RotationState,
    RotationStep,
)

__all__ = [
    # Protocol
    "CredentialProvider",
    "ProviderInfo",
    "BackendKind",
    # Types
    "AccessKeyPair",
    "Credential",
    "CredentialKind",
    "CredentialStatus",
    "Encoding",
    "GenerationSpec",
    "OldCredentialStatus",
    "RotationOutcome",
    "RotationRequest",
    "RotationResult",
    "RotationState",
    "RotationStep",
    # Errors
    "RotationError",
    "RotationValidationError",
    "InvalidTransitionError",
    "StepTimeoutError",
    "RotationStepError",
    "CreateFailedError",
    "VerifyFailedError",
    "SwitchFailedError",
    "RevokeFailedError",
    # Configuration
    "RotationConfig",
    "EnvironmentCredentials",
    "env_var_name",
    "load_environment_credentials",
    # Generation
    "SecretGenerator",
    "generate_secret",
    # Engine
    "RotationEngine",
    "create_rotation_engine",
    "rotate_credential",
    # Providers
    "InMemoryCredentialProvider",
    "ProviderRegistry",
    "create_default_registry",
    # Reporting
    "ExitCode",
    "build_output_fields",
    "exit_code_for",
    "write_output_file",
]
