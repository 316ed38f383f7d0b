"""Secure credential value generation.

Values are drawn from the ``secrets`` module only. Every alphanumeric
character is an independent uniform draw from the active charset, so the
output carries exactly ``length * log2(len(charset))`` bits of entropy.
"""

import base64
import secrets
import string

from credrotate.rotation.errors import RotationValidationError
from credrotate.rotation.types import Encoding, GenerationSpec

GENERIC_SECRET_MIN_LENGTH = 8
DATABASE_PASSWORD_MIN_LENGTH = 12
MAX_SECRET_LENGTH = 4096

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
ALPHANUMERIC_CHARACTERS = string.ascii_uppercase + string.ascii_lowercase + string.digits
HEX_CHARACTERS = "0123456789abcdef"


class SecretGenerator:
    """Generates credential values with a cryptographically secure source.

    Example:
        generator = SecretGenerator()

        password = generator.generate(
            GenerationSpec(length=24, include_special_chars=True),
            min_length=DATABASE_PASSWORD_MIN_LENGTH,
        )
        token = generator.generate(GenerationSpec(length=32, encoding=Encoding.HEX))
    """

    def __init__(
        self,
        min_length: int = GENERIC_SECRET_MIN_LENGTH,
        max_length: int = MAX_SECRET_LENGTH,
    ):
        """Initialize the generator.

        Args:
            min_length: Default minimum length when a caller supplies none
                (never below GENERIC_SECRET_MIN_LENGTH)
            max_length: Upper bound for any generated value
        """
        if min_length < GENERIC_SECRET_MIN_LENGTH or max_length < min_length:
            raise RotationValidationError(
                f"Invalid generator bounds: min_length={min_length}, max_length={max_length}"
            )
        self.min_length = min_length
        self.max_length = max_length

    def validate(self, spec: GenerationSpec, min_length: int | None = None) -> GenerationSpec:
        """Validate generation parameters.

        Args:
            spec: Generation parameters
            min_length: Backend minimum, overriding the generator default. Values
                below GENERIC_SECRET_MIN_LENGTH are raised to it.

        Returns:
            The parameters with their encoding normalized to an Encoding member

        Raises:
            RotationValidationError: If any parameter is out of range or unknown
        """
        minimum = max(
            GENERIC_SECRET_MIN_LENGTH, self.min_length if min_length is None else min_length
        )
        length = spec.length

        if isinstance(length, bool) or not isinstance(length, int):
            raise RotationValidationError(
                f"Length must be an integer, got {type(length).__name__}",
                field_name="length",
            )
        if length < minimum:
            raise RotationValidationError(
                f"Length {length} is below the minimum of {minimum}",
                field_name="length",
            )
        if length > self.max_length:
            raise RotationValidationError(
                f"Length {length} exceeds the maximum of {self.max_length}",
                field_name="length",
            )

        try:
            encoding = Encoding(spec.encoding)
        except ValueError as e:
            allowed = ", ".join(item.value for item in Encoding)
            raise RotationValidationError(
                f"Unknown encoding {spec.encoding!r}. Use one of: {allowed}",
                field_name="encoding",
            ) from e

        if spec.include_special_chars and encoding != Encoding.ALPHANUMERIC:
            raise RotationValidationError(
                f"Special characters are only supported for {Encoding.ALPHANUMERIC.value}",
                field_name="include_special_chars",
            )

        if encoding is spec.encoding:
            return spec
        return GenerationSpec(
            length=length,
            encoding=encoding,
            include_special_chars=spec.include_special_chars,
        )

    def generate(
        self,
        spec: GenerationSpec | None = None,
        *,
        min_length: int | None = None,
    ) -> str:
        """Generate a new credential value.

        Args:
            spec: Generation parameters (defaults to 32 alphanumeric characters)
            min_length: Backend minimum, overriding the generator default

        Returns:
            Exactly ``length`` characters for alphanumeric and hex; the base64
            encoding of exactly ``length`` random bytes for base64

        Raises:
            RotationValidationError: If the parameters are invalid
        """
        spec = self.validate(spec or GenerationSpec(), min_length)

        match spec.encoding:
            case Encoding.HEX:
                # token_hex yields two characters per byte
                return secrets.token_hex((spec.length + 1) // 2)[: spec.length]
            case Encoding.BASE64:
                return base64.b64encode(secrets.token_bytes(spec.length)).decode("ascii")
            case _:
                alphabet = self.charset_for(spec)
                return "".join(secrets.choice(alphabet) for _ in range(spec.length))

    @staticmethod
    def charset_for(spec: GenerationSpec) -> str:
        """Get the characters a generated value may contain.

        For base64 this is the standard alphabet including padding.
        """
        match Encoding(spec.encoding):
            case Encoding.HEX:
                return HEX_CHARACTERS
            case Encoding.BASE64:
                return ALPHANUMERIC_CHARACTERS + "+/="
            case _:
                if spec.include_special_chars:
                    return ALPHANUMERIC_CHARACTERS + SPECIAL_CHARACTERS
                return ALPHANUMERIC_CHARACTERS


def generate_secret(
    length: int = 32,
    encoding: Encoding | str = Encoding.ALPHANUMERIC,
    include_special_chars: bool = False,
    min_length: int = GENERIC_SECRET_MIN_LENGTH,
) -> str:
    """Generate a credential value with default generator bounds.

    Args:
        length: Requested length
        encoding: Output encoding
        include_special_chars: Add punctuation (alphanumeric only)
        min_length: Backend minimum

    Returns:
        Generated value
    """
    spec = GenerationSpec(
        length=length,
        encoding=encoding,  # type: ignore[arg-type]
        include_special_chars=include_special_chars,
    )
    return SecretGenerator().generate(spec, min_length=min_length)
