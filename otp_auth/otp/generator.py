"""
OTP Generator
=============
Secure numeric code generation and constant-time comparison.
"""

import hmac
import secrets
import structlog

from ..errors import CodeGenerationError

logger = structlog.get_logger(__name__)

DEFAULT_CODE_LENGTH = 6


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """
    Generate a secure random numeric code.

    Every value in ``[0, 10**length)`` is equally likely, so codes with
    leading zeros are produced as often as any other.

    Args:
        length: Number of digits

    Returns:
        Zero-padded code string

    Raises:
        CodeGenerationError: If the OS entropy source is unavailable
    """
    if length < 1:
        raise ValueError("Code length must be at least 1")

    try:
        value = secrets.randbelow(10 ** length)
    except (OSError, NotImplementedError) as e:
        logger.error("Entropy source failure", error=str(e))
        raise CodeGenerationError("secure random source unavailable") from e

    return str(value).zfill(length)


def codes_match(submitted: str, expected: str) -> bool:
    """
    Compare two codes in constant time.

    Args:
        submitted: User-provided code
        expected: Stored code

    Returns:
        True if the codes are identical
    """
    return hmac.compare_digest(submitted.encode(), expected.encode())


class CodeGenerator:
    """Fixed-length numeric code generator."""

    def __init__(self, length: int = DEFAULT_CODE_LENGTH):
        if length < 1:
            raise ValueError("Code length must be at least 1")
        self.length = length

    def generate(self) -> str:
        return generate_code(self.length)
