"""
OTP Generation
==============
One-time code generation and the credential record.
"""

from .models import OneTimeCredential
from .generator import CodeGenerator, generate_code, codes_match, DEFAULT_CODE_LENGTH

__all__ = [
    # Models
    "OneTimeCredential",
    # Generator
    "CodeGenerator",
    "generate_code",
    "codes_match",
    "DEFAULT_CODE_LENGTH",
]
