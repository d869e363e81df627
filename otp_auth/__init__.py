"""
OTP Auth Core
=============
One-time-password login: code issuance with per-identity rate limiting,
single-use verification, find-or-create accounts and signed session tokens.
"""

__version__ = "0.1.0"

# Errors
from otp_auth.errors import (
    AuthError,
    RateLimitedError,
    InvalidCredentialError,
    TransientStoreError,
    ServiceError,
    ConsistencyError,
    CodeGenerationError,
    StoreError,
    CredentialNotFound,
    AccountNotFound,
    AccountAlreadyExists,
    InvalidTokenError,
    ConfigError,
)

# Config
from otp_auth.config import AuthConfig

# Clock
from otp_auth.clock import Clock, SYSTEM_CLOCK

# Identity
from otp_auth.identity import normalize_phone, validate_e164, mask_phone

# OTP
from otp_auth.otp import OneTimeCredential, CodeGenerator, generate_code, codes_match

# Rate Limiting
from otp_auth.rate_limit import RateLimiter, SlidingWindowLimiter, RateLimitInfo, RateLimitResult

# Accounts
from otp_auth.accounts import Account, AccountPage, AccountService

# Stores
from otp_auth.stores import (
    CredentialStore,
    IdentityStore,
    InMemoryCredentialStore,
    InMemoryIdentityStore,
    SqlCredentialStore,
    SqlIdentityStore,
)
from otp_auth.database import Database

# Tokens
from otp_auth.tokens import TokenIssuer, TokenClaims

# Delivery
from otp_auth.delivery import CodeSink, LogCodeSink

# Service
from otp_auth.service import AuthService
from otp_auth.maintenance import Janitor
from otp_auth.factory import AuthComponents, create_auth_service

# Logging
from otp_auth.logging_config import setup_logging

__all__ = [
    # Errors
    "AuthError",
    "RateLimitedError",
    "InvalidCredentialError",
    "TransientStoreError",
    "ServiceError",
    "ConsistencyError",
    "CodeGenerationError",
    "StoreError",
    "CredentialNotFound",
    "AccountNotFound",
    "AccountAlreadyExists",
    "InvalidTokenError",
    "ConfigError",
    # Config
    "AuthConfig",
    # Clock
    "Clock",
    "SYSTEM_CLOCK",
    # Identity
    "normalize_phone",
    "validate_e164",
    "mask_phone",
    # OTP
    "OneTimeCredential",
    "CodeGenerator",
    "generate_code",
    "codes_match",
    # Rate Limiting
    "RateLimiter",
    "SlidingWindowLimiter",
    "RateLimitInfo",
    "RateLimitResult",
    # Accounts
    "Account",
    "AccountPage",
    "AccountService",
    # Stores
    "CredentialStore",
    "IdentityStore",
    "InMemoryCredentialStore",
    "InMemoryIdentityStore",
    "SqlCredentialStore",
    "SqlIdentityStore",
    "Database",
    # Tokens
    "TokenIssuer",
    "TokenClaims",
    # Delivery
    "CodeSink",
    "LogCodeSink",
    # Service
    "AuthService",
    "Janitor",
    "AuthComponents",
    "create_auth_service",
    # Logging
    "setup_logging",
]
