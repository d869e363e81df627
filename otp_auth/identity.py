"""
Identity Utilities
==================
Phone number normalization at the boundary and masking for logs.
"""

import re

E164_PATTERN = re.compile(r'^\+[1-9]\d{1,14}$')


def validate_e164(phone: str) -> bool:
    """
    Validate E.164 phone number format.

    Args:
        phone: Phone number

    Returns:
        True if valid E.164 format
    """
    return bool(E164_PATTERN.match(phone))


def normalize_phone(phone: str, default_country: str = "1") -> str:
    """
    Normalize a phone number to E.164 format.

    Args:
        phone: Raw phone number
        default_country: Default country code (without +)

    Returns:
        E.164 formatted number

    Raises:
        ValueError: If the result is not a valid E.164 number
    """
    phone = phone.strip()
    digits = re.sub(r'\D', '', phone)

    if phone.startswith('+'):
        normalized = f"+{digits}"
    elif phone.startswith('00'):
        # International dialing prefix
        normalized = f"+{digits[2:]}"
    elif len(digits) == 10:
        # 10 digits, assume national number for the default country
        normalized = f"+{default_country}{digits}"
    else:
        normalized = f"+{digits}"

    if not validate_e164(normalized):
        raise ValueError("Not a valid phone number")
    return normalized


def mask_phone(phone: str, visible: int = 4) -> str:
    """
    Mask a phone number for log output, keeping the last digits.

    Example:
        mask_phone("+15551234567") -> "+*******4567"
    """
    if len(phone) <= visible:
        return "*" * len(phone)
    head = "+" if phone.startswith("+") else ""
    hidden = len(phone) - visible - len(head)
    return f"{head}{'*' * hidden}{phone[-visible:]}"
