"""
Input validation utilities for booking payloads and API inputs.
"""

import re
from typing import Optional

_NAME_PATTERN = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑüÜ\s]+$")
_COMPANY_PATTERN = re.compile(r"^[a-zA-Z0-9áéíóúÁÉÍÓÚñÑüÜ\s\.\,\-]+$")
_PHONE_CHARS = re.compile(r"^[\d\s\+\-\(\)]*$")
_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$")
_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


def validate_name(name: str) -> bool:
    """
    Validate a client's name: letters (including Spanish accents) and spaces.
    """
    if not name or not isinstance(name, str):
        return False
    return bool(_NAME_PATTERN.match(name))


def validate_company(company: str) -> bool:
    """Validate a company name: letters, digits, spaces and ``.,-``."""
    if not company or not isinstance(company, str):
        return False
    return bool(_COMPANY_PATTERN.match(company))


def validate_phone(phone: str) -> bool:
    """
    Validate phone number characters.
    Digits, spaces, ``+``, ``-`` and parentheses are accepted; the form does
    not enforce a particular national format.

    Args:
        phone: Phone number string

    Returns:
        True if valid format, False otherwise
    """
    if not isinstance(phone, str):
        return False
    return bool(_PHONE_CHARS.match(phone))


def validate_time(value: str) -> bool:
    """Validate a 24h ``H:MM``, ``HH:MM`` or ``HH:MM:SS`` time string."""
    if not value or not isinstance(value, str):
        return False
    return bool(_TIME_PATTERN.match(value))


def validate_uuid(uuid_string: str) -> bool:
    """
    Validate UUID format.

    Args:
        uuid_string: UUID string

    Returns:
        True if valid UUID format, False otherwise
    """
    if not uuid_string or not isinstance(uuid_string, str):
        return False

    return bool(_UUID_PATTERN.match(uuid_string.lower()))


def parse_budget_minimum(budget_range: Optional[str]) -> int:
    """
    Lower bound of a budget range option.

    ``"20000-30000"`` gives 20000, ``"mas-150000"`` gives 150000. Unknown
    shapes give 0, which callers treat as "no lower bound".
    """
    if not budget_range:
        return 0

    if budget_range.startswith("mas-"):
        value = budget_range[len("mas-"):]
    elif "-" in budget_range:
        value = budget_range.split("-", 1)[0]
    else:
        return 0

    try:
        return int(value)
    except ValueError:
        return 0


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text.

    Args:
        text: Input text
        max_length: Optional maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    sanitized = re.sub(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]", "", str(text))

    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
