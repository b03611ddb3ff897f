"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import Optional

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def normalize_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a US phone number to E.164 format.

    Accepts "(657) 252-2903", "657-252-2903", "16572522903" and "+16572522903".

    Returns:
        Normalized phone number (+1XXXXXXXXXX)

    Raises:
        ValueError: If the number does not have 10 digits after stripping a leading 1
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def parse_iso_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD string"""
    if not value or not DATE_PATTERN.match(value):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError("Invalid date format. Use YYYY-MM-DD") from e


def validate_hhmm(value: str) -> str:
    """Validate a 24h HH:MM string"""
    if not value or not TIME_PATTERN.match(value):
        raise ValueError("Invalid time format. Use HH:MM")
    return value
