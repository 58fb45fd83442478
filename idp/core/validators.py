"""Input validation helpers for user data."""
from __future__ import annotations
import datetime
from typing import Any, Optional


def normalize_username(raw: str) -> str:
    """Normalize and validate username.

    Args:
        raw: Raw username input

    Returns:
        Normalized username

    Raises:
        ValueError: If username is invalid
    """
    raw = (raw or "").strip().lower()
    if any(not (char.isalnum() or char in {".", "-", "_", "@"}) for char in raw):
        raise ValueError("Username contains invalid characters")

    if len(raw) < 3:
        raise ValueError("Username must be at least 3 characters")
    if len(raw) > 128:
        raise ValueError("Username must not exceed 128 characters")
    if raw[0] in {".", "-", "_", "@"} or raw[-1] in {".", "-", "_", "@"}:
        raise ValueError("Username cannot start or end with special characters")

    return raw


def validate_email(email: str) -> str:
    """Validate email address.

    Returns:
        Normalized email address

    Raises:
        ValueError: If email is invalid
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValueError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError("Invalid email format")
    if len(email) > 254:
        raise ValueError("Email exceeds maximum length")

    return email


def validate_name(name: str, field: str) -> str:
    """Validate first/last name fields.

    Args:
        name: Name to validate
        field: Field name for error messages (e.g., "First name")

    Returns:
        Trimmed name

    Raises:
        ValueError: If name is invalid
    """
    name = (name or "").strip()
    if not name:
        raise ValueError(f"{field} is required")
    if len(name) > 255:
        raise ValueError(f"{field} exceeds maximum length")

    if any(char in name for char in "<>\"`;|$"):
        raise ValueError(f"{field} contains invalid characters")

    return name


def parse_optional_datetime(raw: Any, field: str) -> Optional[datetime.datetime]:
    """Parse an ISO 8601 timestamp; empty input means "not set".

    Naive timestamps are taken as UTC.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime.datetime):
        value = raw
    else:
        try:
            value = datetime.datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"{field} must be an ISO 8601 timestamp") from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value
