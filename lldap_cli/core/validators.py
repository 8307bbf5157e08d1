"""Input validation helpers for user data.

All checks run before any network call. Rejections raise ``ValidationError``
(a ``ValueError``) and leave an audit record on the diagnostic stream.
"""
from __future__ import annotations
import re
from typing import Optional

from lldap_cli.core.audit import AuditTrail
from lldap_cli.core.lldap.exceptions import ValidationError

MAX_INPUT_LENGTH = 1000
MAX_USERNAME_LENGTH = 64
MAX_EMAIL_LENGTH = 254  # RFC 5321
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

_USERNAME_RE = re.compile(r"[A-Za-z0-9_.-]+")
# One character class, one quantifier: a single linear scan per email part
_EMAIL_PART_RE = re.compile(r"[^\s@]+")
_SHELL_UNSAFE_RE = re.compile(r"[;&|`$()<>\\\"\n\r\t\0]")

_default_audit = AuditTrail()


def _reject(audit: Optional[AuditTrail], field_name: str, value: str, message: str, **details) -> ValidationError:
    (audit or _default_audit).record(
        "warn", "input_format_rejected", field=field_name, length=len(value), **details
    )
    return ValidationError(message)


def validate_length(value: str, field_name: str, max_length: int = MAX_INPUT_LENGTH,
                    audit: Optional[AuditTrail] = None) -> str:
    """Reject values longer than ``max_length``.

    Args:
        value: Input to check
        field_name: Field name for error messages
        max_length: Inclusive upper bound
        audit: Audit trail receiving the rejection record

    Returns:
        The unchanged value

    Raises:
        ValidationError: If value exceeds max_length
    """
    if len(value) > max_length:
        (audit or _default_audit).record(
            "warn", "input_length_exceeded", field=field_name, length=len(value), max=max_length
        )
        raise ValidationError(f"{field_name} exceeds maximum length of {max_length} characters")
    return value


def validate_username(username: str, audit: Optional[AuditTrail] = None) -> str:
    """Validate username length and charset (alphanumeric, ``_``, ``.``, ``-``)."""
    validate_length(username, "username", MAX_USERNAME_LENGTH, audit)
    if not _USERNAME_RE.fullmatch(username):
        raise _reject(
            audit, "username", username,
            "Username contains invalid characters. Only alphanumeric, underscore, dot, and hyphen allowed.",
        )
    return username


def validate_email(email: str, audit: Optional[AuditTrail] = None) -> str:
    """Validate email length and ``local@domain.tld`` shape.

    The local part and domain are each matched by a single bounded scan, so
    adversarial input cannot trigger catastrophic backtracking.

    Raises:
        ValidationError: If email is too long or malformed
    """
    validate_length(email, "email", MAX_EMAIL_LENGTH, audit)

    local, sep, domain = email.partition("@")
    if (
        not sep
        or not _EMAIL_PART_RE.fullmatch(local)
        or not _EMAIL_PART_RE.fullmatch(domain)
        or "." not in domain
        or domain.startswith(".")
        or domain.endswith(".")
    ):
        raise _reject(audit, "email", email, "Invalid email format")
    return email


def validate_generic_string(value: str, field_name: str, audit: Optional[AuditTrail] = None) -> str:
    """Length check for free-form fields (display name, first name, ...)."""
    return validate_length(value, field_name, MAX_INPUT_LENGTH, audit)


def validate_shell_argument(value: str, field_name: str, audit: Optional[AuditTrail] = None) -> str:
    """Reject values unsafe to hand to an external tool's argument list.

    Raises:
        ValidationError: If value is blank or contains shell metacharacters
    """
    if _SHELL_UNSAFE_RE.search(value):
        raise _reject(audit, field_name, value, f"Invalid {field_name}: contains potentially dangerous characters")
    if not value.strip():
        raise _reject(audit, field_name, value, f"Invalid {field_name}: cannot be empty")
    return value


def validate_password(password: str) -> str:
    """Validate a new user password (8-128 chars, a letter and a digit).

    The password never appears in audit records or error messages.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"New password is too short, expected at least {MIN_PASSWORD_LENGTH} characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(f"New password is too long, maximum {MAX_PASSWORD_LENGTH} characters")
    if not re.search(r"[A-Za-z]", password) or not re.search(r"[0-9]", password):
        raise ValidationError("Password must contain at least one letter and one number")
    return password
