"""
Validation utilities for user input (emails, passwords, seller usernames)
"""
import re
from typing import Tuple

USERNAME_PATTERN = re.compile(r'^[a-z0-9._-]+$')
_EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
# Matches the auth provider's own minimum
MIN_PASSWORD_LENGTH = 6


def validate_email(email: str) -> Tuple[bool, str]:
    """
    Validate email address format.
    Returns (is_valid, error_message).
    """
    trimmed = (email or "").strip().lower()

    if not trimmed:
        return False, "Email is required"

    if not _EMAIL_REGEX.match(trimmed):
        return False, "Invalid email format"

    return True, ""


def validate_password(password: str) -> Tuple[bool, str]:
    if not password:
        return False, "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return True, ""


def derive_username(email: str) -> str:
    """Local part of the email, lowercased, keeping only [a-z0-9_-].

    Dots are dropped as well so "Jane.Doe+test@x.com" and "janedoe+test@x.com" map to one seller.
    """
    local = (email or "").strip().split("@", 1)[0]
    return re.sub(r"[^a-z0-9_-]", "", local.lower())


def normalize_seller_identifier(identifier: str) -> str:
    """A login identifier may be a username or an email; both reduce to a username."""
    raw = (identifier or "").strip()
    if "@" in raw:
        return derive_username(raw)
    return re.sub(r'\s+', '', raw).lower()


def is_valid_username(username: str) -> bool:
    return bool(username) and bool(USERNAME_PATTERN.match(username))
