"""Shared authentication enums."""
from __future__ import annotations

from enum import Enum


class AccountType(str, Enum):
    """Category of account selected at registration."""

    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class AccountStatus(str, Enum):
    """Administrative state of an account."""

    NORMAL = "normal"
    SUSPENDED = "suspended"


__all__ = ["AccountType", "AccountStatus"]
