"""Enumerations shared by the identity models."""

import enum


class UserType(str, enum.Enum):
    INDIVIDUAL = "Individual"
    CORPORATE = "Corporate"


class LifecycleStatus(str, enum.Enum):
    """Soft-delete state for users and groups; rows are never removed."""

    ACTIVE = "active"
    DEACTIVATED = "deactivated"
