"""Shared enums for the polling engine."""

from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    DISKS = "disks"
    GPU = "gpu"
    NETWORK = "network"

    @classmethod
    def parse(cls, value: object, default: "Category | None" = None) -> "Category":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is None:
                raise
            return default


DEFAULT_CATEGORY = Category.MEMORY


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"
