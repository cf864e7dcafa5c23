"""Provider failure types."""

from __future__ import annotations


class ProviderError(RuntimeError):
    """A provider call failed; callers skip the tick and keep prior state."""
