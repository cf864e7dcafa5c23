"""Cross-session state slots and active-category persistence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .config import config_root
from .logging_setup import get_logger
from .models import DEFAULT_CATEGORY, Category


ACTIVE_CATEGORY_SLOT = "performance.activeCategory"
GPU_SIM_TICK_SLOT = "gpuSim.tick"
REVEAL_SENSITIVE_SLOT = "ui.revealSensitive"
LOGS_AUTO_START_SLOT = "logs.autoStart"

logger = get_logger("state")


def state_path() -> Path:
    return config_root() / "state.json"


class StateStore:
    """Flat JSON key/value slots that survive restarts.

    A missing or unreadable file starts empty. ``path=None`` keeps the store in
    memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = {}
        if path is not None:
            self._data = self._load(path)

    @classmethod
    def default(cls) -> "StateStore":
        return cls(state_path())

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            logger.warning("ignoring unreadable state file %s", path, extra={"event": "state_unreadable"})
            return {}
        return raw if isinstance(raw, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any, persist: bool = True) -> None:
        self._data[key] = value
        if persist:
            self.save()

    def save(self) -> Path | None:
        if self.path is None:
            return None
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        return self.path

    @property
    def reveal_sensitive(self) -> bool:
        return bool(self.get(REVEAL_SENSITIVE_SLOT, False))

    @property
    def logs_auto_start(self) -> bool:
        return bool(self.get(LOGS_AUTO_START_SLOT, False))


class ViewStateSynchronizer:
    """Remembers the last metric category the user picked.

    ``enter`` is called when the polling view mounts. A navigation request
    (for example jumping to the network tab from an alert) wins for that entry
    only; the stored default changes only through ``select``.
    """

    def __init__(self, store: StateStore, slot: str = ACTIVE_CATEGORY_SLOT) -> None:
        self.store = store
        self.slot = slot
        self._current: Category | None = None

    @property
    def current(self) -> Category | None:
        return self._current

    def persisted(self) -> Category:
        return Category.parse(self.store.get(self.slot, DEFAULT_CATEGORY.value), default=DEFAULT_CATEGORY)

    def enter(self, requested: Category | str | None = None) -> Category:
        if requested is not None:
            self._current = Category.parse(requested, default=self.persisted())
        else:
            self._current = self.persisted()
        return self._current

    def select(self, category: Category | str) -> Category:
        self._current = Category.parse(category)
        self.store.set(self.slot, self._current.value)
        return self._current

    def leave(self) -> None:
        self._current = None
