"""Configuration system for explorertree.

This module defines how callers tune the explorer tree: which view mode the
tree is rendered in, how long refresh requests are coalesced, and where the
warm-start snapshots are written.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ViewMode(Enum):
    """How packages are presented under a package root.

    Each mode keeps its own snapshot file, since the cached trees differ.
    """
    FLAT = "flat"                  # One node per package
    HIERARCHICAL = "hierarchical"  # Packages nested by name segment


@dataclass(frozen=True)
class ExplorerConfig:
    """Settings consumed by the explorer tree."""

    refresh_delay: float = 2.0          # Debounce window in seconds
    hierarchical_view: bool = False
    snapshot_dir: str = ".vscode"       # Tool-reserved dir inside each folder
    flat_snapshot_name: str = "explorerNodeCached.json"
    hierarchical_snapshot_name: str = "explorerNodeCached_HierarchicalView.json"

    def __post_init__(self):
        if self.refresh_delay < 0:
            raise ValueError(f"refresh_delay must be >= 0, got {self.refresh_delay}")
        if not self.snapshot_dir:
            raise ValueError("snapshot_dir must not be empty")

    @property
    def view_mode(self) -> ViewMode:
        return ViewMode.HIERARCHICAL if self.hierarchical_view else ViewMode.FLAT

    def snapshot_name(self, view_mode: ViewMode) -> str:
        """File name of the snapshot for a view mode."""
        if view_mode is ViewMode.HIERARCHICAL:
            return self.hierarchical_snapshot_name
        return self.flat_snapshot_name

    def with_changes(self, **changes) -> "ExplorerConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


ConfigListener = Callable[[ExplorerConfig, ExplorerConfig], None]


class Settings:
    """Holds the current ExplorerConfig and notifies listeners on change.

    Listeners are called with ``(updated, previous)`` so they can compare
    the fields they care about.
    """

    def __init__(self, config: Optional[ExplorerConfig] = None):
        self._config = config or ExplorerConfig()
        self._listeners: List[ConfigListener] = []

    @property
    def config(self) -> ExplorerConfig:
        return self._config

    @property
    def refresh_delay(self) -> float:
        return self._config.refresh_delay

    @property
    def view_mode(self) -> ViewMode:
        return self._config.view_mode

    def is_hierarchical_view(self) -> bool:
        return self._config.hierarchical_view

    def register_listener(self, listener: ConfigListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unregister():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def update(self, **changes) -> ExplorerConfig:
        """Apply changes and notify listeners if anything differs.

        Args:
            **changes: ExplorerConfig fields to replace

        Returns:
            The new configuration
        """
        previous = self._config
        updated = previous.with_changes(**changes)
        if updated == previous:
            return previous
        self._config = updated
        logger.debug("Explorer settings changed: %s", changes)
        for listener in list(self._listeners):
            listener(updated, previous)
        return updated
