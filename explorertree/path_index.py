"""
Path index: resource path to most recently materialized node.

Populated as a side effect of every tree read and invalidated per subtree
when a refresh fires. It is advisory only: a miss means the caller walks
the tree from the root instead.

Supports two modes:
- Bounded (max_entries > 0): LRU eviction once the limit is reached
- Unbounded (max_entries == 0): plain dict
"""

import logging
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from .adapters.service import uri_to_path

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def node_path(node: Any) -> Optional[Path]:
    """File system location of a node, from its path or its file uri."""
    raw = getattr(node, 'path', None)
    if raw:
        return Path(raw)
    return uri_to_path(getattr(node, 'uri', None))


class PathIndex:
    """
    Secondary lookup from file system path to explorer node.

    Reads are lock-free; invalidation is best effort.
    """

    def __init__(self, max_entries: int = 10000):
        """
        Initialize the index.

        Args:
            max_entries: Maximum number of indexed paths (0 = unlimited)
        """
        self.enable_protection = max_entries > 0
        self.max_entries = max_entries if self.enable_protection else float('inf')
        self._entries = OrderedDict() if self.enable_protection else {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: PathLike) -> bool:
        return self._key(path) in self._entries

    def save_node(self, node: Any) -> bool:
        """
        Index a node under its path.

        The default package shares its package root's path and has an
        empty name, so it is never indexed.

        Returns:
            True if indexed, False if the node has no usable path
        """
        if not getattr(node, 'name', None):
            return False
        capabilities = getattr(node, 'capabilities', None)
        if capabilities is not None and not capabilities.resource_backed:
            return False
        path = node_path(node)
        if path is None:
            return False

        key = str(path)
        self._entries[key] = node
        if self.enable_protection:
            self._entries.move_to_end(key)
            if len(self._entries) > self.max_entries:
                self._evict_oldest()
        return True

    def save_nodes(self, nodes: Iterable[Any]) -> int:
        """Index every node; returns how many were indexed."""
        return sum(1 for node in nodes if self.save_node(node))

    def get(self, path: PathLike) -> Optional[Any]:
        """
        Get the node indexed at exactly this path.

        Args:
            path: File system path

        Returns:
            Indexed node or None
        """
        key = self._key(path)
        node = self._entries.get(key)
        if node is None:
            self.misses += 1
            return None
        self.hits += 1
        if self.enable_protection:
            self._entries.move_to_end(key)
        return node

    def find_best_match(self, path: PathLike) -> Optional[Any]:
        """
        Find the node at ``path`` or at its nearest indexed ancestor.

        Args:
            path: File system path

        Returns:
            Closest indexed node or None
        """
        current = Path(path)
        for candidate in (current, *current.parents):
            node = self.get(candidate)
            if node is not None:
                return node
        return None

    def remove_node_children(self, node: Optional[Any] = None) -> int:
        """
        Drop the entries of a node and of every materialized descendant.

        Args:
            node: Subtree root, None to clear the whole index

        Returns:
            Number of entries removed
        """
        if node is None:
            count = len(self._entries)
            self.clear()
            return count

        removed = 0
        pending = [node]
        while pending:
            current = pending.pop(0)
            path = node_path(current)
            if path is not None and self._entries.pop(str(path), None) is not None:
                removed += 1
            pending.extend(getattr(current, 'children_nodes', None) or [])
        logger.debug("Path index dropped %d entries under %r", removed, node)
        return removed

    def invalidate(self, pattern: Optional[PathLike] = None, deep: bool = False) -> int:
        """
        Invalidate entries matching a path pattern.

        Args:
            pattern: Path to match (None = invalidate all)
            deep: If True, invalidate all descendants as well

        Returns:
            Number of entries invalidated
        """
        if pattern is None:
            count = len(self._entries)
            self.clear()
            return count

        pattern_path = Path(pattern)
        to_remove = [key for key in self._entries
                     if self._path_matches(Path(key), pattern_path, deep)]
        for key in to_remove:
            del self._entries[key]
        return len(to_remove)

    def clear(self):
        """Clear all entries."""
        self._entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get index statistics.

        Returns:
            Dictionary with index metrics
        """
        stats = {'entries': len(self._entries)}
        total_attempts = self.hits + self.misses
        if total_attempts > 0:
            stats['hit_rate'] = self.hits / total_attempts
        return stats

    def _evict_oldest(self):
        """Evict the least recently used entry."""
        if self._entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]

    @staticmethod
    def _key(path: PathLike) -> str:
        return str(Path(path))

    @staticmethod
    def _path_matches(key_path: Path, pattern_path: Path, deep: bool) -> bool:
        if deep:
            return key_path == pattern_path or key_path.is_relative_to(pattern_path)
        return key_path == pattern_path
