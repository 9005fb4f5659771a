"""On-disk snapshots of the explorer tree for warm start.

One file per workspace folder and view mode, under the folder's
tool-reserved directory. Files are disposable caches: a missing or
corrupt file only costs the warm start, it never fails the caller.

Flat mode file:
    a NodeData object (one workspace root) or an array of NodeData
    (the projects of a single-folder workspace).

Hierarchical mode file:
    {"root": <object or array as above>,
     "hierarchicalPackageNodeDataMap": {<uri>: <NodeData>, ...}}
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .adapters.service import uri_to_path
from .config import ExplorerConfig, ViewMode
from .core.node_data import HierarchicalPackageNodeData, NodeData, SnapshotFormatError

logger = logging.getLogger(__name__)

FolderLike = Union[str, Path]

ROOT_KEY = "root"
HIERARCHICAL_MAP_KEY = "hierarchicalPackageNodeDataMap"


@dataclass
class Snapshot:
    """Parsed content of one snapshot file."""

    roots: List[NodeData]
    hierarchical_packages: Dict[str, HierarchicalPackageNodeData] = field(default_factory=dict)
    single_root: bool = False  # File held one object rather than an array

    @property
    def root(self) -> Union[NodeData, List[NodeData]]:
        return self.roots[0] if self.single_root else self.roots


def _folder_path(folder: FolderLike) -> Path:
    if isinstance(folder, str) and folder.startswith("file:"):
        return uri_to_path(folder)
    return Path(folder)


def _parse_root(raw: Any) -> Snapshot:
    if isinstance(raw, list):
        return Snapshot(roots=[NodeData.from_dict(item) for item in raw])
    return Snapshot(roots=[NodeData.from_dict(raw)], single_root=True)


def _serialize_root(root: Union[NodeData, List[NodeData]]) -> Any:
    if isinstance(root, NodeData):
        return root.to_dict()
    return [item.to_dict() for item in root]


class SnapshotStore:
    """Reads and writes per-folder snapshot files."""

    def __init__(self, config: Optional[ExplorerConfig] = None):
        self.config = config or ExplorerConfig()

    def snapshot_path(self, folder: FolderLike, view_mode: ViewMode) -> Path:
        return _folder_path(folder) / self.config.snapshot_dir / self.config.snapshot_name(view_mode)

    def load(self, folder: FolderLike, view_mode: ViewMode) -> Optional[Snapshot]:
        """Load the snapshot of a folder.

        Args:
            folder: Workspace folder path or file uri
            view_mode: Which mode's file to read

        Returns:
            Parsed snapshot, or None if missing or unreadable
        """
        path = self.snapshot_path(folder, view_mode)
        if not path.is_file():
            logger.debug("No snapshot at %s", path)
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            snapshot = self._parse(raw, view_mode)
        except (OSError, ValueError) as e:
            # JSONDecodeError and SnapshotFormatError are both ValueErrors
            logger.warning("Ignoring unreadable snapshot %s: %s", path, e)
            return None
        logger.debug("Loaded %d root(s) from %s", len(snapshot.roots), path)
        return snapshot

    def save(self, folder: FolderLike, view_mode: ViewMode,
             root: Union[NodeData, List[NodeData]],
             hierarchical_packages: Optional[Mapping[str, NodeData]] = None) -> Path:
        """Write a folder's snapshot, replacing any previous one.

        Args:
            folder: Workspace folder path or file uri
            view_mode: Which mode's file to write
            root: One workspace root, or the list of project roots
            hierarchical_packages: Side table, hierarchical mode only

        Returns:
            Path of the written file

        Raises:
            OSError: If the file cannot be written
        """
        if view_mode is ViewMode.HIERARCHICAL:
            payload = {
                ROOT_KEY: _serialize_root(root),
                HIERARCHICAL_MAP_KEY: {
                    uri: data.to_dict() for uri, data in (hierarchical_packages or {}).items()
                },
            }
        else:
            payload = _serialize_root(root)

        path = self.snapshot_path(folder, view_mode)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=4, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, path)
        logger.debug("Saved snapshot %s", path)
        return path

    def delete(self, folder: FolderLike) -> int:
        """Remove the snapshots of every view mode for a folder.

        Returns:
            Number of files removed
        """
        removed = 0
        for view_mode in ViewMode:
            path = self.snapshot_path(folder, view_mode)
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
        return removed

    async def load_async(self, folder: FolderLike, view_mode: ViewMode) -> Optional[Snapshot]:
        return await asyncio.to_thread(self.load, folder, view_mode)

    async def save_async(self, folder: FolderLike, view_mode: ViewMode,
                         root: Union[NodeData, List[NodeData]],
                         hierarchical_packages: Optional[Mapping[str, NodeData]] = None) -> Path:
        return await asyncio.to_thread(self.save, folder, view_mode, root, hierarchical_packages)

    @staticmethod
    def _parse(raw: Any, view_mode: ViewMode) -> Snapshot:
        if view_mode is not ViewMode.HIERARCHICAL:
            return _parse_root(raw)

        if not isinstance(raw, dict) or ROOT_KEY not in raw:
            raise SnapshotFormatError(f"Hierarchical snapshot without '{ROOT_KEY}'")
        snapshot = _parse_root(raw[ROOT_KEY])
        side_table = raw.get(HIERARCHICAL_MAP_KEY) or {}
        if not isinstance(side_table, dict):
            raise SnapshotFormatError(f"'{HIERARCHICAL_MAP_KEY}' is not an object")
        snapshot.hierarchical_packages = {
            uri: HierarchicalPackageNodeData.from_dict(data) for uri, data in side_table.items()
        }
        return snapshot
