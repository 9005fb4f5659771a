"""Explorer tree provider: the facade a tree widget talks to.

Startup reads the per-folder snapshots so the tree can be shown before the
backing service is ready. Once ``service.ready()`` resolves, one
coalesced root refresh switches the tree to live data; from then on every
expansion fetches and reconciles against what was cached, so loaded
subtrees keep their identity. ``save_snapshot()`` writes the live tree
back at teardown.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .adapters.service import ProjectService, uri_to_path
from .config import ExplorerConfig, Settings, ViewMode
from .core.lock import TreeLock
from .core.node import DataNode, TreeContext
from .core.node_data import HierarchicalPackageNodeData, NodeData, NodeKind
from .error_handling import create_resilient_service
from .path_index import PathIndex
from .reconcile import reconcile_children
from .refresh import ROOT, RefreshScheduler, TreeChangedEvent
from .snapshot import Snapshot, SnapshotStore

logger = logging.getLogger(__name__)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@dataclass(frozen=True)
class WorkspaceFolder:
    """A top-level folder opened in the workspace."""

    name: str
    path: Path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "WorkspaceFolder":
        path = Path(path).absolute()
        return cls(name=path.name, path=path)

    @property
    def uri(self) -> str:
        return Path(self.path).absolute().as_uri()

    def to_node_data(self) -> NodeData:
        return NodeData(name=self.name, kind=NodeKind.WORKSPACE, uri=self.uri, path=str(self.path))


class ProjectTreeProvider:
    """Serves explorer nodes from snapshot or live data.

    Interface to the tree widget: ``get_children``, ``get_parent``,
    ``on_tree_changed``, ``reveal_paths``. Lifecycle: construct (loads
    snapshots), use, ``close()`` (persists snapshots).
    """

    def __init__(self,
                 folders: Iterable[WorkspaceFolder],
                 service: ProjectService,
                 settings: Optional[Settings] = None,
                 snapshot_store: Optional[SnapshotStore] = None,
                 path_index: Optional[PathIndex] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Args:
            folders: Workspace folders, in display order
            service: Backing project service; wrapped so failures degrade
            settings: Explorer settings (defaults to ExplorerConfig())
            snapshot_store: Snapshot persistence (defaults to one built from settings)
            path_index: Path lookup cache
            loop: Event loop for the refresh timer. Defaults to the loop running
                at construction, so settings may later change from code that
                runs outside it; pass one explicitly when constructing off-loop.
        """
        self.folders: List[WorkspaceFolder] = list(folders)
        self.settings = settings or Settings()
        self.service = create_resilient_service(service)
        self.snapshot_store = snapshot_store or SnapshotStore(self.settings.config)
        self.path_index = path_index if path_index is not None else PathIndex()
        self.on_tree_changed = TreeChangedEvent()

        self._lock = TreeLock()
        self._context = TreeContext(self.service, self._lock, self.settings.view_mode)
        self._root_items: Optional[List[DataNode]] = None
        self._cached_root_items: Optional[List[DataNode]] = None
        # Root data the next root load is reconciled against
        self._previous_roots: Optional[List[NodeData]] = None
        self._hierarchical_packages: Dict[str, HierarchicalPackageNodeData] = {}
        self._serving_snapshot = False
        self._warm_start_task: Optional[asyncio.Future] = None

        if loop is None:
            loop = _running_loop()
        self._scheduler = RefreshScheduler(self._do_refresh, self.settings.refresh_delay, loop)
        self._unregister_settings = self.settings.register_listener(self._on_settings_changed)
        self._load_snapshots()

    @property
    def lock(self) -> TreeLock:
        return self._lock

    @property
    def root_items(self) -> Optional[List[DataNode]]:
        return self._root_items

    @property
    def hierarchical_packages(self) -> Dict[str, HierarchicalPackageNodeData]:
        return self._hierarchical_packages

    @property
    def serving_snapshot(self) -> bool:
        """True while cached data is shown and the service is not yet ready."""
        return self._serving_snapshot

    @property
    def pending_refresh(self) -> Any:
        return self._scheduler.pending

    @property
    def warm_start_task(self) -> Optional[asyncio.Future]:
        return self._warm_start_task

    async def get_children(self, element: Optional[DataNode] = None) -> List[DataNode]:
        """Children of ``element``, or the root nodes when it is None.

        Never raises for backing-service failures.
        """
        self._ensure_warm_start()

        if self._serving_snapshot:
            if element is None:
                self._root_items = self._cached_root_items
                children = self._root_items or []
            else:
                cached = None
                if element.is_hierarchical_package and element.uri in self._hierarchical_packages:
                    cached = self._hierarchical_packages[element.uri].children
                children = await element.get_child_node_list(cached)
        else:
            if not await self.service.ready():
                return []
            if element is None:
                children = await self._get_root_nodes()
            else:
                children = await element.get_children()
                if element.is_hierarchical_package and element.uri:
                    self._remember_hierarchical_package(element)

        self.path_index.save_nodes(children)
        return children

    def get_parent(self, element: DataNode) -> Optional[DataNode]:
        return element.get_parent()

    def refresh(self, immediate: bool = False, element: Optional[DataNode] = None) -> None:
        """Request a refresh of ``element``'s subtree (None = whole tree)."""
        self._scheduler.refresh(immediate, element)

    def reset_cache(self, immediate: bool = True) -> int:
        """Forget every cached tree, delete snapshot files, reload from the service.

        Returns:
            Number of snapshot files removed
        """
        removed = sum(self.snapshot_store.delete(folder.path) for folder in self.folders)
        self._cached_root_items = None
        self._previous_roots = None
        self._hierarchical_packages.clear()
        self._serving_snapshot = False
        self.refresh(immediate=immediate)
        return removed

    async def reveal_paths(self, paths: Sequence[NodeData]) -> Optional[DataNode]:
        """Find a node from its chain of (name, path) segments.

        The first segment names a project; None when any segment no
        longer exists.
        """
        if not paths:
            return None
        head, rest = paths[0], paths[1:]
        projects = await self.get_root_projects()
        project = next((p for p in projects
                        if p.path == head.path and p.name == head.name), None)
        if project is None:
            return None
        return await project.reveal_paths(rest)

    def find_node_by_path(self, path: Union[str, Path]) -> Optional[DataNode]:
        """Indexed node at ``path`` or its nearest indexed ancestor."""
        return self.path_index.find_best_match(path)

    async def get_root_projects(self) -> List[DataNode]:
        roots = await self.get_children()
        if not roots or roots[0].kind is NodeKind.PROJECT:
            return roots
        projects: List[DataNode] = []
        for workspace in roots:
            projects.extend(await self.get_children(workspace))
        return projects

    def project_uri_for(self, node: DataNode) -> str:
        """Uri a project reload should target.

        Raises:
            MissingNodeFieldError: If the node has no uri
        """
        return node.require_uri("reload project")

    def save_snapshot(self) -> List[Path]:
        """Persist the current tree, one file per workspace folder.

        Returns:
            Paths written
        """
        roots = self._current_root_data()
        if not roots or not self.folders:
            return []

        view_mode = self.settings.view_mode
        written: List[Path] = []
        try:
            if len(self.folders) > 1:
                by_uri = {root.uri: root for root in roots}
                for folder in self.folders:
                    root = by_uri.get(folder.uri)
                    if root is None:
                        continue
                    written.append(self.snapshot_store.save(
                        folder.path, view_mode, root,
                        self._side_table_for(folder, view_mode)))
            else:
                folder = self.folders[0]
                written.append(self.snapshot_store.save(
                    folder.path, view_mode, list(roots),
                    self._side_table_for(folder, view_mode)))
        except OSError as e:
            logger.warning("Could not save explorer snapshot: %s", e)
        return written

    async def wait_until_live(self) -> None:
        """Wait for the warm-start switch to live data, if one is running."""
        if self._warm_start_task is not None:
            await self._warm_start_task

    def close(self) -> List[Path]:
        """Stop scheduling and persist the tree. Call once at teardown."""
        if self._warm_start_task is not None and not self._warm_start_task.done():
            self._warm_start_task.cancel()
        self._scheduler.cancel()
        self._unregister_settings()
        return self.save_snapshot()

    def _load_snapshots(self) -> None:
        view_mode = self.settings.view_mode
        roots: List[NodeData] = []
        found = False

        if len(self.folders) > 1:
            for folder in self.folders:
                snapshot = self.snapshot_store.load(folder.path, view_mode)
                if snapshot is not None and snapshot.single_root \
                        and snapshot.roots[0].kind is NodeKind.WORKSPACE:
                    roots.append(snapshot.roots[0])
                    self._hierarchical_packages.update(snapshot.hierarchical_packages)
                    found = True
                else:
                    self._warn_mismatch(folder, snapshot)
                    roots.append(folder.to_node_data())
        elif self.folders:
            snapshot = self.snapshot_store.load(self.folders[0].path, view_mode)
            if snapshot is not None and not snapshot.single_root and snapshot.roots:
                roots = snapshot.roots
                self._hierarchical_packages.update(snapshot.hierarchical_packages)
                found = True
            else:
                self._warn_mismatch(self.folders[0], snapshot)

        if found:
            self._cached_root_items = [DataNode(data, self._context) for data in roots]
            self._serving_snapshot = True
            logger.info("Serving %d cached root(s) until the project service is ready", len(roots))

    @staticmethod
    def _warn_mismatch(folder: WorkspaceFolder, snapshot: Optional[Snapshot]) -> None:
        if snapshot is not None and snapshot.roots:
            logger.warning("Snapshot of %s does not match the workspace layout; ignoring it", folder.path)

    def _ensure_warm_start(self) -> None:
        if self._serving_snapshot and self._warm_start_task is None:
            self._warm_start_task = asyncio.ensure_future(self._finish_warm_start())

    async def _finish_warm_start(self) -> None:
        if not await self.service.ready():
            logger.info("Project service is not available; keeping the cached tree")
            return
        if not self._serving_snapshot:
            return
        logger.debug("Project service ready; switching to live data")
        self._serving_snapshot = False
        self.refresh(immediate=True)

    async def _get_root_nodes(self) -> List[DataNode]:
        async with self._lock:
            if self._root_items is not None:
                return self._root_items

            previous = self._previous_root_data()
            if len(self.folders) > 1:
                by_uri = {data.uri: data for data in previous or []}
                datas = [by_uri.get(folder.uri) or folder.to_node_data() for folder in self.folders]
            elif self.folders:
                listed = await self.service.list_children(self.folders[0].to_node_data())
                fresh = None
                if listed is not None:
                    fresh = [item if isinstance(item, NodeData) else NodeData.from_dict(item)
                             for item in listed]
                datas = reconcile_children(previous, fresh, self.service.resource_exists) or []
            else:
                datas = []

            self._previous_roots = datas
            self._cached_root_items = None
            self._root_items = [DataNode(data, self._context) for data in datas]
            return self._root_items

    def _previous_root_data(self) -> Optional[List[NodeData]]:
        if self._previous_roots is not None:
            return self._previous_roots
        if self._cached_root_items:
            return [node.node_data for node in self._cached_root_items]
        return None

    def _current_root_data(self) -> Optional[List[NodeData]]:
        items = self._root_items or self._cached_root_items
        if items:
            return [node.node_data for node in items]
        # A root refresh fired and the roots were not read again since
        return self._previous_roots

    def _remember_hierarchical_package(self, node: DataNode) -> None:
        data = node.node_data
        self._hierarchical_packages[node.uri] = dataclasses.replace(
            data, children=list(data.fetched_children()))

    def _side_table_for(self, folder: WorkspaceFolder,
                        view_mode: ViewMode) -> Optional[Dict[str, HierarchicalPackageNodeData]]:
        if view_mode is not ViewMode.HIERARCHICAL:
            return None
        if len(self.folders) == 1:
            return dict(self._hierarchical_packages)
        folder_path = Path(folder.path).absolute()
        table = {}
        for uri, data in self._hierarchical_packages.items():
            path = uri_to_path(uri)
            if path is not None and path.absolute().is_relative_to(folder_path):
                table[uri] = data
        return table

    def _do_refresh(self, target: Any) -> None:
        if target is ROOT:
            self._root_items = None
            self.path_index.remove_node_children(None)
        else:
            self.path_index.remove_node_children(target)
        self.on_tree_changed.fire(target)

    def _on_settings_changed(self, updated: ExplorerConfig, previous: ExplorerConfig) -> None:
        if updated.refresh_delay != previous.refresh_delay:
            self._scheduler.set_delay(updated.refresh_delay)
        if updated.hierarchical_view != previous.hierarchical_view:
            self._context.view_mode = updated.view_mode
            self.refresh()
