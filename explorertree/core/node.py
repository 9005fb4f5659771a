"""Explorer tree nodes.

An ExplorerNode is the unit the tree widget manipulates. DataNode wraps one
NodeData and materializes child nodes from ``NodeData.children`` on demand,
fetching from the backing service and reconciling with what was cached.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..config import ViewMode
from ..reconcile import reconcile_children
from .lock import TreeLock
from .node_data import (
    FetchResult,
    HierarchicalPackageNodeData,
    KindCapabilities,
    NodeData,
    NodeKind,
    capabilities_of,
)

logger = logging.getLogger(__name__)


class MissingNodeFieldError(ValueError):
    """Raised when an operation needs a node field that is unset."""

    def __init__(self, field_name: str, operation: str, node_name: str):
        self.field_name = field_name
        self.operation = operation
        self.node_name = node_name
        super().__init__(
            f"The {field_name} of '{node_name}' is not available, cannot {operation}")


@dataclass
class TreeContext:
    """State shared by every node of one tree.

    ``service`` is expected to be error-resilient (see
    ErrorHandlingAdapter): a failed listing comes back as None.
    """

    service: Any
    lock: TreeLock
    view_mode: ViewMode = ViewMode.FLAT


class ExplorerNode(ABC):
    """Abstract base class for explorer tree nodes.

    Parent links are back-references only; a node is owned by its
    parent's child list.
    """

    def __init__(self, parent: Optional["ExplorerNode"] = None):
        self._parent = parent

    @abstractmethod
    async def identifier(self) -> str:
        """Get a stable identifier for this node."""
        pass

    @abstractmethod
    def is_leaf(self) -> bool:
        """Check if this node can never have children."""
        pass

    @abstractmethod
    async def get_children(self) -> List["ExplorerNode"]:
        """Load (or reload) and return the child nodes."""
        pass

    def get_parent(self) -> Optional["ExplorerNode"]:
        return self._parent

    def is_itself_or_ancestor_of(self, other: Optional["ExplorerNode"]) -> bool:
        """Check whether ``other`` is this node or lies below it."""
        while other is not None:
            if other is self:
                return True
            other = other.get_parent()
        return False

    async def display_name(self) -> str:
        """Get display name for this node.

        Default implementation returns the identifier.
        """
        return await self.identifier()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class DataNode(ExplorerNode):
    """Node backed by a NodeData record.

    All structural reads and writes of the child list run under the
    tree's TreeLock.
    """

    def __init__(self, node_data: NodeData, context: TreeContext,
                 parent: Optional["DataNode"] = None):
        super().__init__(parent)
        self._node_data = node_data
        self._context = context
        self._children_nodes: Optional[List["DataNode"]] = None

    @property
    def node_data(self) -> NodeData:
        return self._node_data

    @property
    def name(self) -> str:
        return self._node_data.name

    @property
    def kind(self) -> NodeKind:
        return self._node_data.kind

    @property
    def uri(self) -> Optional[str]:
        return self._node_data.uri

    @property
    def path(self) -> Optional[str]:
        return self._node_data.path

    @property
    def handler_identifier(self) -> Optional[str]:
        return self._node_data.handler_identifier

    @property
    def capabilities(self) -> KindCapabilities:
        return capabilities_of(self._node_data.kind)

    @property
    def is_hierarchical_package(self) -> bool:
        return isinstance(self._node_data, HierarchicalPackageNodeData)

    @property
    def children_nodes(self) -> Optional[List["DataNode"]]:
        """Child nodes materialized by the last expansion, if any."""
        return self._children_nodes

    async def identifier(self) -> str:
        return self.uri or f"{self.kind.name.lower()}:{self.name}"

    async def display_name(self) -> str:
        return self._node_data.label

    def is_leaf(self) -> bool:
        return not self.capabilities.loads_children

    def require_uri(self, operation: str) -> str:
        """Return the uri, failing loudly when it is unset.

        Raises:
            MissingNodeFieldError: If the node has no uri
        """
        if not self.uri:
            raise MissingNodeFieldError("uri", operation, self.name)
        return self.uri

    async def get_children(self) -> List["DataNode"]:
        """Fetch, reconcile with cached children, and rebuild the child nodes.

        Never raises for a failed fetch: the cached children, pruned of
        deleted resources, are used instead.
        """
        async with self._context.lock:
            fetch = await self._load_data()
            self._merge(fetch)
            self._children_nodes = self._create_child_node_list()
            return self._children_nodes

    async def get_child_node_list(self, cached_children: Optional[Sequence[NodeData]] = None
                                  ) -> List["DataNode"]:
        """Rebuild child nodes from the children already present, no fetch.

        Args:
            cached_children: Extra children kept outside the tree (the
                hierarchical package side table). Entries whose uri is
                not yet a child and whose resource exists are attached.
        """
        async with self._context.lock:
            if cached_children:
                self._attach(cached_children)
            self._children_nodes = self._create_child_node_list()
            return self._children_nodes

    async def reveal_paths(self, paths: Sequence[NodeData]) -> Optional["DataNode"]:
        """Walk down one path segment per level.

        Args:
            paths: Remaining segments, matched on (name, path)

        Returns:
            Deepest matched node, self when no segments remain, or None
            when a segment no longer exists
        """
        if not paths:
            return self
        head, rest = paths[0], paths[1:]
        children = await self.get_children()
        match = next((child for child in children
                      if child.name == head.name and child.path == head.path), None)
        if match is not None and rest:
            return await match.reveal_paths(rest)
        return match

    async def _load_data(self) -> FetchResult:
        if self.is_leaf():
            return FetchResult.loaded([])
        if self._node_data.query_key is None:
            # Synthetic node; nothing to ask the service about
            return FetchResult.unavailable()
        listed = await self._context.service.list_children(self._node_data)
        if listed is None:
            return FetchResult.unavailable()
        return FetchResult.loaded(
            item if isinstance(item, NodeData) else NodeData.from_dict(item)
            for item in listed)

    def _merge(self, fetch: FetchResult) -> None:
        data = self._node_data
        exists = self._context.service.resource_exists
        if isinstance(data, HierarchicalPackageNodeData):
            previous = data.fetched_children() if data.children is not None else None
            merged = reconcile_children(previous, fetch.children, exists)
            data.children = data.sub_packages() + (merged or [])
        else:
            data.children = reconcile_children(data.children, fetch.children, exists)
        if self.capabilities.sortable:
            data.sort_children()

    def _attach(self, cached_children: Sequence[NodeData]) -> None:
        data = self._node_data
        if data.children is None:
            data.children = []
        known = {child.uri for child in data.children if child.uri}
        exists = self._context.service.resource_exists
        for child in cached_children:
            if child.uri and child.uri not in known and exists(child.uri):
                data.children.append(child)
                known.add(child.uri)

    def _create_child_node_list(self) -> List["DataNode"]:
        children = self._node_data.children or []
        if self._context.view_mode is ViewMode.HIERARCHICAL and self.kind is NodeKind.PACKAGE_ROOT:
            packages = [c for c in children if c.kind is NodeKind.PACKAGE]
            others = [c for c in children if c.kind is not NodeKind.PACKAGE]
            children = HierarchicalPackageNodeData.from_package_list(packages).children + others
        return [DataNode(child, self._context, parent=self) for child in children]

    def __repr__(self) -> str:
        return f"DataNode({self.kind.name}, {self.name!r})"
