"""Serializable description of explorer tree elements.

NodeData is what the backing service returns and what snapshots persist.
Runtime nodes (see node.py) wrap it; they are rebuilt freely while the
NodeData they wrap is kept alive by its parent's ``children`` list.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional


class SnapshotFormatError(ValueError):
    """Raised when persisted node data does not have the expected shape."""


class NodeKind(IntEnum):
    """Variant tag of a tree element.

    The numeric values define sibling order: children are sorted by kind
    first, then by name.
    """
    WORKSPACE = 1
    PROJECT = 2
    PACKAGE_ROOT = 3
    PACKAGE = 4
    PRIMARY_TYPE = 5
    COMPILATION_UNIT = 6
    CLASS_FILE = 7
    CONTAINER = 8
    FOLDER = 9
    FILE = 10


@dataclass(frozen=True)
class KindCapabilities:
    """What a node of a given kind is able to do."""

    loads_children: bool   # Expandable; children come from the service
    sortable: bool         # Children re-sorted after each structural change
    resource_backed: bool  # uri points at a file system resource


KIND_CAPABILITIES: Dict[NodeKind, KindCapabilities] = {
    NodeKind.WORKSPACE: KindCapabilities(loads_children=True, sortable=False, resource_backed=True),
    NodeKind.PROJECT: KindCapabilities(loads_children=True, sortable=True, resource_backed=True),
    NodeKind.PACKAGE_ROOT: KindCapabilities(loads_children=True, sortable=True, resource_backed=True),
    NodeKind.PACKAGE: KindCapabilities(loads_children=True, sortable=True, resource_backed=True),
    NodeKind.PRIMARY_TYPE: KindCapabilities(loads_children=False, sortable=False, resource_backed=True),
    NodeKind.COMPILATION_UNIT: KindCapabilities(loads_children=False, sortable=False, resource_backed=True),
    NodeKind.CLASS_FILE: KindCapabilities(loads_children=False, sortable=False, resource_backed=True),
    NodeKind.CONTAINER: KindCapabilities(loads_children=True, sortable=True, resource_backed=False),
    NodeKind.FOLDER: KindCapabilities(loads_children=True, sortable=True, resource_backed=True),
    NodeKind.FILE: KindCapabilities(loads_children=False, sortable=False, resource_backed=True),
}


def capabilities_of(kind: NodeKind) -> KindCapabilities:
    """Look up the capability set of a kind."""
    return KIND_CAPABILITIES[kind]


def sort_key(data: "NodeData"):
    """Sibling order: kind first, then name."""
    return (int(data.kind), data.name)


@dataclass
class NodeData:
    """One tree element as reported by the backing service.

    ``children is None`` means the children were never loaded. A list,
    even an empty one, is the authoritative child set until a refresh
    reloads it.
    """

    name: str
    kind: NodeKind
    uri: Optional[str] = None
    path: Optional[str] = None
    handler_identifier: Optional[str] = None
    display_name: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    children: Optional[List["NodeData"]] = None

    # JSON key for each optional attribute, in the order they are written
    _OPTIONAL_KEYS = (
        ("display_name", "displayName"),
        ("uri", "uri"),
        ("path", "path"),
        ("handler_identifier", "handlerIdentifier"),
        ("metadata", "metaData"),
    )

    @property
    def query_key(self) -> Optional[str]:
        """Identifier the backing service routes child queries by."""
        return self.handler_identifier or self.uri

    @property
    def is_loaded(self) -> bool:
        return self.children is not None

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def sort_children(self) -> None:
        if self.children:
            self.children.sort(key=sort_key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape.

        Unset optional fields are omitted so that "children not loaded"
        survives a save/load cycle.
        """
        result: Dict[str, Any] = {"name": self.name}
        for attr, key in self._OPTIONAL_KEYS:
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        result["kind"] = int(self.kind)
        if self.children is not None:
            result["children"] = [child.to_dict() for child in self.children]
        return result

    @classmethod
    def from_dict(cls, raw: Any) -> "NodeData":
        """Build from the persisted JSON shape.

        Raises:
            SnapshotFormatError: If required fields are missing or invalid
        """
        if not isinstance(raw, dict):
            raise SnapshotFormatError(f"Expected an object, got {type(raw).__name__}")
        name = raw.get("name")
        if not isinstance(name, str):
            raise SnapshotFormatError(f"Node without a name: {raw!r}")
        try:
            kind = NodeKind(raw.get("kind"))
        except ValueError:
            raise SnapshotFormatError(f"Unknown node kind {raw.get('kind')!r} for {name!r}") from None

        children = raw.get("children")
        if children is not None:
            if not isinstance(children, list):
                raise SnapshotFormatError(f"children of {name!r} is not a list")
            children = [NodeData.from_dict(child) for child in children]

        kwargs = {attr: raw.get(key) for attr, key in cls._OPTIONAL_KEYS}
        return cls(name=name, kind=kind, children=children, **kwargs)


@dataclass
class HierarchicalPackageNodeData(NodeData):
    """A package shown nested under its parent package.

    Sub-packages are synthesized from dotted package names rather than
    fetched, so the fetched part of the children is cached separately,
    keyed by uri (see ProjectTreeProvider.hierarchical_packages).
    Intermediate packages that only exist as a name prefix have
    ``is_package`` False and no uri.
    """

    is_package: bool = False

    @classmethod
    def of_package(cls, package: NodeData, display_name: str) -> "HierarchicalPackageNodeData":
        return cls(
            name=package.name,
            kind=NodeKind.PACKAGE,
            uri=package.uri,
            path=package.path,
            handler_identifier=package.handler_identifier,
            display_name=display_name,
            metadata=package.metadata,
            children=[],
            is_package=True,
        )

    @classmethod
    def from_package_list(cls, packages: List[NodeData]) -> "HierarchicalPackageNodeData":
        """Fold flat packages into a tree by name segment.

        ``com.acme`` and ``com.acme.util`` become ``com.acme`` with child
        ``util``. Chains of intermediate packages with a single child are
        compressed into one node (``com.acme`` rather than ``com`` > ``acme``).

        Returns:
            Synthetic root whose children are the top-level packages
        """
        root = cls(name="", kind=NodeKind.PACKAGE, children=[])
        for package in packages:
            root._add_sub_package(package.name.split("."), package)
        for child in root.children:
            child._compress()
        return root

    @classmethod
    def from_dict(cls, raw: Any) -> "HierarchicalPackageNodeData":
        data = super().from_dict(raw)
        data.is_package = data.uri is not None
        return data

    def sub_packages(self) -> List["HierarchicalPackageNodeData"]:
        return [c for c in (self.children or []) if isinstance(c, HierarchicalPackageNodeData)]

    def fetched_children(self) -> List[NodeData]:
        return [c for c in (self.children or []) if not isinstance(c, HierarchicalPackageNodeData)]

    def _add_sub_package(self, segments: List[str], package: NodeData) -> None:
        segment = segments[0]
        rest = segments[1:]
        child = next((c for c in self.sub_packages() if c.display_name == segment), None)
        if child is None:
            name = f"{self.name}.{segment}" if self.name else segment
            child = HierarchicalPackageNodeData(
                name=name, kind=NodeKind.PACKAGE, display_name=segment, children=[])
            self.children.append(child)
        if rest:
            child._add_sub_package(rest, package)
        else:
            child.uri = package.uri
            child.path = package.path
            child.handler_identifier = package.handler_identifier
            child.metadata = package.metadata
            child.is_package = True

    def _compress(self) -> None:
        while not self.is_package and len(self.children) == 1:
            only = self.children[0]
            self.display_name = f"{self.display_name}.{only.display_name}"
            self.name = only.name
            self.uri = only.uri
            self.path = only.path
            self.handler_identifier = only.handler_identifier
            self.metadata = only.metadata
            self.is_package = only.is_package
            self.children = only.children
        for child in self.sub_packages():
            child._compress()


@dataclass(frozen=True)
class FetchResult:
    """Outcome of asking the backing service for a node's children.

    A loaded empty list is a legitimately empty container. ``unavailable``
    means the fetch failed or the service could not answer; reconciliation
    then falls back to the cached children.
    """

    children: Optional[List[NodeData]]
    error: Optional[BaseException] = None

    @classmethod
    def loaded(cls, children: List[NodeData]) -> "FetchResult":
        return cls(children=list(children))

    @classmethod
    def unavailable(cls, error: Optional[BaseException] = None) -> "FetchResult":
        return cls(children=None, error=error)

    @property
    def ok(self) -> bool:
        return self.children is not None
