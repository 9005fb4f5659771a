"""explorertree - cached, incrementally refreshed project explorer trees.

Serves a project tree (workspace > project > package root > package >
type/file) from an on-disk snapshot while a slow backing service warms up,
then reconciles the snapshot against live data without losing loaded
subtrees, and coalesces bursts of refresh requests.

Typical use:
    provider = ProjectTreeProvider([WorkspaceFolder.from_path(root)], service)
    roots = await provider.get_children()
    ...
    provider.close()   # persists the snapshot
"""

__version__ = "0.3.0"

from .config import ExplorerConfig, Settings, ViewMode
from .core import (
    DataNode,
    ExplorerNode,
    FetchResult,
    HierarchicalPackageNodeData,
    LockNotHeldError,
    MissingNodeFieldError,
    NodeData,
    NodeKind,
    SnapshotFormatError,
    TreeContext,
    TreeLock,
)
from .adapters import ProjectService, uri_to_path
from .error_policies import (
    CollectErrorsPolicy,
    ContinueOnErrorsPolicy,
    ErrorPolicy,
    FailFastPolicy,
)
from .error_handling import ErrorHandlingAdapter, create_resilient_service
from .reconcile import reconcile_children
from .path_index import PathIndex
from .refresh import NO_NODE, ROOT, Debouncer, RefreshScheduler, TreeChangedEvent
from .snapshot import Snapshot, SnapshotStore
from .provider import ProjectTreeProvider, WorkspaceFolder

__all__ = [
    "__version__",
    # Configuration
    "ExplorerConfig",
    "Settings",
    "ViewMode",
    # Data model and nodes
    "NodeKind",
    "NodeData",
    "HierarchicalPackageNodeData",
    "FetchResult",
    "ExplorerNode",
    "DataNode",
    "TreeContext",
    "TreeLock",
    # Errors
    "MissingNodeFieldError",
    "LockNotHeldError",
    "SnapshotFormatError",
    "ErrorPolicy",
    "FailFastPolicy",
    "ContinueOnErrorsPolicy",
    "CollectErrorsPolicy",
    "ErrorHandlingAdapter",
    "create_resilient_service",
    # Backing service
    "ProjectService",
    "uri_to_path",
    # Engine
    "reconcile_children",
    "PathIndex",
    "Debouncer",
    "RefreshScheduler",
    "TreeChangedEvent",
    "ROOT",
    "NO_NODE",
    "Snapshot",
    "SnapshotStore",
    # Facade
    "ProjectTreeProvider",
    "WorkspaceFolder",
]
