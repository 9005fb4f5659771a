"""Core abstractions for the explorer tree.

This module defines the node data model, the runtime node, and the lock
that serializes structural changes to the tree.
"""

from .node_data import (
    KIND_CAPABILITIES,
    FetchResult,
    HierarchicalPackageNodeData,
    KindCapabilities,
    NodeData,
    NodeKind,
    SnapshotFormatError,
    capabilities_of,
)
from .lock import LockNotHeldError, TreeLock
from .node import DataNode, ExplorerNode, MissingNodeFieldError, TreeContext

__all__ = [
    # Data model
    'NodeKind',
    'NodeData',
    'HierarchicalPackageNodeData',
    'FetchResult',
    'KindCapabilities',
    'KIND_CAPABILITIES',
    'capabilities_of',
    'SnapshotFormatError',
    # Nodes
    'ExplorerNode',
    'DataNode',
    'TreeContext',
    'MissingNodeFieldError',
    # Locking
    'TreeLock',
    'LockNotHeldError',
]
