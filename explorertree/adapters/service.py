"""Backing project service abstraction.

Defines how the explorer tree talks to the (slow) language service that
knows the real project structure. Implementations only need to list a
node's children and report readiness; the tree does the caching.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from ..core.node_data import NodeData


def uri_to_path(uri: Optional[str]) -> Optional[Path]:
    """Convert a ``file:`` uri to a local path.

    Args:
        uri: Resource locator, possibly None

    Returns:
        Path for file uris, None for anything else
    """
    if not uri:
        return None
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        return None
    path = url2pathname(parsed.path)
    if parsed.netloc and parsed.netloc != "localhost":
        # UNC share
        path = f"//{parsed.netloc}{path}"
    return Path(path)


class ProjectService(ABC):
    """Abstract base class for backing project services.

    The service is the source of truth for project structure. It may be
    slow and may not be ready at startup; the explorer keeps serving
    cached data until ``ready()`` resolves True.
    """

    @abstractmethod
    async def list_children(self, parent: NodeData) -> List[NodeData]:
        """List the children of a node.

        For a WORKSPACE node this returns the projects of that workspace
        folder. Implementations route the query by ``parent.query_key``.

        Args:
            parent: Node whose children are requested

        Returns:
            Fresh child NodeData, children of which are not loaded

        Raises:
            Exception: Any failure; callers degrade to cached data
        """
        pass

    @abstractmethod
    async def ready(self) -> bool:
        """Wait until the service can answer queries.

        Returns:
            True once ready, False if the service will never be available
        """
        pass

    def resource_exists(self, uri: Optional[str]) -> bool:
        """Check whether the resource behind a uri still exists.

        Used synchronously by reconciliation to prune cached entries
        that were deleted while the service was not looking. Non-file
        uris cannot be checked and are assumed to exist.

        Args:
            uri: Resource locator of a cached entry

        Returns:
            True if the resource exists or cannot be checked
        """
        path = uri_to_path(uri)
        if path is None:
            return uri is not None
        return path.exists()

    async def close(self):
        """Clean up service resources.

        Override if the service holds connections or processes.
        """
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
