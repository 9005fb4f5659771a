"""Test fixtures for explorertree consumers.

These fixtures provide a scriptable in-memory project service and small
builders, so tree behavior can be tested without a language server.
"""

import asyncio
import dataclasses
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from ..adapters.service import ProjectService
from ..core.node_data import NodeData, NodeKind


def file_uri(path: Union[str, Path]) -> str:
    """``file:`` uri of a path (made absolute)."""
    return Path(path).absolute().as_uri()


def make_node(kind: NodeKind, name: str, location: Optional[Union[str, Path]] = None,
              children: Optional[List[NodeData]] = None, **fields) -> NodeData:
    """Build NodeData; ``location`` sets both path and file uri."""
    if location is not None:
        fields.setdefault("path", str(Path(location).absolute()))
        fields.setdefault("uri", file_uri(location))
    return NodeData(name=name, kind=kind, children=children, **fields)


class InMemoryProjectService(ProjectService):
    """Project service answering from a dict of listings.

    Listings are keyed by the parent's ``query_key``. Every call returns
    fresh copies with unloaded children, as a real service would.

    Example:
        service = InMemoryProjectService()
        service.set_children(workspace_uri, [project])
        service.set_children(project.uri, [package_a, package_b])
        service.mark_ready()
    """

    def __init__(self, ready: bool = False, latency: float = 0.0):
        """
        Args:
            ready: Resolve ready() immediately
            latency: Seconds each list_children call suspends for
        """
        self.listings: Dict[str, List[NodeData]] = {}
        self.failing: Set[str] = set()
        self.missing_uris: Set[str] = set()
        self.latency = latency
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._ready_event = asyncio.Event()
        self._ready_value = True
        if ready:
            self.mark_ready()

    def set_children(self, key: str, children: Iterable[NodeData]) -> None:
        self.listings[key] = list(children)

    def fail(self, key: str) -> None:
        """Make listings of ``key`` raise until recover() is called."""
        self.failing.add(key)

    def recover(self, key: str) -> None:
        self.failing.discard(key)

    def delete_resource(self, uri: str) -> None:
        """Make resource_exists() report ``uri`` as gone."""
        self.missing_uris.add(uri)

    def mark_ready(self, value: bool = True) -> None:
        self._ready_value = value
        self._ready_event.set()

    async def list_children(self, parent: NodeData) -> List[NodeData]:
        key = parent.query_key
        self.calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            else:
                await asyncio.sleep(0)
            if key in self.failing:
                raise ConnectionError(f"project service unavailable for {key}")
            return [dataclasses.replace(item, children=None) for item in self.listings.get(key, [])]
        finally:
            self.in_flight -= 1

    async def ready(self) -> bool:
        await self._ready_event.wait()
        return self._ready_value

    def resource_exists(self, uri: Optional[str]) -> bool:
        return uri is not None and uri not in self.missing_uris
