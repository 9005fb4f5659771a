#!/usr/bin/env python3
"""
Warm start example for explorertree.

This example demonstrates:
- Serving a cached tree while the project service is still starting
- Switching to live data once the service is ready
- Persisting the tree for the next session
"""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from explorertree import NodeKind, ProjectTreeProvider, WorkspaceFolder
from explorertree.testing import InMemoryProjectService, make_node


def build_service(root: Path, packages) -> InMemoryProjectService:
    """Scripted service for a workspace with one project."""
    service = InMemoryProjectService(latency=0.05)
    folder = WorkspaceFolder.from_path(root)
    project = make_node(NodeKind.PROJECT, "app", root / "app")
    src = make_node(NodeKind.PACKAGE_ROOT, "src", root / "app" / "src")
    service.set_children(folder.uri, [project])
    service.set_children(project.uri, [src])
    service.set_children(src.uri, [
        make_node(NodeKind.PACKAGE, name, root / "app" / "src" / name.replace(".", "/"))
        for name in packages
    ])
    return service


async def print_tree(provider, element=None, indent=0):
    for node in await provider.get_children(element):
        print(f"{'  ' * indent}{node.kind.name.lower():<13} {await node.display_name()}")
        if not node.is_leaf():
            await print_tree(provider, node, indent + 1)


async def main():
    """Run two sessions against the same workspace folder."""
    root = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(tempfile.mkdtemp())
    folder = WorkspaceFolder.from_path(root)

    print(f"Workspace: {root}")
    print("-" * 50)

    # Session 1: no snapshot yet, the tree comes straight from the service
    service = build_service(root, ["com.acme.core"])
    service.mark_ready()
    provider = ProjectTreeProvider([folder], service)
    await print_tree(provider)
    written = provider.close()
    print(f"\nSaved snapshot: {written[0]}")

    # Session 2: the service is slow to start, the snapshot is shown first
    service = build_service(root, ["com.acme.core", "com.acme.web"])
    provider = ProjectTreeProvider([folder], service)
    provider.on_tree_changed.subscribe(lambda target: print(f"\n[tree changed: {target!r}]"))

    print(f"\nServing snapshot: {provider.serving_snapshot}")
    await print_tree(provider)

    service.mark_ready()
    await provider.wait_until_live()

    print(f"Serving snapshot: {provider.serving_snapshot}")
    await print_tree(provider)
    provider.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
