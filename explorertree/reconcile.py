"""Merge cached children with freshly fetched ones.

The cached side may hold whole loaded subtrees (from a snapshot or an
earlier expansion). Reconciliation keeps those subtrees wherever the
fresh listing still reports the same uri, so node identity and loaded
grandchildren survive a refresh. Cached entries the service did not
report are kept only while their resource still exists on disk.
"""

import logging
from typing import Callable, List, Optional, Sequence

from .core.node_data import NodeData

logger = logging.getLogger(__name__)

ResourceExists = Callable[[Optional[str]], bool]


def _same_entry(cached: NodeData, fresh: NodeData) -> bool:
    if cached.uri is not None or fresh.uri is not None:
        return cached.uri == fresh.uri
    # Synthetic entries have no uri to compare
    return cached.kind == fresh.kind and cached.name == fresh.name


def reconcile_children(previous: Optional[Sequence[NodeData]],
                       fresh: Optional[Sequence[NodeData]],
                       resource_exists: ResourceExists) -> Optional[List[NodeData]]:
    """Produce the new authoritative children of one parent.

    Args:
        previous: Children already attached to the parent, None if never loaded
        fresh: Children just fetched, None if the fetch was unavailable
        resource_exists: Existence check for a uri

    Returns:
        New children list (never one of the inputs), or None when
        neither side has anything
    """
    if previous is None:
        return list(fresh) if fresh is not None else None

    if fresh is None:
        kept = [entry for entry in previous
                if entry.uri is None or resource_exists(entry.uri)]
        _log_pruned(previous, kept)
        return kept

    result = list(fresh)
    matched = set()
    for j, entry in enumerate(fresh):
        for i, cached in enumerate(previous):
            if i not in matched and _same_entry(cached, entry):
                result[j] = cached
                matched.add(i)
                break

    pruned = 0
    for i, cached in enumerate(previous):
        if i in matched:
            continue
        if cached.uri is not None and resource_exists(cached.uri):
            result.append(cached)
        else:
            pruned += 1
    if pruned:
        logger.debug("Dropped %d cached children no longer reported or present", pruned)
    return result


def _log_pruned(previous: Sequence[NodeData], kept: List[NodeData]) -> None:
    dropped = len(previous) - len(kept)
    if dropped:
        logger.debug("Fetch unavailable; pruned %d cached children whose resource is gone", dropped)
