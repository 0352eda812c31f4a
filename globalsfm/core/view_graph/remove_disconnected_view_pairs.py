"""
Prune a view graph to its largest connected component

Global position estimation needs a single connected component: views that
are not linked to the rest of the graph have no constraint relating their
position to the others.
"""

import logging
from collections import Counter
from typing import Dict, Hashable, Mapping, MutableMapping, Set, Tuple

from ..types import TwoViewInfo, ViewId
from .connected_components import ConnectedComponents

logger = logging.getLogger(__name__)


def _largest_component(
    view_pairs: Mapping[Tuple[ViewId, ViewId], TwoViewInfo],
) -> Tuple[ConnectedComponents, Dict[Hashable, Set[ViewId]], Hashable]:
    """
    Compute the components of the view graph and pick the largest one

    The largest component has the most view pairs. Ties go to the component
    with more views, then to the one holding the lowest view id.
    """
    connected_components = ConnectedComponents()
    for view_id1, view_id2 in view_pairs:
        connected_components.add_edge(view_id1, view_id2)

    components = connected_components.extract()
    edges_per_root = Counter(connected_components.find_root(view_id1) for view_id1, _ in view_pairs)

    largest_root = min(
        components,
        key=lambda root: (-edges_per_root[root], -len(components[root]), min(components[root])),
    )
    return connected_components, components, largest_root


def remove_disconnected_view_pairs(
    view_pairs: MutableMapping[Tuple[ViewId, ViewId], TwoViewInfo],
) -> Set[ViewId]:
    """
    Remove every view pair outside the largest connected component (in place)

    Args:
        view_pairs: {ViewIdPair: TwoViewInfo}, modified in place

    Returns:
        Set of view ids that were removed from the graph
    """
    if len(view_pairs) == 0:
        return set()

    connected_components, components, largest_root = _largest_component(view_pairs)

    pairs_to_remove = [
        view_id_pair for view_id_pair in view_pairs
        if connected_components.find_root(view_id_pair[0]) != largest_root
    ]
    for view_id_pair in pairs_to_remove:
        del view_pairs[view_id_pair]

    removed_view_ids = set()
    for root, view_ids in components.items():
        if root != largest_root:
            removed_view_ids.update(view_ids)

    if pairs_to_remove:
        logger.info(
            f"Removed {len(pairs_to_remove)} view pairs and {len(removed_view_ids)} views "
            f"outside the largest connected component ({len(components)} components)"
        )
    else:
        logger.debug("View graph is a single connected component")

    return removed_view_ids


def filter_to_largest_connected_component(
    view_pairs: Mapping[Tuple[ViewId, ViewId], TwoViewInfo],
) -> Dict[Tuple[ViewId, ViewId], TwoViewInfo]:
    """Copy of view_pairs restricted to the largest connected component"""
    filtered_view_pairs = dict(view_pairs)
    remove_disconnected_view_pairs(filtered_view_pairs)
    return filtered_view_pairs
