"""
View graph data structure

Views are nodes; a TwoViewInfo observation between two views is an
undirected edge. Connectivity is derived from the edges on demand and never
stored.
"""

import logging
from collections import defaultdict
from typing import Dict, Optional, Set

from ..types import TwoViewInfo, ViewId, ViewIdPair
from .remove_disconnected_view_pairs import remove_disconnected_view_pairs

logger = logging.getLogger(__name__)


class ViewGraph:
    """
    Undirected graph of pairwise view observations
    """

    def __init__(self):
        self.edges: Dict[ViewIdPair, TwoViewInfo] = {}
        self._neighbors: Dict[ViewId, Set[ViewId]] = defaultdict(set)

    def add_edge(self, view_id1: ViewId, view_id2: ViewId, info: TwoViewInfo) -> None:
        """Add or replace the observation between two distinct views"""
        view_id_pair = ViewIdPair(view_id1, view_id2)
        self.edges[view_id_pair] = info
        self._neighbors[view_id_pair.first].add(view_id_pair.second)
        self._neighbors[view_id_pair.second].add(view_id_pair.first)

    def remove_edge(self, view_id1: ViewId, view_id2: ViewId) -> bool:
        """Remove an edge; returns False if it did not exist"""
        view_id_pair = ViewIdPair(view_id1, view_id2)
        if view_id_pair not in self.edges:
            return False

        del self.edges[view_id_pair]
        self._unlink(view_id_pair.first, view_id_pair.second)
        return True

    def get_edge(self, view_id1: ViewId, view_id2: ViewId) -> Optional[TwoViewInfo]:
        return self.edges.get(ViewIdPair(view_id1, view_id2))

    def has_view(self, view_id: ViewId) -> bool:
        return view_id in self._neighbors

    def view_ids(self) -> Set[ViewId]:
        return set(self._neighbors.keys())

    def get_neighbor_ids(self, view_id: ViewId) -> Set[ViewId]:
        """Views sharing an edge with view_id (empty for unknown views)"""
        return set(self._neighbors.get(view_id, ()))

    def num_views(self) -> int:
        return len(self._neighbors)

    def num_edges(self) -> int:
        return len(self.edges)

    def remove_disconnected_view_pairs(self) -> Set[ViewId]:
        """Keep only the largest connected component; returns removed views"""
        removed_view_ids = remove_disconnected_view_pairs(self.edges)
        for view_id in removed_view_ids:
            self._neighbors.pop(view_id, None)
        return removed_view_ids

    def _unlink(self, view_id1: ViewId, view_id2: ViewId) -> None:
        for view_id, other_id in ((view_id1, view_id2), (view_id2, view_id1)):
            self._neighbors[view_id].discard(other_id)
            if not self._neighbors[view_id]:
                del self._neighbors[view_id]

    def __repr__(self) -> str:
        return f"ViewGraph(views={self.num_views()}, edges={self.num_edges()})"
