"""
View graph construction and connectivity filtering
"""

from .connected_components import ConnectedComponents
from .remove_disconnected_view_pairs import (
    remove_disconnected_view_pairs,
    filter_to_largest_connected_component,
)
from .view_graph import ViewGraph

__all__ = [
    "ConnectedComponents",
    "ViewGraph",
    "remove_disconnected_view_pairs",
    "filter_to_largest_connected_component",
]
