"""
Connected components via union-find (path compression + union by rank)
"""

from collections import defaultdict
from typing import Dict, Hashable, Set


class ConnectedComponents:
    """
    Incremental connected components over hashable node ids

    Nodes are created on first use. add_edge merges the components of its
    endpoints; extract groups every node by its root.
    """

    def __init__(self):
        self.parent: Dict[Hashable, Hashable] = {}
        self.rank: Dict[Hashable, int] = {}

    def add_node(self, node: Hashable) -> None:
        if node not in self.parent:
            self.parent[node] = node
            self.rank[node] = 0

    def find_root(self, node: Hashable) -> Hashable:
        """Root of the node's component; compresses the visited path"""
        self.add_node(node)

        root = node
        while self.parent[root] != root:
            root = self.parent[root]

        while self.parent[node] != root:
            next_node = self.parent[node]
            self.parent[node] = root
            node = next_node

        return root

    def add_edge(self, node1: Hashable, node2: Hashable) -> None:
        root1 = self.find_root(node1)
        root2 = self.find_root(node2)
        if root1 == root2:
            return

        if self.rank[root1] < self.rank[root2]:
            self.parent[root1] = root2
        elif self.rank[root1] > self.rank[root2]:
            self.parent[root2] = root1
        else:
            self.parent[root2] = root1
            self.rank[root1] += 1

    def extract(self) -> Dict[Hashable, Set[Hashable]]:
        """Components as {root: set of node ids}"""
        components = defaultdict(set)
        for node in self.parent:
            components[self.find_root(node)].add(node)
        return dict(components)

    def num_nodes(self) -> int:
        return len(self.parent)

    def __repr__(self) -> str:
        return f"ConnectedComponents(nodes={self.num_nodes()})"
