"""Tree of the grid, stored as a networkx directed graph."""

from typing import Dict, List

import networkx as nx

from gridattack.core.errors import GraphError


class GridGraph:
    """
    Directed tree with edges from parent to child.

    Nodes are the agent indices and carry the agent kind as the ``kind``
    attribute. Indices must be added in creation order starting at zero.
    """

    def __init__(self):
        self.graph = nx.DiGraph()

    def add_node(self, kind, index: int) -> int:
        expected = self.graph.number_of_nodes()
        if index != expected:
            raise GraphError(f"node index {index} does not match the expected index {expected}")
        self.graph.add_node(index, kind=kind)
        return index

    def add_edge(self, parent: int, child: int) -> None:
        for node in (parent, child):
            if node not in self.graph:
                raise GraphError(f"edge {parent} -> {child} refers to unknown node {node}")
        self.graph.add_edge(parent, child)

    def get_children(self, index: int) -> List[int]:
        return sorted(self.graph.successors(index))

    def kind(self, index: int):
        return self.graph.nodes[index]["kind"]

    def depth_levels(self, root: int = 0) -> Dict[int, List[int]]:
        """Map depth to the sorted indices at that depth."""
        levels: Dict[int, List[int]] = {}
        for node, depth in nx.single_source_shortest_path_length(self.graph, root).items():
            levels.setdefault(depth, []).append(node)
        return {depth: sorted(nodes) for depth, nodes in sorted(levels.items())}

    def is_tree(self) -> bool:
        return self.graph.number_of_nodes() > 0 and nx.is_arborescence(self.graph)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()
