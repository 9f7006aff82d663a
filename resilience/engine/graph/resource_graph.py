"""
Resource graph snapshot.

Holds the nodes and edges discovered across providers and indexes them by
identifier so the DR analyzer, recovery planner and incident correlator can
query adjacency without holding direct references between records.

Edges whose endpoints are not present in the snapshot ("dangling" edges)
are kept in a separate list and skipped by every query. Discovery of one
provider can fail while another succeeds, so dangling references are a
normal condition and are only logged.

Example:
    >>> graph = ResourceGraph(nodes, edges)
    >>> graph.neighbors("db-1", relationship_types={"replicates-to"})
    ['db-2']
    >>> east = graph.subgraph(lambda n: n.region == "us-east-1")
"""

from collections import defaultdict
from typing import Callable, Iterable, Optional

import networkx as nx
import structlog

from resilience.exceptions import DuplicateResourceError
from resilience.models.graph import ResourceEdge, ResourceNode

logger = structlog.get_logger()

OUTGOING = "out"
INCOMING = "in"
BOTH = "both"


class ResourceGraph:
    """
    Immutable, identifier-indexed resource graph.

    The graph is built once from node and edge lists; rebuilding is the
    only way to change its content. Adjacency is indexed in both directions
    and by relationship type.

    Attributes:
        logger: Structured logger for observability
    """

    def __init__(
        self,
        nodes: Iterable[ResourceNode],
        edges: Iterable[ResourceEdge] = (),
    ):
        """
        Build adjacency indices for a snapshot.

        Args:
            nodes: Resource nodes; identifiers must be unique
            edges: Relationship edges; unresolved endpoints are tolerated

        Raises:
            DuplicateResourceError: If two nodes share an identifier
        """
        self.logger = structlog.get_logger()
        self._nodes: dict[str, ResourceNode] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise DuplicateResourceError(node.id)
            self._nodes[node.id] = node

        self._edges: tuple[ResourceEdge, ...] = tuple(edges)
        self._resolved: list[ResourceEdge] = []
        self._dangling: list[ResourceEdge] = []
        self._out: dict[str, dict[str, list[ResourceEdge]]] = defaultdict(lambda: defaultdict(list))
        self._in: dict[str, dict[str, list[ResourceEdge]]] = defaultdict(lambda: defaultdict(list))

        for edge in self._edges:
            if edge.source_id in self._nodes and edge.target_id in self._nodes:
                self._resolved.append(edge)
                self._out[edge.source_id][edge.relationship_type].append(edge)
                self._in[edge.target_id][edge.relationship_type].append(edge)
            else:
                self._dangling.append(edge)

        # Undirected view used for hop-distance queries
        self._topology = nx.Graph()
        self._topology.add_nodes_from(self._nodes)
        self._topology.add_edges_from((e.source_id, e.target_id) for e in self._resolved)

        if self._dangling:
            self.logger.warning(
                "dangling_edges_detected",
                dangling_count=len(self._dangling),
                sample=[
                    f"{e.source_id}->{e.target_id}" for e in self._dangling[:5]
                ],
            )

        self.logger.debug(
            "resource_graph_built",
            node_count=len(self._nodes),
            edge_count=len(self._resolved),
            dangling_count=len(self._dangling),
        )

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def nodes(self) -> list[ResourceNode]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    @property
    def edges(self) -> list[ResourceEdge]:
        """All edges, including dangling ones."""
        return list(self._edges)

    @property
    def resolved_edges(self) -> list[ResourceEdge]:
        """Edges whose endpoints both exist in the snapshot."""
        return list(self._resolved)

    @property
    def dangling_edges(self) -> list[ResourceEdge]:
        """Edges with at least one unknown endpoint."""
        return list(self._dangling)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Optional[ResourceNode]:
        """Look up a node by identifier, None if absent."""
        return self._nodes.get(node_id)

    def relationship_types(self) -> set[str]:
        """Relationship types present on resolved edges."""
        return {edge.relationship_type for edge in self._resolved}

    def outgoing(
        self, node_id: str, relationship_types: Optional[Iterable[str]] = None
    ) -> list[ResourceEdge]:
        """Resolved edges leaving a node, optionally filtered by type."""
        return self._collect(self._out, node_id, relationship_types)

    def incoming(
        self, node_id: str, relationship_types: Optional[Iterable[str]] = None
    ) -> list[ResourceEdge]:
        """Resolved edges entering a node, optionally filtered by type."""
        return self._collect(self._in, node_id, relationship_types)

    def neighbors(
        self,
        node_id: str,
        relationship_types: Optional[Iterable[str]] = None,
        direction: str = OUTGOING,
    ) -> list[str]:
        """
        Identifiers of adjacent nodes.

        Args:
            node_id: Node to start from
            relationship_types: Restrict to these relationship types
            direction: "out", "in" or "both"

        Returns:
            Sorted, de-duplicated neighbor identifiers
        """
        types = set(relationship_types) if relationship_types is not None else None
        found: set[str] = set()
        if direction in (OUTGOING, BOTH):
            found.update(e.target_id for e in self.outgoing(node_id, types))
        if direction in (INCOMING, BOTH):
            found.update(e.source_id for e in self.incoming(node_id, types))
        return sorted(found)

    def nodes_in_region(self, region: str) -> list[ResourceNode]:
        return [node for node in self._nodes.values() if node.region == region]

    def subgraph(self, predicate: Callable[[ResourceNode], bool]) -> "ResourceGraph":
        """
        Extract the nodes matching a predicate and the edges between them.

        Edges with one endpoint outside the selection are dropped rather
        than carried over as dangling.
        """
        return self.subgraph_by_ids(n.id for n in self._nodes.values() if predicate(n))

    def subgraph_by_ids(self, node_ids: Iterable[str]) -> "ResourceGraph":
        selected = {node_id for node_id in node_ids if node_id in self._nodes}
        nodes = [node for node in self._nodes.values() if node.id in selected]
        edges = [
            e for e in self._resolved
            if e.source_id in selected and e.target_id in selected
        ]
        return ResourceGraph(nodes, edges)

    def hop_distance(
        self, source_id: str, target_id: str, max_hops: Optional[int] = None
    ) -> Optional[int]:
        """
        Undirected hop count between two nodes over resolved edges.

        Returns:
            Number of hops, or None if either node is unknown or no path
            exists within ``max_hops``
        """
        if source_id not in self._nodes or target_id not in self._nodes:
            return None
        if source_id == target_id:
            return 0
        lengths = nx.single_source_shortest_path_length(
            self._topology, source_id, cutoff=max_hops
        )
        return lengths.get(target_id)

    def within_hops(self, source_id: str, target_id: str, max_hops: int) -> bool:
        return self.hop_distance(source_id, target_id, max_hops) is not None

    @staticmethod
    def _collect(
        index: dict[str, dict[str, list[ResourceEdge]]],
        node_id: str,
        relationship_types: Optional[Iterable[str]],
    ) -> list[ResourceEdge]:
        by_type = index.get(node_id)
        if not by_type:
            return []
        if relationship_types is None:
            return [edge for edges in by_type.values() for edge in edges]
        return [edge for rel in relationship_types for edge in by_type.get(rel, [])]
