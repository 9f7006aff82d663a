"""Identifier-indexed resource graph snapshot."""

from resilience.engine.graph.resource_graph import BOTH, INCOMING, OUTGOING, ResourceGraph

__all__ = ["ResourceGraph", "OUTGOING", "INCOMING", "BOTH"]
