"""Nested-project relations as a networkx.DiGraph (parent -> child edges)."""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from slnkit.config import NestedRelation
from slnkit.dotnet.guids import normalize_guid


class NestingGraph:
    """Wrapper around networkx.DiGraph for ancestry queries on a solution."""

    def __init__(self) -> None:
        self.graph = nx.DiGraph()

    @classmethod
    def from_relations(cls, relations: Iterable[NestedRelation]) -> NestingGraph:
        """Build from relations; only the first parent recorded for a child counts."""
        ng = cls()
        for rel in relations:
            ng.add_relation(rel)
        return ng

    def add_relation(self, rel: NestedRelation) -> None:
        if self.parent(rel.child_guid) is not None:
            return
        self.graph.add_edge(rel.parent_guid, rel.child_guid)

    def parent(self, guid: str) -> str | None:
        guid = normalize_guid(guid)
        if not self.graph.has_node(guid):
            return None
        preds = list(self.graph.predecessors(guid))
        return preds[0] if preds else None

    def children(self, guid: str) -> list[str]:
        guid = normalize_guid(guid)
        if not self.graph.has_node(guid):
            return []
        return list(self.graph.successors(guid))

    def descendants(self, guid: str) -> set[str]:
        guid = normalize_guid(guid)
        if not self.graph.has_node(guid):
            return set()
        return set(nx.descendants(self.graph, guid))

    def would_create_cycle(self, child_guid: str, parent_guid: str) -> bool:
        """True if making `parent_guid` the parent of `child_guid` closes a loop."""
        child_guid = normalize_guid(child_guid)
        parent_guid = normalize_guid(parent_guid)
        if child_guid == parent_guid:
            return True
        if not self.graph.has_node(child_guid) or not self.graph.has_node(parent_guid):
            return False
        return nx.has_path(self.graph, child_guid, parent_guid)

    def cycles(self) -> list[list[str]]:
        return list(nx.simple_cycles(self.graph))
