from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .constants import CENTRALITY_EXTERNAL_WEIGHT, OTHER_EPIC
from .model import GraphEdge, GraphNode


@dataclass
class EpicStats:
    epic: str
    node_count: int = 0
    internal_edges: int = 0
    external_edges: int = 0
    centrality: int = 0
    # epic -> number of edges between this epic and that one (either direction)
    connected_epics: dict[str, int] = field(default_factory=dict)


def epic_of(node: GraphNode) -> str:
    return node.epic or OTHER_EPIC


def analyze_epic_connections(
    nodes: Iterable[GraphNode],
    edges: Iterable[GraphEdge],
    external_weight: int = CENTRALITY_EXTERNAL_WEIGHT,
) -> tuple[dict[str, EpicStats], dict[str, str]]:
    """Score each epic's internal/external connectivity.

    Returns (epic_stats, node_to_epic). Both dicts keep first-seen order, which
    downstream sorting relies on for tie-breaking.

    centrality = external_weight * external_edges + internal_edges. The default
    weight of 2 biases clustering toward epics with many links to other epics;
    it is a policy knob, not a derived value.
    """
    node_to_epic: dict[str, str] = {}
    epic_stats: dict[str, EpicStats] = {}

    for node in nodes:
        epic = epic_of(node)
        node_to_epic[node.id] = epic
        stats = epic_stats.setdefault(epic, EpicStats(epic=epic))
        stats.node_count += 1

    for edge in edges:
        source_epic = node_to_epic.get(edge.source)
        target_epic = node_to_epic.get(edge.target)
        if source_epic is None or target_epic is None:
            continue

        source_stats = epic_stats[source_epic]
        target_stats = epic_stats[target_epic]

        if source_epic == target_epic:
            source_stats.internal_edges += 1
            continue

        source_stats.external_edges += 1
        target_stats.external_edges += 1
        source_stats.connected_epics[target_epic] = (
            source_stats.connected_epics.get(target_epic, 0) + 1
        )
        target_stats.connected_epics[source_epic] = (
            target_stats.connected_epics.get(source_epic, 0) + 1
        )

    for stats in epic_stats.values():
        stats.centrality = stats.external_edges * external_weight + stats.internal_edges

    return epic_stats, node_to_epic
