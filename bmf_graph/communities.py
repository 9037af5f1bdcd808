from __future__ import annotations

from dataclasses import dataclass

from .constants import (
    MAX_COMMUNITY_SIZE,
    MAX_WEAK_NEIGHBOURS,
    STRONG_TIE_WEIGHT,
    TRIVIAL_COMMUNITY_ID,
    TRIVIAL_EPIC_COUNT,
)
from .epics import EpicStats


@dataclass(frozen=True)
class CommunityConfig:
    """Knobs for the greedy epic grouping.

    The defaults are inherited heuristics; tests pin behaviour for them.
    """

    trivial_epic_count: int = TRIVIAL_EPIC_COUNT
    strong_tie_weight: int = STRONG_TIE_WEIGHT
    max_weak_neighbours: int = MAX_WEAK_NEIGHBOURS
    max_community_size: int = MAX_COMMUNITY_SIZE


def detect_epic_communities(
    epic_stats: dict[str, EpicStats], config: CommunityConfig = CommunityConfig()
) -> dict[str, list[str]]:
    """Partition epics into layout groups with a single greedy pass.

    This is an approximation, not a modularity optimum. Epics are visited in
    descending centrality; each unassigned one seeds a community and pulls in
    its heaviest unassigned neighbours: strong ties always, weak ties only to
    avoid singletons, up to `max_community_size` members.
    """
    epics = list(epic_stats.keys())

    if len(epics) <= config.trivial_epic_count:
        return {TRIVIAL_COMMUNITY_ID: epics}

    communities: dict[str, list[str]] = {}
    assigned: set[str] = set()

    ordered = sorted(epics, key=lambda e: -epic_stats[e].centrality)

    for epic in ordered:
        if epic in assigned:
            continue

        community = [epic]
        assigned.add(epic)

        connections = sorted(
            (
                (other, weight)
                for other, weight in epic_stats[epic].connected_epics.items()
                if other not in assigned
            ),
            key=lambda item: -item[1],
        )

        added = 0
        for other, weight in connections:
            if other in assigned:
                continue

            if weight >= config.strong_tie_weight or added < config.max_weak_neighbours:
                community.append(other)
                assigned.add(other)
                added += 1

            if len(community) >= config.max_community_size:
                break

        communities[f"community-{len(communities)}"] = community

    return communities
