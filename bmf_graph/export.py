from __future__ import annotations

import hashlib
from dataclasses import asdict
from typing import Any, Optional

from .epics import epic_of
from .graph_builder import reference_status
from .layout import LayoutResult
from .mermaid_fmt import (
    mm_class_apply,
    mm_class_def,
    mm_comment,
    mm_flow_edge,
    mm_flow_node,
    mm_init,
    mm_safe_id,
    mm_subgraph_open,
)
from .model import Graph, Issue, Reference

TYPE_COLORS: tuple[str, ...] = (
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
    "#ef4444",
    "#f97316",
    "#eab308",
    "#22c55e",
    "#14b8a6",
    "#06b6d4",
    "#6366f1",
    "#a855f7",
    "#f43f5e",
)


def type_color(entity_type: str) -> str:
    """Stable palette color for an entity type."""
    digest = hashlib.sha256(entity_type.encode("utf-8")).digest()
    return TYPE_COLORS[int.from_bytes(digest[:4], "big") % len(TYPE_COLORS)]


def graph_to_dict(
    graph: Graph,
    layout: Optional[LayoutResult] = None,
    *,
    dangling: Optional[list[Reference]] = None,
    issues: Optional[list[Issue]] = None,
) -> dict[str, Any]:
    """JSON-ready view of the graph for a rendering collaborator."""
    node_ids = graph.node_ids()
    positions = layout.positions if layout else {}

    nodes: list[dict[str, Any]] = []
    for node in graph.nodes:
        entry = asdict(node)
        entry["reference_status"] = reference_status(node, node_ids)
        if layout is not None:
            x, y = positions.get(node.id, (0.0, 0.0))
            entry["position"] = {"x": x, "y": y}
        nodes.append(entry)

    edges = [{"id": edge.id, **asdict(edge)} for edge in graph.edges]

    out: dict[str, Any] = {"nodes": nodes, "edges": edges}
    if layout is not None:
        out["communities"] = layout.communities
        out["epics"] = {epic: asdict(stats) for epic, stats in layout.epic_stats.items()}
    if dangling is not None:
        out["dangling_references"] = [asdict(ref) for ref in dangling]
    if issues is not None:
        out["issues"] = [asdict(iss) for iss in issues]
    return out


def render_mermaid(
    graph: Graph, communities: Optional[dict[str, list[str]]] = None
) -> str:
    """Render the graph as a Mermaid flowchart, one subgraph per epic.

    With more than one community, epics are nested inside a subgraph per
    community.
    """
    used: set[str] = set()
    mm_ids = {node.id: mm_safe_id(node.id, used) for node in graph.nodes}

    by_epic: dict[str, list[str]] = {}
    for node in graph.nodes:
        by_epic.setdefault(epic_of(node), []).append(node.id)

    labels = {node.id: f"{node.type} · {node.name}" for node in graph.nodes}

    lines: list[str] = [
        mm_init(flowchart={"curve": "basis", "useMaxWidth": False}),
        "flowchart LR",
    ]

    def emit_epic(epic: str, indent: str) -> None:
        members = by_epic.get(epic)
        if not members:
            return
        lines.append(indent + mm_subgraph_open(mm_safe_id(f"epic_{epic}", used), epic).lstrip())
        lines.append(f"{indent}  direction LR")
        for node_id in members:
            lines.append(f"{indent}  {mm_flow_node(mm_ids[node_id], labels[node_id])}")
        lines.append(f"{indent}end")

    if communities and len(communities) > 1:
        for community_id, epics in communities.items():
            lines.append(mm_subgraph_open(mm_safe_id(community_id, used), community_id))
            for epic in epics:
                emit_epic(epic, "    ")
            lines.append("  end")
    else:
        for epic in by_epic:
            emit_epic(epic, "  ")

    for edge in graph.edges:
        lines.append(
            mm_flow_edge(mm_ids[edge.source], mm_ids[edge.target], edge.source_element)
        )

    by_type: dict[str, list[str]] = {}
    for node in graph.nodes:
        by_type.setdefault(node.type, []).append(mm_ids[node.id])
    for entity_type in sorted(by_type):
        class_name = mm_safe_id(f"type_{entity_type}", used)
        lines.append(mm_class_def(class_name, f"stroke:{type_color(entity_type)},stroke-width:2px"))
        lines.append(mm_class_apply(by_type[entity_type], class_name))

    if not graph.nodes:
        lines.append(mm_comment("no visible entities"))

    return "\n".join(lines)
