from __future__ import annotations

from typing import Any, Iterable, Optional

from .constants import INLINE_ENTITY_TYPE
from .model import (
    Component,
    FlatComponent,
    Graph,
    GraphEdge,
    GraphNode,
    ParsedBmf,
    Reference,
    ReferenceStatus,
)
from .patterns import extract_reference


def _as_branch(value: Any) -> list[Any]:
    return value if isinstance(value, list) else [value]


def flatten_conditions(
    conditions: list[Any], parent_id: str, depth: int
) -> list[FlatComponent]:
    """Flatten an effects list (strings and if/then/else records).

    A string becomes one `effect` row at `depth`. An `if` record becomes a
    `condition` row, then `then`/`else` marker rows at depth + 1 whose
    branches are expanded at depth + 2.
    """
    result: list[FlatComponent] = []

    for index, cond in enumerate(conditions):
        if isinstance(cond, str):
            ref = extract_reference(cond)
            result.append(
                FlatComponent(
                    id=f"{parent_id}_effect_{index}",
                    type="effect",
                    label=cond,
                    depth=depth,
                    reference=ref[0] if ref else None,
                    reference_type=ref[1] if ref else None,
                )
            )
            continue

        if not (isinstance(cond, dict) and "if" in cond):
            continue

        cond_id = f"{parent_id}_cond_{index}"
        result.append(
            FlatComponent(
                id=cond_id,
                type="condition",
                label=f"if: {cond['if']}",
                depth=depth,
            )
        )

        for branch in ("then", "else"):
            body = cond.get(branch)
            if not body:
                continue
            branch_id = f"{cond_id}_{branch}"
            result.append(
                FlatComponent(id=branch_id, type=branch, label=branch, depth=depth + 1)
            )
            result.extend(flatten_conditions(_as_branch(body), branch_id, depth + 2))

    return result


def flatten_components(
    components: Optional[list[Component]], depth: int = 0
) -> list[FlatComponent]:
    """Flatten a component tree depth-first; children sit at parent depth + 1."""
    if not components:
        return []

    result: list[FlatComponent] = []
    for comp in components:
        candidate = comp.action or (comp.value if isinstance(comp.value, str) else None)
        ref = extract_reference(candidate) if candidate else None

        result.append(
            FlatComponent(
                id=comp.id,
                type=comp.type,
                label=comp.label,
                depth=depth,
                reference=ref[0] if ref else None,
                reference_type=ref[1] if ref else None,
            )
        )

        if comp.type == "trigger" and isinstance(comp.value, list):
            result.extend(flatten_conditions(comp.value, comp.id, depth + 1))

        if comp.components:
            result.extend(flatten_components(comp.components, depth + 1))

    return result


def flatten_effects(effects: Optional[list[Any]], entity_id: str) -> list[FlatComponent]:
    if not effects:
        return []
    return flatten_conditions(effects, entity_id, 0)


def visible_entity_ids(parsed: ParsedBmf) -> set[str]:
    """Entities that become nodes: not inline components, and with components,
    effects, or at least one incoming reference."""
    visible: set[str] = set()
    for entity_id, entity in parsed.entities.items():
        if entity.type == INLINE_ENTITY_TYPE:
            continue
        if entity.components or entity.effects or entity_id in parsed.referenced_ids:
            visible.add(entity_id)
    return visible


def build_graph(parsed: ParsedBmf) -> Graph:
    """Build the navigation graph (nodes + deduplicated edges)."""
    visible = visible_entity_ids(parsed)
    graph = Graph()
    seen: set[tuple[str, str]] = set()

    # source -> {target: anchor component id}, first component wins.
    outgoing: dict[str, dict[str, str]] = {}

    for entity_id, entity in parsed.entities.items():
        if entity_id not in visible:
            continue

        flat = flatten_components(entity.components, 0) + flatten_effects(
            entity.effects, entity_id
        )
        graph.nodes.append(
            GraphNode(
                id=entity_id,
                type=entity.type,
                epic=entity.epic,
                name=entity.name,
                description=entity.description,
                tags=list(entity.tags),
                components=flat,
                has_components=bool(entity.components) or bool(entity.effects),
                is_referenced=entity_id in parsed.referenced_ids,
            )
        )

        anchors: dict[str, str] = {}
        for comp in flat:
            if comp.reference and comp.reference in visible:
                anchors.setdefault(comp.reference, comp.id)
        outgoing[entity_id] = anchors

    for source_id, anchors in outgoing.items():
        for target_id, comp_id in anchors.items():
            if (source_id, target_id) in seen:
                continue
            seen.add((source_id, target_id))
            target = parsed.entities.get(target_id)
            graph.edges.append(
                GraphEdge(
                    source=source_id,
                    target=target_id,
                    target_type=target.type if target else "unknown",
                    source_element=comp_id,
                )
            )

    for ref in parsed.references:
        if ref.source not in visible or ref.target not in visible:
            continue
        if (ref.source, ref.target) in seen:
            continue
        seen.add((ref.source, ref.target))
        target = parsed.entities.get(ref.target)
        graph.edges.append(
            GraphEdge(
                source=ref.source,
                target=ref.target,
                target_type=target.type if target else ref.target_type,
            )
        )

    return graph


def connected_nodes(node_id: str, edges: Iterable[GraphEdge]) -> set[str]:
    """Return `node_id` plus every node sharing an edge with it."""
    connected = {node_id}
    for edge in edges:
        if edge.source == node_id:
            connected.add(edge.target)
        if edge.target == node_id:
            connected.add(edge.source)
    return connected


def reference_status(
    node: GraphNode,
    all_node_ids: set[str],
    visible_node_ids: Optional[set[str]] = None,
) -> dict[str, ReferenceStatus]:
    """Resolve each referencing component of `node`.

    `visible_node_ids` is whatever subset a filtering collaborator shows; when
    omitted every node counts as shown.
    """
    shown = all_node_ids if visible_node_ids is None else visible_node_ids
    status: dict[str, ReferenceStatus] = {}
    for comp in node.components:
        if not comp.reference:
            continue
        if comp.reference not in all_node_ids:
            status[comp.id] = "dangling"
        elif comp.reference not in shown:
            status[comp.id] = "filtered"
        else:
            status[comp.id] = "connected"
    return status


def dangling_references(parsed: ParsedBmf, graph: Graph) -> list[Reference]:
    """References whose target never became a node."""
    node_ids = graph.node_ids()
    return [ref for ref in parsed.references if ref.target not in node_ids]
