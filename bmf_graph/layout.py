"""Hierarchical layout: containment tree, per-level placement, absolute positions.

The tree is root -> (supercluster per community, when there is more than one)
-> cluster per epic -> one leaf per graph node. Every container is placed as
an independent sub-problem by a `LayoutEngine`, children first, so a
container's size is known before its parent is laid out.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass, field
from typing import Optional

from .communities import CommunityConfig, detect_epic_communities
from .constants import (
    CLUSTER_PREFIX,
    CROSS_EPIC_EDGE_PRIORITY,
    MIN_NODE_HEIGHT,
    NODE_ELEMENT_HEIGHT,
    NODE_HEADER_HEIGHT,
    NODE_PADDING,
    NODE_WIDTH,
    ROOT_ID,
    SPACING_MULTIPLIER,
    SUPERCLUSTER_PREFIX,
)
from .epics import EpicStats, analyze_epic_connections
from .layout_engine import (
    LayoutEdge,
    LayoutEngine,
    LayoutItem,
    LevelOptions,
    LevelProblem,
    NetworkxLayoutEngine,
    Padding,
    Point,
)
from .model import Graph, GraphNode, Issue

ORIGIN: Point = (0.0, 0.0)


@dataclass(frozen=True)
class LayoutConfig:
    node_width: float = NODE_WIDTH
    node_header_height: float = NODE_HEADER_HEIGHT
    node_element_height: float = NODE_ELEMENT_HEIGHT
    node_padding: float = NODE_PADDING
    min_node_height: float = MIN_NODE_HEIGHT
    spacing_multiplier: float = SPACING_MULTIPLIER
    cross_epic_priority: int = CROSS_EPIC_EDGE_PRIORITY


@dataclass
class LayoutNode:
    """A container (has options) or a leaf (graph node) in the containment tree.

    x/y are relative to the parent's top-left and stay None until placed.
    """

    id: str
    width: float = 0.0
    height: float = 0.0
    children: list["LayoutNode"] = field(default_factory=list)
    options: Optional[LevelOptions] = None
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def is_leaf(self) -> bool:
        return self.options is None


@dataclass
class LayoutResult:
    root: LayoutNode
    positions: dict[str, Point]
    epic_stats: dict[str, EpicStats]
    node_to_epic: dict[str, str]
    communities: dict[str, list[str]]
    issues: list[Issue] = field(default_factory=list)


def _s(base: float, cfg: LayoutConfig) -> float:
    # Half-up rounding keeps spacing identical across platforms.
    return float(math.floor(base * cfg.spacing_multiplier + 0.5))


def cluster_options(cfg: LayoutConfig = LayoutConfig()) -> LevelOptions:
    """Tight, directional packing inside one epic."""
    return LevelOptions(
        algorithm="layered",
        direction="RIGHT",
        padding=Padding(top=_s(40, cfg), left=_s(20, cfg), bottom=_s(20, cfg), right=_s(20, cfg)),
        node_spacing=_s(60, cfg),
        layer_spacing=_s(150, cfg),
    )


def supercluster_options(cfg: LayoutConfig = LayoutConfig()) -> LevelOptions:
    return LevelOptions(
        algorithm="layered",
        direction="RIGHT",
        padding=Padding(top=_s(60, cfg), left=_s(40, cfg), bottom=_s(40, cfg), right=_s(40, cfg)),
        node_spacing=_s(150, cfg),
        layer_spacing=_s(200, cfg),
    )


def root_options(
    cfg: LayoutConfig = LayoutConfig(), has_superclusters: bool = False
) -> LevelOptions:
    """Loose force-style spacing among clusters / communities."""
    pad = _s(50, cfg)
    return LevelOptions(
        algorithm="stress",
        padding=Padding(top=pad, left=pad, bottom=pad, right=pad),
        node_spacing=_s(250, cfg),
        desired_edge_length=_s(800 if has_superclusters else 600, cfg),
    )


def node_height(node: GraphNode, cfg: LayoutConfig = LayoutConfig()) -> float:
    count = len(node.components)
    if count == 0:
        return cfg.min_node_height
    return max(
        cfg.min_node_height,
        cfg.node_header_height + count * cfg.node_element_height + cfg.node_padding,
    )


def _epic_cluster(
    epic: str, members: list[GraphNode], cfg: LayoutConfig
) -> LayoutNode:
    return LayoutNode(
        id=f"{CLUSTER_PREFIX}{epic}",
        options=cluster_options(cfg),
        children=[
            LayoutNode(id=node.id, width=cfg.node_width, height=node_height(node, cfg))
            for node in members
        ],
    )


def build_containment_tree(
    graph: Graph,
    epic_stats: dict[str, EpicStats],
    node_to_epic: dict[str, str],
    communities: dict[str, list[str]],
    cfg: LayoutConfig = LayoutConfig(),
) -> LayoutNode:
    """Build the root -> [supercluster ->] cluster -> leaf tree."""
    by_epic: dict[str, list[GraphNode]] = {}
    for node in graph.nodes:
        by_epic.setdefault(node_to_epic[node.id], []).append(node)

    def centrality(epic: str) -> int:
        stats = epic_stats.get(epic)
        return stats.centrality if stats else 0

    has_superclusters = len(communities) > 1
    root = LayoutNode(id=ROOT_ID, options=root_options(cfg, has_superclusters))

    if has_superclusters:
        ordered = sorted(
            communities.items(),
            key=lambda item: -sum(centrality(e) for e in item[1]),
        )
        for community_id, epics in ordered:
            clusters = [
                _epic_cluster(epic, by_epic.get(epic, []), cfg)
                for epic in sorted(epics, key=lambda e: -centrality(e))
            ]
            root.children.append(
                LayoutNode(
                    id=f"{SUPERCLUSTER_PREFIX}{community_id}",
                    options=supercluster_options(cfg),
                    children=clusters,
                )
            )
    else:
        for epic in sorted(by_epic, key=lambda e: -centrality(e)):
            root.children.append(_epic_cluster(epic, by_epic[epic], cfg))

    return root


def layout_edges(
    graph: Graph, node_to_epic: dict[str, str], cfg: LayoutConfig = LayoutConfig()
) -> list[LayoutEdge]:
    """Graph edges for the engine; cross-epic edges get a higher priority."""
    out: list[LayoutEdge] = []
    for edge in graph.edges:
        cross = node_to_epic.get(edge.source) != node_to_epic.get(edge.target)
        out.append(
            LayoutEdge(
                source=edge.source,
                target=edge.target,
                priority=cfg.cross_epic_priority if cross else 1,
            )
        )
    return out


def _leaf_chains(root: LayoutNode) -> dict[str, list[str]]:
    chains: dict[str, list[str]] = {}

    def walk(node: LayoutNode, prefix: list[str]) -> None:
        chain = prefix + [node.id]
        if node.is_leaf:
            chains[node.id] = chain
            return
        for child in node.children:
            walk(child, chain)

    walk(root, [])
    return chains


def _lift_edges(
    root: LayoutNode, edges: list[LayoutEdge]
) -> dict[str, dict[tuple[str, str], LayoutEdge]]:
    """Map each edge to the container where its endpoints' branches split.

    The edge is re-expressed between the two children of that container; the
    highest priority wins when several edges share a pair.
    """
    chains = _leaf_chains(root)
    lifted: dict[str, dict[tuple[str, str], LayoutEdge]] = {}

    for edge in edges:
        a = chains.get(edge.source)
        b = chains.get(edge.target)
        if a is None or b is None or a == b:
            continue

        k = 0
        while k < min(len(a), len(b)) and a[k] == b[k]:
            k += 1
        if k == 0 or k >= len(a) or k >= len(b):
            continue

        container = a[k - 1]
        pair = (a[k], b[k])
        level = lifted.setdefault(container, {})
        existing = level.get(pair)
        if existing is None or existing.priority < edge.priority:
            level[pair] = LayoutEdge(source=pair[0], target=pair[1], priority=edge.priority)

    return lifted


def run_layout(
    root: LayoutNode, edges: list[LayoutEdge], engine: LayoutEngine
) -> list[Issue]:
    """Place every container's children bottom-up and size the containers.

    A failing sub-problem is reported and leaves that container's children
    unplaced; the rest of the tree is still laid out.
    """
    lifted = _lift_edges(root, edges)
    issues: list[Issue] = []

    def place(container: LayoutNode) -> None:
        for child in container.children:
            if not child.is_leaf:
                place(child)

        opts = container.options
        if opts is None:
            raise ValueError(f"{container.id!r} is a leaf and cannot be laid out as a container")
        problem = LevelProblem(
            container_id=container.id,
            items=tuple(LayoutItem(c.id, c.width, c.height) for c in container.children),
            edges=tuple(lifted.get(container.id, {}).values()),
            options=opts,
        )

        try:
            placed = dict(engine.place(problem)) if problem.items else {}
        except Exception as e:
            issues.append(
                Issue(
                    severity="warning",
                    code="W_LAYOUT_SUBPROBLEM",
                    message=f"layout engine failed for {container.id}: {e}",
                    path=container.id,
                    hint="Affected nodes are placed at the origin",
                )
            )
            placed = {}

        known = [c for c in container.children if c.id in placed]
        if known:
            min_x = min(placed[c.id][0] for c in known)
            min_y = min(placed[c.id][1] for c in known)
        else:
            min_x = min_y = 0.0

        content_w = content_h = 0.0
        for child in container.children:
            if child.id in placed:
                child.x = placed[child.id][0] - min_x + opts.padding.left
                child.y = placed[child.id][1] - min_y + opts.padding.top
                content_w = max(content_w, child.x - opts.padding.left + child.width)
                content_h = max(content_h, child.y - opts.padding.top + child.height)
            else:
                child.x = child.y = None
                content_w = max(content_w, child.width)
                content_h = max(content_h, child.height)

        container.width = opts.padding.left + content_w + opts.padding.right
        container.height = opts.padding.top + content_h + opts.padding.bottom

    place(root)
    root.x = root.y = 0.0
    return issues


def resolve_positions(root: LayoutNode) -> dict[str, Point]:
    """Accumulate parent offsets into one absolute point per leaf.

    A leaf whose own position, or whose container's, was dropped falls back to
    the origin.
    """
    positions: dict[str, Point] = {}

    def walk(container: LayoutNode, ox: float, oy: float, placed: bool) -> None:
        for child in container.children:
            child_placed = placed and child.x is not None and child.y is not None
            x = ox + (child.x or 0.0) if child_placed else 0.0
            y = oy + (child.y or 0.0) if child_placed else 0.0
            if child.is_leaf:
                positions[child.id] = (x, y) if child_placed else ORIGIN
            else:
                walk(child, x, y, child_placed)

    walk(root, root.x or 0.0, root.y or 0.0, True)
    return positions


def compose_layout(
    graph: Graph,
    engine: Optional[LayoutEngine] = None,
    config: LayoutConfig = LayoutConfig(),
    community_config: CommunityConfig = CommunityConfig(),
) -> LayoutResult:
    """Analyze epics, detect communities, lay out, and resolve positions."""
    epic_stats, node_to_epic = analyze_epic_connections(graph.nodes, graph.edges)
    communities = detect_epic_communities(epic_stats, community_config)

    root = build_containment_tree(graph, epic_stats, node_to_epic, communities, config)
    issues = run_layout(
        root, layout_edges(graph, node_to_epic, config), engine or NetworkxLayoutEngine()
    )
    resolved = resolve_positions(root)

    return LayoutResult(
        root=root,
        positions={node.id: resolved.get(node.id, ORIGIN) for node in graph.nodes},
        epic_stats=epic_stats,
        node_to_epic=node_to_epic,
        communities=communities,
        issues=issues,
    )


def layout_key(graph: Graph) -> str:
    """Digest of the graph structure; unchanged key means no re-layout needed."""
    h = hashlib.sha256()
    for node_id in sorted(graph.node_ids()):
        h.update(f"n:{node_id}\n".encode("utf-8"))
    for edge_id in sorted(graph.edge_ids()):
        h.update(f"e:{edge_id}\n".encode("utf-8"))
    return h.hexdigest()
