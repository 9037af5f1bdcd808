from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol

import networkx as nx
import numpy as np

from .constants import LAYOUT_SEED

Point = tuple[float, float]


class LayoutEngineError(RuntimeError):
    """Raised by an engine that cannot place a sub-problem."""


@dataclass(frozen=True)
class Padding:
    top: float = 0.0
    left: float = 0.0
    bottom: float = 0.0
    right: float = 0.0


@dataclass(frozen=True)
class LevelOptions:
    """Tuning for one containment level.

    algorithm is "layered" (directional packing) or "stress" (force-style
    spacing).
    """

    algorithm: str
    padding: Padding = field(default_factory=Padding)
    node_spacing: float = 0.0
    direction: str = "RIGHT"
    layer_spacing: float = 0.0
    desired_edge_length: float = 0.0


@dataclass(frozen=True)
class LayoutItem:
    id: str
    width: float
    height: float


@dataclass(frozen=True)
class LayoutEdge:
    source: str
    target: str
    priority: int = 1

    @property
    def id(self) -> str:
        return f"{self.source}->{self.target}"


@dataclass(frozen=True)
class LevelProblem:
    """One container's children, the edges between them, and its tuning."""

    container_id: str
    items: tuple[LayoutItem, ...]
    edges: tuple[LayoutEdge, ...]
    options: LevelOptions


class LayoutEngine(Protocol):
    def place(self, problem: LevelProblem) -> Mapping[str, Point]:
        """Return a top-left corner per item id.

        Coordinates are relative; the caller shifts them into the container's
        content box. Items may be missing from the result.
        """
        ...


class NetworkxLayoutEngine:
    """Default engine: layered packing and seeded spring layout via networkx."""

    def __init__(self, seed: int = LAYOUT_SEED, iterations: int = 100) -> None:
        self.seed = seed
        self.iterations = iterations

    def place(self, problem: LevelProblem) -> dict[str, Point]:
        if not problem.items:
            return {}

        algorithm = problem.options.algorithm
        if algorithm == "layered":
            return self._layered(problem)
        if algorithm == "stress":
            return self._stress(problem)
        raise LayoutEngineError(
            f"unsupported layout algorithm {algorithm!r} for {problem.container_id}"
        )

    def _layered(self, problem: LevelProblem) -> dict[str, Point]:
        opts = problem.options
        ids = [item.id for item in problem.items]
        items = {item.id: item for item in problem.items}

        g = nx.DiGraph()
        g.add_nodes_from(ids)
        for edge in problem.edges:
            if edge.source in items and edge.target in items and edge.source != edge.target:
                g.add_edge(edge.source, edge.target)

        # Cycles collapse into one strongly connected component per layer slot.
        cond = nx.condensation(g)
        scc_layer: dict[int, int] = {}
        for layer_index, generation in enumerate(nx.topological_generations(cond)):
            for scc in generation:
                scc_layer[scc] = layer_index

        mapping = cond.graph["mapping"]
        layers: dict[int, list[str]] = {}
        for node_id in ids:
            layers.setdefault(scc_layer[mapping[node_id]], []).append(node_id)

        horizontal = opts.direction in ("RIGHT", "LEFT")
        positions: dict[str, Point] = {}
        offset = 0.0
        for layer_index in sorted(layers):
            members = layers[layer_index]
            cursor = 0.0
            depth = 0.0
            for node_id in members:
                item = items[node_id]
                if horizontal:
                    positions[node_id] = (offset, cursor)
                    cursor += item.height + opts.node_spacing
                    depth = max(depth, item.width)
                else:
                    positions[node_id] = (cursor, offset)
                    cursor += item.width + opts.node_spacing
                    depth = max(depth, item.height)
            offset += depth + opts.layer_spacing

        if opts.direction in ("LEFT", "UP"):
            axis = 0 if horizontal else 1
            positions = {
                node_id: _mirror(pos, items[node_id], offset, axis)
                for node_id, pos in positions.items()
            }

        return positions

    def _stress(self, problem: LevelProblem) -> dict[str, Point]:
        opts = problem.options
        items = list(problem.items)
        ids = [item.id for item in items]
        if len(items) == 1:
            return {ids[0]: (0.0, 0.0)}

        g = nx.Graph()
        g.add_nodes_from(ids)
        for edge in problem.edges:
            if edge.source == edge.target or edge.source not in g or edge.target not in g:
                continue
            if g.has_edge(edge.source, edge.target):
                g[edge.source][edge.target]["weight"] += edge.priority
            else:
                g.add_edge(edge.source, edge.target, weight=edge.priority)

        raw = nx.spring_layout(
            g, seed=self.seed, weight="weight", iterations=self.iterations
        )
        centers = np.array([raw[node_id] for node_id in ids], dtype=float)
        half = np.array([[item.width / 2.0, item.height / 2.0] for item in items])

        scale = _separation_scale(centers, half, opts.node_spacing)
        if opts.desired_edge_length and g.number_of_edges():
            index = {node_id: i for i, node_id in enumerate(ids)}
            lengths = [
                float(np.linalg.norm(centers[index[a]] - centers[index[b]]))
                for a, b in g.edges()
            ]
            mean = sum(lengths) / len(lengths)
            if mean > 0:
                scale = max(scale, opts.desired_edge_length / mean)

        corners = centers * scale - half
        return {
            node_id: (float(corners[i][0]), float(corners[i][1]))
            for i, node_id in enumerate(ids)
        }


def _mirror(pos: Point, item: LayoutItem, extent: float, axis: int) -> Point:
    if axis == 0:
        return (extent - pos[0] - item.width, pos[1])
    return (pos[0], extent - pos[1] - item.height)


def _separation_scale(centers: np.ndarray, half: np.ndarray, spacing: float) -> float:
    """Smallest scale at which no two boxes come closer than `spacing`."""
    delta = np.abs(centers[:, None, :] - centers[None, :, :])
    need = half[:, None, :] + half[None, :, :] + spacing
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(delta > 1e-9, need / delta, np.inf)
    per_pair = ratio.min(axis=2)
    np.fill_diagonal(per_pair, 0.0)
    finite = per_pair[np.isfinite(per_pair)]
    return float(finite.max()) if finite.size else 1.0
