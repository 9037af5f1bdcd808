from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

# Anything PyYAML can hand back for a record.
Value = Union[str, int, float, bool, None, list["Value"], dict[str, "Value"]]

Severity = Literal["error", "warning"]
ReferenceStatus = Literal["connected", "filtered", "dangling"]


@dataclass(frozen=True)
class Issue:
    """Structured diagnostic (parse errors, collisions, layout failures)."""

    severity: Severity
    code: str
    message: str
    path: str = ""
    hint: Optional[str] = None


@dataclass(frozen=True)
class EntityId:
    type: str
    epic: str
    name: str


@dataclass
class Component:
    id: str
    type: str
    label: Optional[str] = None
    value: Value = None
    action: Optional[str] = None
    icon: Optional[str] = None
    placeholder: Optional[str] = None
    default: Value = None
    when: Optional[str] = None
    components: Optional[list["Component"]] = None


@dataclass
class Entity:
    id: str
    type: str
    epic: str
    name: str
    raw: dict[str, Value]
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    props: Optional[dict[str, Value]] = None
    data: Optional[dict[str, Value]] = None
    effects: Optional[list[Value]] = None
    layout: Optional[str] = None
    to: Optional[str] = None
    source: str = ""


@dataclass(frozen=True)
class Reference:
    source: str
    target: str
    target_type: str
    path: str = ""


@dataclass
class ParsedBmf:
    entities: dict[str, Entity] = field(default_factory=dict)
    references: list[Reference] = field(default_factory=list)
    epics: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    referenced_ids: set[str] = field(default_factory=set)
    issues: list[Issue] = field(default_factory=list)

    @property
    def errors(self) -> list[Issue]:
        return [iss for iss in self.issues if iss.severity == "error"]

    @property
    def warnings(self) -> list[Issue]:
        return [iss for iss in self.issues if iss.severity == "warning"]


@dataclass(frozen=True)
class FlatComponent:
    id: str
    type: str
    depth: int
    label: Optional[str] = None
    reference: Optional[str] = None
    reference_type: Optional[str] = None


@dataclass
class GraphNode:
    id: str
    type: str
    epic: str
    name: str
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    components: list[FlatComponent] = field(default_factory=list)
    has_components: bool = False
    is_referenced: bool = False


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    target_type: str
    source_element: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.source}->{self.target}"


@dataclass
class Graph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}

    def edge_ids(self) -> set[str]:
        return {edge.id for edge in self.edges}

    def node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
