from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from .communities import CommunityConfig
from .constants import ENTITY_TYPES
from .graph_builder import build_graph, dangling_references
from .layout import LayoutConfig, LayoutResult, compose_layout
from .layout_engine import LayoutEngine
from .model import Graph, Issue, ParsedBmf, Reference
from .parser import parse_documents


@dataclass
class BmfPipeline:
    """documents -> parsed -> graph -> layout, held on one explicit object.

    Each `load()` replaces the previous snapshot wholesale; nothing is shared
    between runs.
    """

    entity_types: frozenset[str] = ENTITY_TYPES
    layout_config: LayoutConfig = field(default_factory=LayoutConfig)
    community_config: CommunityConfig = field(default_factory=CommunityConfig)
    engine: Optional[LayoutEngine] = None

    parsed: Optional[ParsedBmf] = field(default=None, init=False)
    graph: Optional[Graph] = field(default=None, init=False)
    layout: Optional[LayoutResult] = field(default=None, init=False)

    @classmethod
    def with_extra_types(cls, extra: Iterable[str], **kwargs) -> "BmfPipeline":
        return cls(entity_types=ENTITY_TYPES | frozenset(extra), **kwargs)

    def load(self, documents: Mapping[str, str]) -> Graph:
        self.parsed = parse_documents(documents, self.entity_types)
        self.graph = build_graph(self.parsed)
        self.layout = None
        return self.graph

    def compute_layout(self) -> LayoutResult:
        if self.graph is None:
            raise RuntimeError("load() must be called before compute_layout()")
        self.layout = compose_layout(
            self.graph,
            engine=self.engine,
            config=self.layout_config,
            community_config=self.community_config,
        )
        return self.layout

    @property
    def issues(self) -> list[Issue]:
        out: list[Issue] = []
        if self.parsed is not None:
            out.extend(self.parsed.issues)
        if self.layout is not None:
            out.extend(self.layout.issues)
        return out

    def dangling(self) -> list[Reference]:
        if self.parsed is None or self.graph is None:
            return []
        return dangling_references(self.parsed, self.graph)
