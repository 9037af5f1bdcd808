# bmf_graph/constants.py
from __future__ import annotations

ENTITY_TYPES: frozenset[str] = frozenset(
    (
        "screen",
        "dialog",
        "event",
        "action",
        "component",
        "layout",
        "entity",
        "context",
    )
)

# Entities of this type are inlined into their parent's component tree and
# never become graph nodes on their own.
INLINE_ENTITY_TYPE = "component"

DOCUMENT_SUFFIXES: tuple[str, ...] = (".yaml", ".yml")

# Annotation storage lives next to the documents but is not part of the model.
ANNOTATION_FILES: tuple[str, ...] = ("_comments.yaml", "_comments.yml")

OTHER_EPIC = "Other"
TRIVIAL_COMMUNITY_ID = "main"

# Epic scoring + community heuristics (inherited, not derived).
CENTRALITY_EXTERNAL_WEIGHT = 2
TRIVIAL_EPIC_COUNT = 3
STRONG_TIE_WEIGHT = 3
MAX_WEAK_NEIGHBOURS = 2
MAX_COMMUNITY_SIZE = 4

# Leaf sizing.
NODE_WIDTH = 300
NODE_HEADER_HEIGHT = 50
NODE_ELEMENT_HEIGHT = 24
NODE_PADDING = 20
MIN_NODE_HEIGHT = 80

SPACING_MULTIPLIER = 2.5
CROSS_EPIC_EDGE_PRIORITY = 2

ROOT_ID = "root"
CLUSTER_PREFIX = "cluster:"
SUPERCLUSTER_PREFIX = "supercluster:"

LAYOUT_SEED = 42
