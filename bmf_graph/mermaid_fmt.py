from __future__ import annotations

import html
import json
import re
from typing import Any

# Mermaid node/subgraph IDs must be alphanumeric/underscore and must not start
# with a digit.
MERMAID_ID_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_UNSAFE_ID_CHARS_RE = re.compile(r"[^A-Za-z0-9_]+")


def mermaid_block(code: str) -> str:
    """Wrap Mermaid source in a Markdown Mermaid code fence."""
    return "```mermaid\n" + code.rstrip() + "\n```\n"


def mm_text(text: object) -> str:
    """Escape text for Mermaid labels."""
    normalized = re.sub(r"\s+", " ", html.unescape(str(text))).strip()
    return (
        normalized.replace("&", "#amp;")
        .replace("<", "#lt;")
        .replace(">", "#gt;")
        .replace('"', "#quot;")
        .replace("|", "#124;")
    )


def mm_init(**config_sections: dict[str, Any]) -> str:
    # Stable JSON: sorted keys + compact separators.
    payload = json.dumps(config_sections, sort_keys=True, separators=(",", ":"))
    return f"%%{{init:{payload}}}%%"


def mm_edge_label(text: str) -> str:
    """Format the text inside `-->|...|`; quoted when it starts with a symbol."""
    raw = str(text)
    escaped = mm_text(raw)
    stripped = raw.lstrip()
    if stripped and not re.match(r"[A-Za-z0-9_]", stripped[0]):
        return f'"{escaped}"'
    return escaped


def assert_mm_id(value: str) -> str:
    if not MERMAID_ID_RE.match(value):
        raise ValueError(f"Not Mermaid-safe id: {value!r}")
    return value


def mm_unique_id(base: str, used: set[str]) -> str:
    candidate = base
    n = 2
    while candidate in used:
        candidate = f"{base}_{n}"
        n += 1
    used.add(candidate)
    return candidate


def mm_safe_id(entity_id: str, used: set[str], prefix: str = "n") -> str:
    """Map a colon-delimited entity id to a unique Mermaid-safe id.

    "screen:home:dash-board" -> "screen_home_dash_board".
    """
    base = _UNSAFE_ID_CHARS_RE.sub("_", entity_id).strip("_") or prefix
    if not MERMAID_ID_RE.match(base):
        base = f"{prefix}_{base}"
    return assert_mm_id(mm_unique_id(base, used))


def mm_flow_node(node_id: str, label: str) -> str:
    return f'{node_id}["{mm_text(label)}"]'


def mm_subgraph_open(subgraph_id: str, title: str) -> str:
    return f'  subgraph {subgraph_id}["{mm_text(title)}"]'


def mm_flow_edge(src: str, dst: str, label: str | None = None) -> str:
    if label:
        return f"  {src} -->|{mm_edge_label(label)}| {dst}"
    return f"  {src} --> {dst}"


def mm_class_def(class_name: str, style: str) -> str:
    return f"  classDef {class_name} {style}"


def mm_class_apply(node_ids: list[str] | tuple[str, ...], class_name: str) -> str:
    return f"  class {','.join(node_ids)} {class_name}"


def mm_comment(text: str) -> str:
    # Ensure it won't be parsed as a directive.
    t = str(text).replace("\n", " ").strip()
    if t.startswith("{"):
        t = " " + t
    return f"%% {t}"
