from __future__ import annotations

import re
from typing import Iterator, Optional

# $type.path / $type:path, optionally followed by "( params )" which is not
# part of the match.
REFERENCE_RE = re.compile(r"\$([a-z]+)[.:]([a-z0-9._:-]+)")

# Bare component references inside "for each" loops: component:epic:name
BARE_COMPONENT_RE = re.compile(r"\bcomponent:([a-z0-9._:-]+)")


def normalize_target(ref_type: str, ref_path: str) -> str:
    """Return the canonical `type:epic:name` id for a matched reference."""
    return f"{ref_type}:{ref_path.replace('.', ':')}"


def iter_references(text: str) -> Iterator[tuple[str, str]]:
    """Yield every (target_id, target_type) found in `text`.

    Sigil matches come first (left to right), then bare component matches.
    """
    for m in REFERENCE_RE.finditer(text):
        yield normalize_target(m.group(1), m.group(2)), m.group(1)
    for m in BARE_COMPONENT_RE.finditer(text):
        yield normalize_target("component", m.group(1)), "component"


def extract_reference(text: str) -> Optional[tuple[str, str]]:
    """Return the first (target_id, target_type) in `text`, or None."""
    m = REFERENCE_RE.search(text)
    if m:
        return normalize_target(m.group(1), m.group(2)), m.group(1)

    m = BARE_COMPONENT_RE.search(text)
    if m:
        return normalize_target("component", m.group(1)), "component"

    return None
