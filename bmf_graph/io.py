# bmf_graph/io.py
from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Optional

from .constants import ANNOTATION_FILES, DOCUMENT_SUFFIXES
from .model import Issue

_FREEFORM_FIELD_RE = re.compile(
    r"^(\s*(?:-\s*)?(?:description|label|title|placeholder|message):\s*)(.+)$"
)


def sanitize_yaml(raw: str) -> tuple[str, list[tuple[int, str, str]]]:
    """Return (sanitized_yaml, changes).

    Quotes unquoted freeform values that contain ": " (PyYAML rejects those as
    plain scalars). Each change is (line_number_1_based, original, new).
    """
    changes: list[tuple[int, str, str]] = []
    out_lines: list[str] = []

    for i, line in enumerate(raw.splitlines(), start=1):
        match = _FREEFORM_FIELD_RE.match(line)
        if not match:
            out_lines.append(line)
            continue

        prefix, value = match.group(1), match.group(2)

        # Already quoted, a block scalar, or a flow collection.
        if value.startswith(("'", '"', "|", ">", "[", "{", "&", "*")):
            out_lines.append(line)
            continue

        # Preserve a trailing inline comment (space-# ...).
        body, comment = value, ""
        m = re.match(r"^(.*?)(\s+#.*)$", value)
        if m:
            body, comment = m.group(1), m.group(2)

        if re.search(r":(?=\s|$)", body):
            escaped = body.replace("\\", "\\\\").replace('"', '\\"')
            new_line = f'{prefix}"{escaped}"{comment}'
            out_lines.append(new_line)
            changes.append((i, line, new_line))
        else:
            out_lines.append(line)

    sanitized = "\n".join(out_lines) + ("\n" if raw.endswith("\n") else "")
    return sanitized, changes
def read_document(path: Path) -> str:
    """Read one document as UTF-8 text.

    Repairing PyYAML quirks is left to the parser, which only sanitizes text
    that fails to parse as written.
    """
    return path.read_text(encoding="utf-8")


def _is_document(path: Path) -> bool:
    return path.suffix in DOCUMENT_SUFFIXES and path.name not in ANNOTATION_FILES


def load_documents(path: Path, issues: Optional[list[Issue]] = None) -> dict[str, str]:
    """Load BMF documents from a file or a directory tree.

    Keys are paths relative to the given directory (or the file name), in
    sorted order so that last-write-wins collisions are deterministic.

    A document that cannot be read or decoded is left out and the others still
    load. The failure is appended to `issues` as an `E_DOCUMENT_PARSE` error,
    or printed to stderr when no list is given.
    """
    if not path.exists():
        raise FileNotFoundError(str(path))

    if path.is_file():
        root, candidates = path.parent, [path]
    else:
        root = path
        candidates = sorted(p for p in path.rglob("*") if p.is_file() and _is_document(p))

    documents: dict[str, str] = {}
    for doc_path in candidates:
        name = doc_path.relative_to(root).as_posix()
        try:
            documents[name] = read_document(doc_path)
        except (UnicodeDecodeError, OSError) as e:
            message = f"failed to read {name}: {e}"
            if issues is None:
                print(f"error: {message}", file=sys.stderr)
            else:
                issues.append(
                    Issue(
                        severity="error",
                        code="E_DOCUMENT_PARSE",
                        message=message,
                        path=name,
                        hint="Save the document as UTF-8",
                    )
                )
    return documents
