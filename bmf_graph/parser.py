from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import yaml

from .constants import ENTITY_TYPES
from .io import sanitize_yaml
from .model import Component, Entity, EntityId, Issue, ParsedBmf, Reference, Severity
from .patterns import iter_references


def parse_entity_id(
    key: str, entity_types: Iterable[str] = ENTITY_TYPES
) -> Optional[EntityId]:
    """Split a top-level key into (type, epic, name).

    Returns None for keys whose first segment is not a recognized type;
    documents may carry freeform metadata next to the entities.
    """
    types = entity_types if isinstance(entity_types, (set, frozenset)) else set(entity_types)
    parts = key.split(":")
    if parts[0] not in types:
        return None

    if len(parts) == 1:
        return EntityId(type=parts[0], epic="", name=parts[0])
    if len(parts) == 2:
        return EntityId(type=parts[0], epic="", name=parts[1])
    return EntityId(type=parts[0], epic=parts[1], name=":".join(parts[2:]))


def extract_references(
    value: Any, source_id: str, path: str, refs: list[Reference]
) -> None:
    """Append every reference reachable under `value` to `refs`."""
    if isinstance(value, str):
        for target, target_type in iter_references(value):
            refs.append(
                Reference(source=source_id, target=target, target_type=target_type, path=path)
            )
    elif isinstance(value, list):
        for i, item in enumerate(value):
            extract_references(item, source_id, f"{path}[{i}]", refs)
    elif isinstance(value, dict):
        for key, item in value.items():
            extract_references(item, source_id, f"{path}.{key}", refs)


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_components(raw: Any, parent_id: str = "") -> list[Component]:
    """Parse a raw `components` list depth-first.

    id falls back to a string `value`, then to `<parent_id>_<index>`; nested
    children use the resolved id as their prefix.
    """
    if not isinstance(raw, list):
        return []

    out: list[Component] = []
    for index, raw_item in enumerate(raw):
        if isinstance(raw_item, dict):
            item: dict[str, Any] = raw_item
        elif isinstance(raw_item, str):
            # Shorthand list entry: the string is the value.
            item = {"value": raw_item}
        else:
            item = {}

        value = item.get("value")
        explicit_id = item.get("id")
        if explicit_id is not None and explicit_id != "":
            comp_id = str(explicit_id)
        elif isinstance(value, str) and value:
            comp_id = value
        else:
            comp_id = f"{parent_id}_{index}"

        nested = item.get("components")
        comp_type = item.get("type") or ("components" if nested is not None else "unknown")

        comp = Component(
            id=comp_id,
            type=str(comp_type),
            label=_opt_str(item.get("label")),
            value=value,
            action=_opt_str(item.get("action")),
            icon=_opt_str(item.get("icon")),
            placeholder=_opt_str(item.get("placeholder")),
            default=item.get("default"),
            when=_opt_str(item.get("when")),
        )
        if nested is not None:
            comp.components = parse_components(nested, comp_id)

        out.append(comp)

    return out


def _build_entity(
    key: str, info: EntityId, record: dict[str, Any], source: str
) -> Entity:
    tags = record.get("tags")
    effects = record.get("effects")
    props = record.get("props")
    data = record.get("data")

    return Entity(
        id=key,
        type=info.type,
        epic=info.epic,
        name=info.name,
        raw=record,
        description=_opt_str(record.get("description")),
        tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
        components=parse_components(record.get("components"), key),
        props=props if isinstance(props, dict) else None,
        data=data if isinstance(data, dict) else None,
        effects=effects if isinstance(effects, list) else None,
        layout=_opt_str(record.get("layout")),
        to=_opt_str(record.get("to")),
        source=source,
    )


def parse_mapping(
    data: Any, name: str = "", entity_types: Iterable[str] = ENTITY_TYPES
) -> ParsedBmf:
    """Parse an already-loaded (anchor-expanded) document."""
    parsed = ParsedBmf()
    if data is None:
        return parsed

    if not isinstance(data, dict):
        parsed.issues.append(
            Issue(
                severity="warning",
                code="W_DOCUMENT_NOT_MAPPING",
                message=f"top-level of {name or '<document>'} is a "
                f"{type(data).__name__}, expected a mapping; skipping",
                path=name,
            )
        )
        return parsed

    types = frozenset(entity_types)
    epics: set[str] = set()
    tags: set[str] = set()

    for key, record in data.items():
        if not isinstance(key, str):
            continue
        info = parse_entity_id(key, types)
        if info is None or not isinstance(record, dict):
            continue

        entity = _build_entity(key, info, record, name)
        parsed.entities[key] = entity
        tags.update(entity.tags)
        if info.epic:
            epics.add(info.epic)

        extract_references(record, key, "", parsed.references)

    parsed.referenced_ids = {ref.target for ref in parsed.references}
    parsed.epics = sorted(epics)
    parsed.tags = sorted(tags)
    return parsed


def parse_document(
    text: str, name: str = "", entity_types: Iterable[str] = ENTITY_TYPES
) -> ParsedBmf:
    """Parse one YAML document.

    Text that PyYAML rejects is retried once after `sanitize_yaml`; a repair
    is reported as a `W_DOCUMENT_SANITIZED` warning. Text that still fails is
    an `E_DOCUMENT_PARSE` issue and the document contributes no entities.
    """
    label = name or "<document>"
    try:
        data = yaml.safe_load(text)
        repaired: list[tuple[int, str, str]] = []
    except yaml.YAMLError as e:
        sanitized, repaired = sanitize_yaml(text)
        try:
            if not repaired:
                raise e
            data = yaml.safe_load(sanitized)
        except yaml.YAMLError:
            return ParsedBmf(
                issues=[
                    Issue(
                        severity="error",
                        code="E_DOCUMENT_PARSE",
                        message=f"failed to parse {label}: {e}",
                        path=name,
                    )
                ]
            )

    parsed = parse_mapping(data, name, entity_types)
    if repaired:
        line_no, before, after = repaired[0]
        parsed.issues.insert(
            0,
            Issue(
                severity="warning",
                code="W_DOCUMENT_SANITIZED",
                message=f"parsed {label} after sanitizing {len(repaired)} line(s); "
                "consider quoting values containing ':' followed by whitespace",
                path=name,
                hint=f"line {line_no}: {before.strip()} -> {after.strip()}",
            ),
        )
    return parsed


def parse_documents(
    documents: Mapping[str, str], entity_types: Iterable[str] = ENTITY_TYPES
) -> ParsedBmf:
    """Parse and merge several named documents, in mapping order.

    Entity ids defined in more than one document resolve last-write-wins; each
    overwrite is reported as a `W_ENTITY_ID_COLLISION` warning. The overwritten
    record's references go with it, and `epics`/`tags` come from the records
    that survive.
    """
    types = frozenset(entity_types)
    merged = ParsedBmf()

    def emit(severity: Severity, code: str, message: str, path: str = "", hint: Optional[str] = None) -> None:
        merged.issues.append(
            Issue(severity=severity, code=code, message=message, path=path, hint=hint)
        )

    for name, text in documents.items():
        part = parse_document(text, name, types)
        merged.issues.extend(part.issues)

        overwritten: set[str] = set()
        for entity_id, entity in part.entities.items():
            previous = merged.entities.get(entity_id)
            if previous is not None:
                emit(
                    "warning",
                    "W_ENTITY_ID_COLLISION",
                    f"entity {entity_id!r} in {name} overrides the definition in "
                    f"{previous.source}",
                    path=name,
                    hint="Rename one of the entities; the last document loaded wins "
                    "and references from the earlier definition are dropped",
                )
                overwritten.add(entity_id)
            # Keep first-seen ordering; the record itself is replaced.
            merged.entities[entity_id] = entity

        if overwritten:
            merged.references = [
                ref for ref in merged.references if ref.source not in overwritten
            ]
        merged.references.extend(part.references)

    merged.referenced_ids = {ref.target for ref in merged.references}
    merged.epics = sorted({e.epic for e in merged.entities.values() if e.epic})
    merged.tags = sorted({t for e in merged.entities.values() for t in e.tags})
    return merged
