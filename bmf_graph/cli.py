# bmf_graph/cli.py
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .export import graph_to_dict, render_mermaid
from .io import load_documents
from .model import Issue
from .pipeline import BmfPipeline
from .writer import write_json, write_md


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Build the reference graph and epic layout for BMF YAML documents."
    )
    parser.add_argument(
        "docs",
        type=Path,
        help="A BMF YAML file, or a directory searched recursively for *.yaml/*.yml.",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=Path("bmf-graph-out"),
        help="Output directory for graph.json and graph.md",
    )
    parser.add_argument(
        "--no-layout",
        action="store_true",
        help="Skip the epic-clustered layout (graph.json carries no positions).",
    )
    parser.add_argument(
        "--no-mermaid",
        action="store_true",
        help="Do not write the Mermaid overview (graph.md).",
    )
    parser.add_argument(
        "--extra-types",
        type=str,
        default="",
        help="Comma-separated entity types to recognize in addition to the built-in ones.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help=(
            "Fail on warnings (e.g., entity ids defined in more than one "
            "document). Errors always fail."
        ),
    )
    parser.add_argument(
        "--report-dangling",
        action="store_true",
        help="Print references whose target is not a graph node.",
    )

    args = parser.parse_args(argv)

    extra = tuple(t.strip() for t in args.extra_types.split(",") if t.strip())
    pipeline = BmfPipeline.with_extra_types(extra)

    read_issues: list[Issue] = []
    documents = load_documents(args.docs, read_issues)
    graph = pipeline.load(documents)
    layout = None if args.no_layout else pipeline.compute_layout()

    issues = read_issues + pipeline.issues
    errors = [iss for iss in issues if iss.severity == "error"]
    warnings = [iss for iss in issues if iss.severity == "warning"]

    for warning in warnings:
        print(f"warning: {warning.message}", file=sys.stderr)

    dangling = pipeline.dangling()
    if args.report_dangling:
        for ref in dangling:
            print(
                f"dangling: {ref.source} -> {ref.target} (at {ref.path or '/'})",
                file=sys.stderr,
            )

    out_dir: Path = args.out_dir
    write_json(
        out_dir / "graph.json",
        graph_to_dict(graph, layout, dangling=dangling, issues=issues),
    )
    if not args.no_mermaid:
        communities = layout.communities if layout else None
        write_md(out_dir / "graph.md", "BMF navigation graph", render_mermaid(graph, communities))

    print(
        f"{len(graph.nodes)} nodes, {len(graph.edges)} edges, "
        f"{len(dangling)} dangling references -> {out_dir}"
    )

    if errors or (args.strict and warnings):
        for error in errors:
            print(f"error: {error.message}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    main()
