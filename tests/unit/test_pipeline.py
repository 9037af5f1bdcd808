import pytest

from bmf_graph.pipeline import BmfPipeline


class ZeroEngine:
    def place(self, problem):
        return {item.id: (0.0, 0.0) for item in problem.items}


DOCS = {
    "flow.yaml": (
        "action:t:finish:\n"
        "  effects:\n"
        "    - $screen:t:results\n"
        "    - $widget:t:chart\n"
        "screen:t:results:\n"
        "  description: Results\n"
        "widget:t:chart:\n"
        "  description: Chart\n"
    )
}


def test_compute_layout_requires_load():
    with pytest.raises(RuntimeError):
        BmfPipeline().compute_layout()


def test_load_replaces_the_previous_snapshot():
    pipeline = BmfPipeline(engine=ZeroEngine())
    pipeline.load(DOCS)
    pipeline.compute_layout()
    assert pipeline.layout is not None

    graph = pipeline.load({"empty.yaml": ""})
    assert graph.nodes == []
    assert pipeline.layout is None
    assert pipeline.dangling() == []


def test_extra_types_become_nodes():
    plain = BmfPipeline()
    plain.load(DOCS)
    assert "widget:t:chart" not in plain.graph.node_ids()
    assert [r.target for r in plain.dangling()] == ["widget:t:chart"]

    extended = BmfPipeline.with_extra_types(["widget"], engine=ZeroEngine())
    graph = extended.load(DOCS)
    assert "widget:t:chart" in graph.node_ids()
    assert extended.dangling() == []

    layout = extended.compute_layout()
    assert set(layout.positions) == graph.node_ids()
    assert extended.issues == []
