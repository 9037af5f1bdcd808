import threading

from bmf_graph.model import Graph, GraphNode
from bmf_graph.scheduler import LayoutScheduler

TIMEOUT = 10


class GatedEngine:
    """Blocks the first root placement until released."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.root_calls = 0

    def place(self, problem):
        if problem.container_id == "root":
            self.root_calls += 1
            if self.root_calls == 1:
                self.started.set()
                self.release.wait(TIMEOUT)
        return {item.id: (float(i) * 1000, 0.0) for i, item in enumerate(problem.items)}


def graph_with(*node_ids: str) -> Graph:
    return Graph(nodes=[GraphNode(id=n, type="screen", epic="A", name=n) for n in node_ids])


def test_only_the_newest_request_commits():
    engine = GatedEngine()
    commits = []
    g1, g2, g3 = graph_with("a"), graph_with("a", "b"), graph_with("a", "b", "c")

    with LayoutScheduler(engine, on_commit=lambda g, r: commits.append(g)) as scheduler:
        f1 = scheduler.request(g1)
        assert engine.started.wait(TIMEOUT)

        f2 = scheduler.request(g2)
        f3 = scheduler.request(g3)
        assert f2.cancelled()

        engine.release.set()
        assert f1.result(TIMEOUT) is None
        result = f3.result(TIMEOUT)

    assert result is not None
    assert set(result.positions) == {"a", "b", "c"}
    assert commits == [g3]
    assert scheduler.latest == (g3, result)
    assert scheduler.generation == 3
    assert scheduler.discarded == 2


def test_sequential_requests_all_commit():
    engine = GatedEngine()
    engine.release.set()
    commits = []

    with LayoutScheduler(engine, on_commit=lambda g, r: commits.append(g)) as scheduler:
        first = scheduler.request(graph_with("a")).result(TIMEOUT)
        second = scheduler.request(graph_with("b")).result(TIMEOUT)

    assert first is not None and second is not None
    assert [list(g.node_ids()) for g in commits] == [["a"], ["b"]]
    assert scheduler.discarded == 0
