from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from .communities import CommunityConfig
from .layout import LayoutConfig, LayoutResult, compose_layout
from .layout_engine import LayoutEngine, NetworkxLayoutEngine
from .model import Graph

CommitFn = Callable[[Graph, LayoutResult], None]


class LayoutScheduler:
    """Run layouts off the caller's thread; only the newest request commits.

    Every `request()` takes a new generation. An older job that has not started
    yet is cancelled; one that is already running finishes, but its result is
    dropped unless it is still the newest.
    """

    def __init__(
        self,
        engine: Optional[LayoutEngine] = None,
        on_commit: Optional[CommitFn] = None,
        *,
        config: LayoutConfig = LayoutConfig(),
        community_config: CommunityConfig = CommunityConfig(),
        max_workers: int = 1,
    ) -> None:
        self.engine = engine or NetworkxLayoutEngine()
        self.on_commit = on_commit
        self.config = config
        self.community_config = community_config
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="bmf-layout"
        )
        # Re-entrant so on_commit may call request().
        self._lock = threading.RLock()
        self._generation = 0
        self._pending: Optional[Future] = None
        self.latest: Optional[tuple[Graph, LayoutResult]] = None
        self.discarded = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def request(self, graph: Graph) -> "Future[Optional[LayoutResult]]":
        """Schedule a layout for `graph`, superseding earlier requests.

        The future resolves to the result if it was committed, else None.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._pending is not None and self._pending.cancel():
                self.discarded += 1
            future = self._executor.submit(self._run, graph, generation)
            self._pending = future
        return future

    def _run(self, graph: Graph, generation: int) -> Optional[LayoutResult]:
        result = compose_layout(
            graph,
            engine=self.engine,
            config=self.config,
            community_config=self.community_config,
        )
        with self._lock:
            if generation != self._generation:
                self.discarded += 1
                return None
            self.latest = (graph, result)
            if self.on_commit is not None:
                self.on_commit(graph, result)
        return result

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "LayoutScheduler":
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()
