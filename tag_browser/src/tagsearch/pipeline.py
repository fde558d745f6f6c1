# tagsearch/pipeline.py
from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence, Tuple

from . import config as CFG
from .DB.api import PostIndex
from .models import Post, SortOrder
from .state import Done, Idle, InProgress, SearchStateCell

log = logging.getLogger(__name__)

# SortOrder -> (Post field, descending). DATE / DATE_ASCENDING / RANDOM are handled
# without a key because the post index is already ascending by date.
FIELD_ORDERS: Dict[SortOrder, Tuple[str, bool]] = {
    SortOrder.SCORE: ("score", True),
    SortOrder.SCORE_ASCENDING: ("score", False),
    SortOrder.FAV_COUNT: ("fav_count", True),
    SortOrder.FAV_COUNT_ASCENDING: ("fav_count", False),
}


def sort_results(
    results: List[int],
    posts: Sequence[Post],
    order: SortOrder,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """
    Order post-index positions in place (and return them).
    Field sorts are stable, so ties stay in date order.
    """
    if order is SortOrder.DATE_ASCENDING:
        pass
    elif order is SortOrder.DATE:
        results.reverse()
    elif order is SortOrder.RANDOM:
        (rng or random).shuffle(results)
    else:
        field, descending = FIELD_ORDERS[order]
        results.sort(key=lambda i: getattr(posts[i], field), reverse=descending)
    return results


def _filter_chunk(query, posts: Sequence[Post], start: int, stop: int) -> List[int]:
    return [i for i in range(start, stop) if query.validate(posts[i])]


class SearchPipeline:
    """
    Runs one query over the post index per submission.

    execute() resets the state cell to InProgress on the caller's thread, then a
    short-lived search thread splits the index into chunks, filters them on the
    shared worker pool, publishes progress per finished chunk, sorts, and
    publishes Done. Nothing is returned; callers poll the state cell.
    Worker threads share the GIL: they keep the caller responsive and give
    per-chunk progress, but do not speed up the CPU-bound filter.
    """

    def __init__(
        self,
        post_db: PostIndex,
        state: SearchStateCell,
        *,
        workers: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        self._post_db = post_db
        self._state = state
        self._chunk_size = max(1, int(chunk_size or CFG.SEARCH_CHUNK_SIZE))
        self._pool = ThreadPoolExecutor(max_workers=workers or CFG.SEARCH_WORKERS,
                                        thread_name_prefix="search-worker")

    def execute(self, query, sort_order: SortOrder) -> None:
        generation = self._state.begin(len(self._post_db))
        threading.Thread(
            target=self._run, args=(generation, query, sort_order),
            name=f"search-{generation}", daemon=True,
        ).start()

    def _run(self, generation: int, query, sort_order: SortOrder) -> None:
        try:
            results = self._filter(generation, query)
            t2 = time.perf_counter()
            sort_results(results, self._post_db.get_all(), sort_order)
            log.info("sort took %.3fs (%s, %d results)", time.perf_counter() - t2, sort_order.value, len(results))
            state = Done(tuple(results), 0)
        except Exception as exc:
            log.exception("search %d failed", generation)
            state = Idle(f"Search failed: {exc}")

        if not self._state.publish(generation, state):
            log.info("search %d finished after a newer search started; result dropped", generation)

    def _filter(self, generation: int, query) -> List[int]:
        posts = self._post_db.get_all()
        total = len(posts)
        t1 = time.perf_counter()

        bounds = [(s, min(s + self._chunk_size, total)) for s in range(0, total, self._chunk_size)]
        futures = {
            self._pool.submit(_filter_chunk, query, posts, start, stop): n
            for n, (start, stop) in enumerate(bounds)
        }
        parts: List[List[int]] = [[] for _ in bounds]
        processed = 0
        for fut in as_completed(futures):
            n = futures[fut]
            parts[n] = fut.result()
            start, stop = bounds[n]
            processed += stop - start
            self._state.publish(generation, InProgress(processed, total))

        results = [i for part in parts for i in part]
        log.info("search took %.3fs (%d of %d posts)", time.perf_counter() - t1, len(results), total)
        return results

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)
