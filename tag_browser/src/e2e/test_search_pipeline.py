# src/e2e/test_search_pipeline.py

import random
import threading
from datetime import datetime, timedelta

import pytest

from tagsearch.DB.posts import PostDatabase
from tagsearch.models import FileExtension, Post, SortOrder
from tagsearch.pipeline import SearchPipeline, sort_results
from tagsearch.state import Done, Idle, InProgress, SearchStateCell

# id: (score, fav_count, tag ids); posts are created one day apart, in id order
ROWS = {
    1: (5, 1, {1}),
    2: (3, 9, {1, 2}),
    3: (5, 4, {2}),
    4: (1, 0, {1}),
    5: (9, 2, {1, 3}),
    6: (3, 7, set()),
    7: (0, 0, {1}),
    8: (5, 3, {1}),
}


def _posts() -> PostDatabase:
    base = datetime(2020, 1, 1)
    posts = [
        Post(pid, base + timedelta(days=pid), f"{pid:032x}", FileExtension.PNG, score, favs, frozenset(tags))
        for pid, (score, favs, tags) in ROWS.items()
    ]
    random.Random(7).shuffle(posts)
    return PostDatabase(posts)


class HasTag:
    def __init__(self, tag_id: int) -> None:
        self.tag_id = tag_id

    def validate(self, post: Post) -> bool:
        return self.tag_id in post.tags


class Exploding:
    def validate(self, post: Post) -> bool:
        raise ValueError("boom")


class Gated(HasTag):
    """Blocks every validate() until the gate opens."""

    def __init__(self, tag_id: int, gate: threading.Event) -> None:
        super().__init__(tag_id)
        self.gate = gate

    def validate(self, post: Post) -> bool:
        self.gate.wait(5)
        return super().validate(post)


class RecordingCell(SearchStateCell):
    def __init__(self) -> None:
        super().__init__()
        self.published = []
        self.stale_done = threading.Event()

    def publish(self, generation, state):
        ok = super().publish(generation, state)
        self.published.append((generation, state, ok))
        if not ok and isinstance(state, Done):
            self.stale_done.set()
        return ok


def _ids(db: PostDatabase, positions):
    return [db[i].id for i in positions]


def _run(query, order=SortOrder.DATE, *, db=None, cell=None, chunk_size=3):
    db = db if db is not None else _posts()
    cell = cell if cell is not None else SearchStateCell()
    pipe = SearchPipeline(db, cell, workers=2, chunk_size=chunk_size)
    try:
        pipe.execute(query, order)
        state = cell.wait(timeout=5)
    finally:
        pipe.shutdown()
    return db, state


def test_post_index_is_ascending_by_date():
    db = _posts()
    assert [p.id for p in db.get_all()] == list(range(1, 9))
    assert db.index_of(5) == 4
    assert db.index_of(99) is None


@pytest.mark.parametrize("order,expected", [
    (SortOrder.DATE, [8, 7, 5, 4, 2, 1]),
    (SortOrder.DATE_ASCENDING, [1, 2, 4, 5, 7, 8]),
    (SortOrder.SCORE, [5, 1, 8, 2, 4, 7]),
    (SortOrder.SCORE_ASCENDING, [7, 4, 2, 1, 8, 5]),
    (SortOrder.FAV_COUNT, [2, 8, 5, 1, 4, 7]),
    (SortOrder.FAV_COUNT_ASCENDING, [4, 7, 1, 5, 8, 2]),
])
def test_sort_orders_keep_date_order_on_ties(order, expected):
    db = _posts()
    matching = [i for i, p in enumerate(db.get_all()) if 1 in p.tags]
    assert _ids(db, sort_results(matching, db.get_all(), order)) == expected


def test_random_order_is_a_permutation():
    db = _posts()
    matching = list(range(len(db)))
    out = sort_results(list(matching), db.get_all(), SortOrder.RANDOM, rng=random.Random(1))
    assert sorted(out) == matching


@pytest.mark.parametrize("order", list(SortOrder))
def test_sorting_nothing_is_nothing(order):
    assert sort_results([], _posts().get_all(), order) == []


@pytest.mark.e2e
def test_results_are_exactly_the_matching_posts():
    db, state = _run(HasTag(1), SortOrder.DATE_ASCENDING)
    assert isinstance(state, Done)
    assert _ids(db, state.results) == [1, 2, 4, 5, 7, 8]
    assert state.cursor == 0
    assert db[state.current].id == 1


@pytest.mark.e2e
def test_pipeline_applies_sort_order():
    db, state = _run(HasTag(1), SortOrder.SCORE)
    assert _ids(db, state.results) == [5, 1, 8, 2, 4, 7]


@pytest.mark.e2e
def test_no_matches_and_empty_index():
    _, state = _run(HasTag(42))
    assert state == Done((), 0)
    assert state.current is None

    _, state = _run(HasTag(1), db=PostDatabase([]))
    assert state == Done((), 0)


@pytest.mark.e2e
def test_progress_is_monotonic_and_bounded():
    cell = RecordingCell()
    _run(HasTag(1), cell=cell, chunk_size=3)

    progress = [s for _, s, _ in cell.published if isinstance(s, InProgress)]
    assert [p.processed for p in progress] == sorted(p.processed for p in progress)
    assert len(progress) == 3  # chunks of 3, 3 and 2
    assert all(p.total == 8 and p.processed <= p.total for p in progress)
    assert progress[-1].processed == 8
    assert isinstance(cell.published[-1][1], Done)


@pytest.mark.e2e
def test_failing_predicate_ends_idle():
    _, state = _run(Exploding())
    assert isinstance(state, Idle)
    assert state.message == "Search failed: boom"
    assert state.error_range is None


@pytest.mark.e2e
def test_superseded_search_never_overwrites_newer_result():
    db = _posts()
    cell = RecordingCell()
    gate = threading.Event()
    pipe = SearchPipeline(db, cell, workers=4, chunk_size=100)
    try:
        pipe.execute(Gated(2, gate), SortOrder.DATE)
        pipe.execute(HasTag(1), SortOrder.DATE_ASCENDING)
        newer = cell.wait(timeout=5)
        assert _ids(db, newer.results) == [1, 2, 4, 5, 7, 8]

        gate.set()
        assert cell.stale_done.wait(5)
        assert cell.get() is newer
        assert cell.generation == 2
    finally:
        gate.set()
        pipe.shutdown()
