# tagsearch/engine.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from .autocomplete import AutocompleteResult, Autocompleter, Suggestion
from .DB.posts import PostDatabase
from .DB.tags import TagDatabase
from .loader import load_databases
from .models import Post
from .pipeline import SearchPipeline
from .query import QueryError, parse_query_and_sort_order
from .state import SearchState, SearchStateCell

log = logging.getLogger(__name__)


class Engine:
    """
    One browsing session. Glues together:
      - the tag and post indexes (immutable, shared read-only),
      - the autocompleter (synchronous, per keystroke),
      - the search pipeline and the state cell it publishes to.

    Public API (used by the desktop and web shells):
      * load(root):                      build both indexes from CSV exports
      * autocomplete(query, cursor):     suggestions for the token under the cursor
      * select(query, suggestion):       text + cursor after picking a suggestion
      * start_search(query):             parse and run in the background
      * state / step(delta) / post(i):   poll and navigate results
      * shutdown():                      stop the worker pool
    """

    def __init__(
        self,
        tag_db: TagDatabase,
        post_db: PostDatabase,
        *,
        workers: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        self.tag_db = tag_db
        self.post_db = post_db
        self.state = SearchStateCell()
        self.autocompleter = Autocompleter(tag_db)
        self._pipeline: Optional[SearchPipeline] = SearchPipeline(
            post_db, self.state, workers=workers, chunk_size=chunk_size)

    @classmethod
    def load(cls, root: str, **kwargs) -> "Engine":
        tag_db, post_db = load_databases(root)
        return cls(tag_db, post_db, **kwargs)

    # ------------- autocomplete -------------

    def autocomplete(self, query: str, cursor: int) -> Optional[AutocompleteResult]:
        return self.autocompleter.compute(query, cursor)

    def select(self, query: str, suggestion: Suggestion) -> Tuple[str, int]:
        return self.autocompleter.apply(query, suggestion)

    # ------------- search -------------

    def _resolve_tag(self, name: str):
        return [tag.id for tag in self.tag_db.search_wildcard(name)]

    def start_search(self, query: str) -> Optional[Tuple[int, int]]:
        """
        Parse and start a search. Returns None when the search was started, or the
        (start, end) character span to highlight when the query does not parse.
        """
        if self._pipeline is None:
            raise RuntimeError("Engine is shut down.")
        try:
            predicate, sort_order = parse_query_and_sort_order(query, self._resolve_tag)
        except QueryError as e:
            log.info("query rejected: %s at %s", e.reason, e.range)
            self.state.fail(e.reason, e.range)
            return e.range
        self._pipeline.execute(predicate, sort_order)
        return None

    def get_state(self) -> SearchState:
        return self.state.get()

    def step(self, delta: int) -> bool:
        return self.state.step(delta)

    def post(self, index: int) -> Post:
        return self.post_db[index]

    # ------------- teardown -------------

    def shutdown(self) -> None:
        try:
            if self._pipeline:
                self._pipeline.shutdown()
        finally:
            self._pipeline = None
            log.info("Engine shutdown complete")
