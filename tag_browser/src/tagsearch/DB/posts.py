# tagsearch/DB/posts.py
from __future__ import annotations
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..models import Post


class PostDatabase:
    """
    Immutable post index. Posts are kept ascending by (created_at, id); the
    DATE / DATE_ASCENDING sort orders rely on that order instead of sorting.
    """

    def __init__(self, posts: Iterable[Post]) -> None:
        self._posts: Tuple[Post, ...] = tuple(sorted(posts, key=lambda p: (p.created_at, p.id)))
        self._index_of: Dict[int, int] = {p.id: i for i, p in enumerate(self._posts)}

    def get_all(self) -> Sequence[Post]:
        return self._posts

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, idx: int) -> Post:
        return self._posts[idx]

    def index_of(self, post_id: int) -> Optional[int]:
        """Position of a post id in the index, or None if unknown."""
        return self._index_of.get(post_id)
