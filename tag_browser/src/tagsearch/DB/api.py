# tagsearch/DB/api.py
from __future__ import annotations
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from ..models import Post, Tag

# (tag, alias it was matched through, or None for a canonical-name match)
TagMatch = Tuple[Tag, Optional[str]]
AcceptFn = Callable[[Tag, Optional[str]], bool]


class TagIndex(Protocol):
    # exact lookup by canonical name or alias
    def get(self, name: str) -> Optional[Tag]: ...
    # ranked prefix matches; never more than max_count
    def prefix_search(self, prefix: str, max_count: int, accept: AcceptFn) -> List[TagMatch]: ...


class PostIndex(Protocol):
    # every post, ascending by date; the order never changes after load
    def get_all(self) -> Sequence[Post]: ...
    def __len__(self) -> int: ...
