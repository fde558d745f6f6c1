# tagsearch/autocomplete.py
"""
Tag autocomplete for the query box.

compute() runs on every edit: it finds the tag token under the cursor, asks the
tag index for ranked prefix matches (skipping tags already required by the
enclosing groups, and names that do not end with whatever is typed after the
cursor), and remembers the UTF-8 byte range of the token. apply_suggestion()
swaps that range for the chosen tag's canonical name.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from . import config as CFG
from .DB.api import TagIndex
from .models import CATEGORY_COLORS, Tag
from .normalize import char_to_byte, normalize_tag
from .query import TokenAtCursor, token_at


@dataclass(frozen=True, slots=True)
class Suggestion:
    tag: Tag
    alias: Optional[str] = None

    @property
    def display(self) -> str:
        if self.alias is not None:
            return f"{self.alias} -> {self.tag.name}"
        return self.tag.name

    @property
    def color(self) -> str:
        return CATEGORY_COLORS[self.tag.category]


@dataclass(frozen=True, slots=True)
class AutocompleteResult:
    """
    Attributes
    ----------
    matches : tuple[Suggestion, ...]
        At most MAX_AUTOCOMPLETION_COUNT suggestions, in tag-index rank order.
    token_range : tuple[int, int]
        UTF-8 byte range [start, end) of the token in the query it was computed for.
    """
    matches: Tuple[Suggestion, ...]
    token_range: Tuple[int, int]


def _on_boundary(raw: bytes, pos: int) -> bool:
    # UTF-8 continuation bytes look like 0b10xxxxxx
    return pos == len(raw) or raw[pos] & 0xC0 != 0x80


def apply_suggestion(query: str, token_range: Tuple[int, int], tag_name: str) -> Tuple[str, int]:
    """
    Replace the byte range with tag_name. If the replacement ends the query, a
    separator space is appended. Returns (new_query, cursor as a character index).
    Raises ValueError if the range is out of bounds or splits a character, e.g.
    when the query was edited after the suggestions were computed.
    """
    raw = query.encode("utf-8")
    name = tag_name.encode("utf-8")
    start, end = token_range
    if not 0 <= start <= end <= len(raw):
        raise ValueError(f"Token range {token_range} is outside the query ({len(raw)} bytes)")
    if not (_on_boundary(raw, start) and _on_boundary(raw, end)):
        raise ValueError(f"Token range {token_range} splits a character")
    new = raw[:start] + name + raw[end:]
    end_pos = start + len(name)
    if end_pos == len(new):
        new += b" "
        end_pos += 1
    return new.decode("utf-8"), len(new[:end_pos].decode("utf-8"))


class Autocompleter:
    def __init__(
        self,
        tag_db: TagIndex,
        *,
        tokenizer: Callable[[str, int], Optional[TokenAtCursor]] = token_at,
        max_count: int = CFG.MAX_AUTOCOMPLETION_COUNT,
    ) -> None:
        self.tag_db = tag_db
        self._tokenizer = tokenizer
        self._max_count = max_count
        self.last_result: Optional[AutocompleteResult] = None

    def compute(self, query: str, char_index: int) -> Optional[AutocompleteResult]:
        """Suggestions for the token under a character cursor; None when the cursor is not on a tag."""
        byte_index = char_to_byte(query, char_index)
        token = self._tokenizer(query, byte_index)
        if token is None:
            self.last_result = None
            return None

        raw = query.encode("utf-8")
        prefix = raw[token.start:byte_index].decode("utf-8")
        suffix = normalize_tag(raw[byte_index:token.end].decode("utf-8"))

        excluded = set()
        for name in token.ancestors:
            tag = self.tag_db.get(name)
            if tag is not None:
                excluded.add(tag.id)

        def accept(tag: Tag, alias: Optional[str]) -> bool:
            shown = alias if alias is not None else tag.name
            return tag.id not in excluded and shown.endswith(suffix)

        matches = self.tag_db.prefix_search(prefix, self._max_count, accept)
        self.last_result = AutocompleteResult(
            matches=tuple(Suggestion(tag, alias) for tag, alias in matches[:self._max_count]),
            token_range=(token.start, token.end),
        )
        return self.last_result

    def apply(self, query: str, suggestion: Suggestion) -> Tuple[str, int]:
        """Apply a suggestion from the last result. Always inserts the canonical name."""
        if self.last_result is None:
            raise RuntimeError("compute() must return a result before a suggestion can be applied")
        return apply_suggestion(query, self.last_result.token_range, suggestion.tag.name)
