# tagsearch/query.py
"""
Minimal tag query language: the parser and autocomplete tokenizer the engine
is wired to by default.

    cat dog          both tags required
    -dog             tag excluded
    ~cat ~dog        at least one of the ~ terms
    { ... }          nested group; takes the same prefixes: -{a b}, ~{a b}
    order:score      sort order (top level only)
    cat*             wildcard, matches any of the expanded tags

Anything richer plugs in through the same two entry points:
parse_query_and_sort_order() and token_at().
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from .models import Post, SortOrder
from .normalize import byte_to_char, char_to_byte, normalize_tag

_LEX = re.compile(r"[{}]|[^\s{}]+")
_MODIFIERS = ("-", "~")

DEFAULT_SORT_ORDER = SortOrder.DATE

ORDER_VALUES = {
    "date": SortOrder.DATE,
    "new": SortOrder.DATE,
    "id_desc": SortOrder.DATE,
    "date_asc": SortOrder.DATE_ASCENDING,
    "old": SortOrder.DATE_ASCENDING,
    "id": SortOrder.DATE_ASCENDING,
    "id_asc": SortOrder.DATE_ASCENDING,
    "score": SortOrder.SCORE,
    "score_desc": SortOrder.SCORE,
    "score_asc": SortOrder.SCORE_ASCENDING,
    "favcount": SortOrder.FAV_COUNT,
    "favcount_desc": SortOrder.FAV_COUNT,
    "favcount_asc": SortOrder.FAV_COUNT_ASCENDING,
    "random": SortOrder.RANDOM,
}


class QueryError(ValueError):
    """A query that cannot be run. `start`/`end` are character offsets of the offending text."""

    def __init__(self, reason: str, start: int, end: int) -> None:
        super().__init__(reason)
        self.reason = reason
        self.start = start
        self.end = end

    @property
    def range(self) -> Tuple[int, int]:
        return (self.start, self.end)


@dataclass(frozen=True, slots=True)
class Token:
    kind: str   # "open" | "close" | "term"
    text: str
    start: int  # character offsets into the query
    end: int


def tokenize(text: str) -> List[Token]:
    out: List[Token] = []
    for m in _LEX.finditer(text):
        t = m.group()
        kind = "open" if t == "{" else "close" if t == "}" else "term"
        out.append(Token(kind, t, m.start(), m.end()))
    return out


def _split_modifier(text: str) -> Tuple[str, str]:
    if text and text[0] in _MODIFIERS:
        return text[0], text[1:]
    return "", text


# ---------------- predicates ----------------

@dataclass(frozen=True, slots=True)
class TagTerm:
    name: str
    tag_ids: frozenset

    def validate(self, post: Post) -> bool:
        return not self.tag_ids.isdisjoint(post.tags)


@dataclass(slots=True)
class Group:
    required: list = field(default_factory=list)
    excluded: list = field(default_factory=list)
    alternatives: list = field(default_factory=list)

    def add(self, modifier: str, term) -> None:
        if modifier == "-":
            self.excluded.append(term)
        elif modifier == "~":
            self.alternatives.append(term)
        else:
            self.required.append(term)

    def validate(self, post: Post) -> bool:
        if not all(t.validate(post) for t in self.required):
            return False
        if any(t.validate(post) for t in self.excluded):
            return False
        return not self.alternatives or any(t.validate(post) for t in self.alternatives)


Query = Group


# ---------------- parsing ----------------

def _parse_order(value: str, tok: Token) -> SortOrder:
    try:
        return ORDER_VALUES[value.lower()]
    except KeyError:
        raise QueryError(f"Unknown sort order: {value}", tok.start, tok.end) from None


def parse_query_and_sort_order(
    text: str,
    resolve_tag: Callable[[str], Iterable[int]],
) -> Tuple[Query, SortOrder]:
    """
    Parse `text` into a predicate and a sort order.
    resolve_tag(name) returns the tag ids a (possibly wildcard) name stands for.
    Raises QueryError with the character span of the first problem.
    """
    root = Group()
    stack: List[Tuple[Group, str, Optional[Token]]] = [(root, "", None)]
    sort_order: Optional[SortOrder] = None
    pending: Optional[Token] = None  # a lone "-" / "~" waiting for its "{"

    for tok in tokenize(text):
        modifier = ""
        if pending is not None:
            if tok.kind != "open" or tok.start != pending.end:
                raise QueryError(f"Expected a tag or group after '{pending.text}'", pending.start, pending.end)
            modifier, pending = pending.text, None

        if tok.kind == "open":
            stack.append((Group(), modifier, tok))
            continue

        if tok.kind == "close":
            if len(stack) == 1:
                raise QueryError("Unmatched '}'", tok.start, tok.end)
            group, group_modifier, _ = stack.pop()
            stack[-1][0].add(group_modifier, group)
            continue

        if tok.text in _MODIFIERS:
            pending = tok
            continue

        mod, name = _split_modifier(tok.text)
        if ":" in name:
            key, _, value = name.partition(":")
            if key.lower() != "order":
                raise QueryError(f"Unknown metatag: {key}", tok.start, tok.end)
            if mod or len(stack) > 1:
                raise QueryError("order: is only allowed at the top level", tok.start, tok.end)
            if sort_order is not None:
                raise QueryError("Only one order: metatag is allowed", tok.start, tok.end)
            sort_order = _parse_order(value, tok)
            continue

        name = normalize_tag(name)
        ids = frozenset(resolve_tag(name))
        if not ids:
            raise QueryError(f"Unknown tag: {name}", tok.start, tok.end)
        stack[-1][0].add(mod, TagTerm(name, ids))

    if pending is not None:
        raise QueryError(f"Expected a tag or group after '{pending.text}'", pending.start, pending.end)
    if len(stack) > 1:
        opener = stack[-1][2]
        assert opener is not None
        raise QueryError("Unclosed '{'", opener.start, opener.end)

    return root, sort_order or DEFAULT_SORT_ORDER


# ---------------- autocomplete tokenizer ----------------

@dataclass(frozen=True, slots=True)
class TokenAtCursor:
    """
    The tag being edited. `start`/`end` are UTF-8 byte offsets of the editable text
    (modifier prefix excluded). `ancestors` are tag names already required in the
    token's own group and every group enclosing it.
    """
    text: str
    start: int
    end: int
    ancestors: Tuple[str, ...] = ()


class _Scope:
    __slots__ = ("parent", "tags")

    def __init__(self, parent: Optional["_Scope"]) -> None:
        self.parent = parent
        self.tags: List[str] = []


def _is_plain_tag(name: str) -> bool:
    return bool(name) and ":" not in name and "*" not in name


def token_at(text: str, byte_cursor: int) -> Optional[TokenAtCursor]:
    """
    Locate the editable tag token under a byte cursor.

    Returns None when the cursor sits on something that is not a tag: a
    modifier, a metatag, a wildcard, or directly after a closing brace.
    A cursor in whitespace yields an empty token, which suggests the most
    used tags.
    """
    cursor = byte_to_char(text, byte_cursor)
    scope = _Scope(None)
    cursor_scope: Optional[_Scope] = None
    target: Optional[Token] = None
    target_scope: Optional[_Scope] = None
    after_close = False

    for tok in tokenize(text):
        if cursor_scope is None and tok.start >= cursor:
            cursor_scope = scope
        if tok.kind == "open":
            scope = _Scope(scope)
            continue
        if tok.kind == "close":
            after_close = after_close or tok.end == cursor
            if scope.parent is not None:
                scope = scope.parent
            continue

        mod, name = _split_modifier(tok.text)
        if target is None and tok.start <= cursor <= tok.end:
            target, target_scope = tok, scope
            continue
        if not mod and _is_plain_tag(name):
            scope.tags.append(normalize_tag(name))

    if target is None:
        if after_close:
            return None
        start = char_to_byte(text, cursor)
        return TokenAtCursor("", start, start, _collect(cursor_scope or scope))

    mod, name = _split_modifier(target.text)
    edit_start = target.start + len(mod)
    if cursor < edit_start or not (name == "" or _is_plain_tag(name)):
        return None

    return TokenAtCursor(
        text=name,
        start=char_to_byte(text, edit_start),
        end=char_to_byte(text, target.end),
        ancestors=_collect(target_scope),
    )


def _collect(scope: Optional[_Scope]) -> Tuple[str, ...]:
    names: List[str] = []
    while scope is not None:
        names.extend(scope.tags)
        scope = scope.parent
    return tuple(names)
