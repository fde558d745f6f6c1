# tagsearch/DB/tags.py
from __future__ import annotations
import bisect
import dataclasses
import logging
import re
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..config import RANK_SCAN_THRESHOLD
from ..models import Tag
from ..normalize import normalize_tag
from .api import AcceptFn, TagMatch

log = logging.getLogger(__name__)

_MAX_CHAR = chr(0x10FFFF)

# lexicon entry: (key, tag, alias) where key is the name or alias being matched
_Entry = Tuple[str, Tag, Optional[str]]


def _rank(entry: _Entry) -> tuple:
    # most used first; canonical names before aliases of the same tag; then by name
    key, tag, alias = entry
    return (-tag.post_count, alias is not None, key)


class TagDatabase:
    """
    In-memory tag + alias index.

    Build-time: tags and (alias -> canonical name) pairs.
    Query-time: a sorted lexicon of names and aliases for bisect prefix scans,
    plus the same entries in rank order for very broad prefixes.
    Immutable after construction, so it is shared across threads without locking.
    """

    def __init__(self, tags: Iterable[Tag], aliases: Iterable[Tuple[str, str]] = ()) -> None:
        by_name: Dict[str, Tag] = {t.name: t for t in tags}

        alias_map: Dict[str, str] = {}
        per_tag: Dict[str, List[str]] = defaultdict(list)
        for alias, target in aliases:
            alias, target = normalize_tag(alias), normalize_tag(target)
            if target not in by_name or alias in by_name or alias in alias_map:
                log.debug("skipping alias %s -> %s", alias, target)
                continue
            alias_map[alias] = target
            per_tag[target].append(alias)

        for name, names in per_tag.items():
            by_name[name] = dataclasses.replace(by_name[name], aliases=tuple(sorted(names)))

        self._by_name = by_name
        self._by_id: Dict[int, Tag] = {t.id: t for t in by_name.values()}
        self._alias_to_name = alias_map

        entries: List[_Entry] = [(name, tag, None) for name, tag in by_name.items()]
        entries += [(alias, by_name[target], alias) for alias, target in alias_map.items()]
        entries.sort(key=lambda e: e[0])
        self._lex_keys: List[str] = [e[0] for e in entries]
        self._lex: List[_Entry] = entries
        self._by_rank: List[_Entry] = sorted(entries, key=_rank)

    # ---- Read ----
    def get(self, name: str) -> Optional[Tag]:
        name = normalize_tag(name)
        tag = self._by_name.get(name)
        if tag is None and name in self._alias_to_name:
            tag = self._by_name[self._alias_to_name[name]]
        return tag

    def by_id(self, tag_id: int) -> Tag:
        return self._by_id[tag_id]

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __iter__(self) -> Iterator[Tag]:
        return iter(self._by_name.values())

    # ---- Prefix search ----
    def _prefix_range(self, prefix: str) -> Tuple[int, int]:
        L = self._lex_keys
        lo = bisect.bisect_left(L, prefix)
        # upper bound: smallest string greater than every key starting with prefix
        stem = prefix.rstrip(_MAX_CHAR)
        if not stem:
            return lo, len(L)
        hi = bisect.bisect_left(L, stem[:-1] + chr(ord(stem[-1]) + 1))
        return lo, hi

    def prefix_search(self, prefix: str, max_count: int, accept: AcceptFn) -> List[TagMatch]:
        """
        Return up to max_count (tag, alias) pairs whose name or alias starts with prefix,
        ranked by descending post_count (canonical-name matches first on ties, then by name).
        A tag appears at most once; accept(tag, alias) filters candidates before the cap.
        """
        if max_count <= 0:
            return []
        prefix = normalize_tag(prefix)
        lo, hi = self._prefix_range(prefix)
        if hi <= lo:
            return []

        if hi - lo > RANK_SCAN_THRESHOLD:
            # broad prefix: the global rank order already has the answer near the front
            candidates: Iterable[_Entry] = (e for e in self._by_rank if e[0].startswith(prefix))
        else:
            candidates = sorted(self._lex[lo:hi], key=_rank)

        out: List[TagMatch] = []
        seen: set[int] = set()
        for _, tag, alias in candidates:
            if tag.id in seen or not accept(tag, alias):
                continue
            seen.add(tag.id)
            out.append((tag, alias))
            if len(out) >= max_count:
                break
        return out

    # ---- Wildcards ----
    def search_wildcard(self, pattern: str) -> Iterator[Tag]:
        """
        Yield tags matching a `*` wildcard pattern (canonical names only).
        Without a `*` this is an exact lookup that also resolves aliases.
        """
        pattern = normalize_tag(pattern)
        if "*" not in pattern:
            tag = self.get(pattern)
            if tag is not None:
                yield tag
            return

        literal = pattern.split("*", 1)[0]
        rx = re.compile(".*".join(re.escape(p) for p in pattern.split("*")))
        lo, hi = self._prefix_range(literal)
        for key, tag, alias in self._lex[lo:hi]:
            if alias is None and rx.fullmatch(key):
                yield tag
