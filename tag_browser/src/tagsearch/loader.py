from __future__ import annotations
import csv
import glob
import gzip
import io
import logging
import os
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Tuple

from . import config as CFG
from .DB.posts import PostDatabase
from .DB.tags import TagDatabase
from .models import FileExtension, Post, Tag, TagCategory
from .normalize import normalize_tag

log = logging.getLogger(__name__)

# post descriptions can be far larger than csv's default field limit
csv.field_size_limit(2**31 - 1)


def find_export(root: str, stem: str) -> str:
    """
    Locate `<stem>.csv`, `<stem>.csv.gz`, or the newest date-suffixed export
    (`<stem>-YYYY-MM-DD.csv[.gz]`) under root.
    """
    for name in (f"{stem}.csv", f"{stem}.csv.gz"):
        path = os.path.join(root, name)
        if os.path.isfile(path):
            return path
    dated = sorted(glob.glob(os.path.join(root, f"{stem}-*.csv")) + glob.glob(os.path.join(root, f"{stem}-*.csv.gz")))
    if dated:
        return dated[-1]
    raise FileNotFoundError(os.path.join(root, f"{stem}.csv"))


def _iter_rows(path: str) -> Iterator[Dict[str, str]]:
    if path.endswith(".gz"):
        fh: io.TextIOBase = io.TextIOWrapper(gzip.open(path, "rb"), encoding="utf-8", newline="")
    else:
        fh = open(path, "r", encoding="utf-8", newline="")
    with fh:
        for n, row in enumerate(csv.DictReader(fh), start=1):
            if n % CFG.PROGRESS_EVERY_ROWS == 0:
                log.info("[%s] rows=%s", os.path.basename(path), f"{n:,}")
            yield row


def _category(value: str) -> TagCategory:
    try:
        return TagCategory(int(value))
    except ValueError:
        return TagCategory.INVALID


def read_tags(path: str) -> List[Tag]:
    tags: List[Tag] = []
    for row in _iter_rows(path):
        try:
            tags.append(Tag(
                id=int(row["id"]),
                name=normalize_tag(row["name"]),
                category=_category(row.get("category", "0")),
                post_count=int(row.get("post_count") or 0),
            ))
        except (KeyError, ValueError):
            log.debug("skipping tag row %r", row)
    return tags


def read_aliases(path: str) -> List[Tuple[str, str]]:
    """(alias, canonical name) pairs of active aliases."""
    out: List[Tuple[str, str]] = []
    for row in _iter_rows(path):
        if row.get("status", "active") != "active":
            continue
        out.append((row["antecedent_name"], row["consequent_name"]))
    return out


def _parse_time(value: str) -> datetime:
    # exports look like "2007-02-10 04:20:50.455294"
    return datetime.fromisoformat(value.strip())


def read_posts(path: str, tag_ids: Dict[str, int]) -> List[Post]:
    posts: List[Post] = []
    for row in _iter_rows(path):
        if row.get("is_deleted") == "t":
            continue
        try:
            posts.append(Post(
                id=int(row["id"]),
                created_at=_parse_time(row["created_at"]),
                md5=row["md5"],
                file_ext=FileExtension(row["file_ext"]),
                score=int(row.get("score") or 0),
                fav_count=int(row.get("fav_count") or 0),
                tags=frozenset(tag_ids[t] for t in row.get("tag_string", "").split() if t in tag_ids),
            ))
        except (KeyError, ValueError):
            log.debug("skipping post row id=%s", row.get("id"))
    return posts


def load_databases(root: str) -> Tuple[TagDatabase, PostDatabase]:
    """Build the tag and post indexes from the CSV exports in a folder."""
    root = os.path.abspath(root)
    tags_path = find_export(root, CFG.TAGS_STEM)
    posts_path = find_export(root, CFG.POSTS_STEM)
    try:
        aliases: Iterable[Tuple[str, str]] = read_aliases(find_export(root, CFG.ALIASES_STEM))
    except FileNotFoundError:
        log.info("no alias export under %s; continuing without aliases", root)
        aliases = ()

    log.info("Loading tags from %s", tags_path)
    tags = read_tags(tags_path)
    tag_db = TagDatabase(tags, aliases)

    log.info("Loading posts from %s", posts_path)
    post_db = PostDatabase(read_posts(posts_path, {t.name: t.id for t in tags}))
    log.info("[done] tags=%s posts=%s", f"{len(tag_db):,}", f"{len(post_db):,}")
    return tag_db, post_db
