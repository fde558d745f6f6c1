# src/e2e/test_tag_database_prefix_search.py

import pytest

import tagsearch.DB.tags as tags_mod
from tagsearch.DB.tags import TagDatabase
from tagsearch.models import Tag, TagCategory


def _db() -> TagDatabase:
    tags = [
        Tag(1, "cat", TagCategory.SPECIES, 500),
        Tag(2, "catfish", TagCategory.SPECIES, 50),
        Tag(3, "cattle", TagCategory.SPECIES, 200),
        Tag(4, "dog", TagCategory.SPECIES, 800),
        Tag(5, "car", TagCategory.GENERAL, 10),
    ]
    aliases = [("kitty", "cat"), ("cats", "cat")]
    return TagDatabase(tags, aliases)


def _everything(tag, alias):
    return True


def _names(matches):
    return [(tag.name, alias) for tag, alias in matches]


def test_prefix_matches_are_ranked_by_post_count_once_per_tag():
    db = _db()
    out = db.prefix_search("ca", 20, _everything)
    # "cats" -> cat ranks with cat but the canonical name wins and the tag is listed once
    assert _names(out) == [("cat", None), ("cattle", None), ("catfish", None), ("car", None)]


def test_alias_match_reports_the_alias():
    db = _db()
    assert _names(db.prefix_search("ki", 20, _everything)) == [("cat", "kitty")]
    assert _names(db.prefix_search("cats", 20, _everything)) == [("cat", "cats")]


def test_accept_runs_before_dedup_and_cap():
    db = _db()
    only_aliases = lambda tag, alias: alias is not None
    assert _names(db.prefix_search("cat", 20, only_aliases)) == [("cat", "cats")]

    no_cat = lambda tag, alias: tag.name != "cat"
    assert _names(db.prefix_search("ca", 1, no_cat)) == [("cattle", None)]


def test_prefix_is_normalized_and_unknown_prefix_is_empty():
    db = _db()
    assert _names(db.prefix_search("CA", 1, _everything)) == [("cat", None)]
    assert db.prefix_search("zebra", 20, _everything) == []
    assert db.prefix_search("ca", 0, _everything) == []


def test_empty_prefix_suggests_most_used_tags():
    db = _db()
    out = db.prefix_search("", 3, _everything)
    assert _names(out) == [("dog", None), ("cat", None), ("cattle", None)]


def test_result_count_is_capped():
    db = TagDatabase([Tag(i, f"tag_{i:02d}", post_count=i) for i in range(30)])
    out = db.prefix_search("tag_", 20, _everything)
    assert len(out) == 20
    counts = [tag.post_count for tag, _ in out]
    assert counts == sorted(counts, reverse=True)
    assert counts[0] == 29


def test_broad_prefix_walks_rank_order_with_same_answer(monkeypatch):
    db = _db()
    expected = db.prefix_search("ca", 20, _everything)
    monkeypatch.setattr(tags_mod, "RANK_SCAN_THRESHOLD", 0)
    assert db.prefix_search("ca", 20, _everything) == expected


def test_lookup_resolves_aliases_and_skips_bad_aliases():
    db = TagDatabase(
        [Tag(1, "cat", post_count=5), Tag(2, "dog", post_count=3)],
        [("Kitty", "cat"), ("dog", "cat"), ("wolf", "missing"), ("kitty", "dog")],
    )
    assert db.get("kitty ").name == "cat"
    assert db.get("KITTY").id == 1
    # alias shadowing a real tag, pointing nowhere, or already taken is ignored
    assert db.get("dog").id == 2
    assert db.get("wolf") is None
    assert db.get("cat").aliases == ("kitty",)
    assert "kitty" in db and "wolf" not in db
    assert len(db) == 2
    assert db.by_id(2).name == "dog"


def test_search_wildcard_matches_canonical_names():
    db = _db()
    assert sorted(t.name for t in db.search_wildcard("cat*")) == ["cat", "catfish", "cattle"]
    assert [t.name for t in db.search_wildcard("*fish")] == ["catfish"]
    assert [t.name for t in db.search_wildcard("c*t*e")] == ["cattle"]
    # no wildcard: exact lookup, aliases included
    assert [t.name for t in db.search_wildcard("kitty")] == ["cat"]
    assert list(db.search_wildcard("nope")) == []


@pytest.mark.parametrize("prefix", ["c", "ca", "cat", "catt"])
def test_every_match_starts_with_prefix(prefix):
    db = _db()
    for tag, alias in db.prefix_search(prefix, 20, _everything):
        assert (alias or tag.name).startswith(prefix)


def test_characters_above_the_basic_plane_follow_the_prefix(monkeypatch):
    db = TagDatabase([
        Tag(1, "cat😀", post_count=5),
        Tag(2, "cats", post_count=1),
        Tag(3, "cau", post_count=9),
    ])
    expected = [("cat😀", None), ("cats", None)]
    assert _names(db.prefix_search("cat", 20, _everything)) == expected
    assert {t.name for t in db.search_wildcard("cat*")} == {"cat😀", "cats"}

    monkeypatch.setattr(tags_mod, "RANK_SCAN_THRESHOLD", 0)
    assert _names(db.prefix_search("cat", 20, _everything)) == expected
