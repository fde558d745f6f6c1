# src/e2e/test_loader_csv_exports.py

import gzip
import logging
from pathlib import Path

import pytest

import tagsearch.config as CFG
from tagsearch.loader import find_export, load_databases
from tagsearch.models import FileExtension, TagCategory

TAGS_CSV = """id,name,category,post_count
1,cat,5,3
2,dog,5,1
3,some_artist,1,1
4,broken,x,0
"""

ALIASES_CSV = """id,antecedent_name,consequent_name,created_at,status
1,kitty,cat,2020-01-01,active
2,doggo,dog,2020-01-01,deleted
"""

POSTS_CSV = """id,created_at,md5,file_ext,tag_string,score,fav_count,is_deleted
10,2020-03-01 10:00:00.123456,aabbccddeeff00112233445566778899,png,cat some_artist,7,2,f
11,2020-01-01 09:00:00,00112233445566778899aabbccddeeff,jpg,cat dog unknown_tag,1,5,f
12,2020-02-01 09:00:00,ffeeddccbbaa99887766554433221100,webm,cat,3,0,t
13,2020-02-01 09:00:00,11112222333344445555666677778888,zip,dog,0,0,f
"""


def _seed(tmp: Path, *, gz_posts: bool = False) -> str:
    root = tmp / "exports"; root.mkdir()
    (root / "tags.csv").write_text(TAGS_CSV, encoding="utf-8")
    (root / "tag_aliases.csv").write_text(ALIASES_CSV, encoding="utf-8")
    if gz_posts:
        with gzip.open(root / "posts-2024-05-01.csv.gz", "wt", encoding="utf-8", newline="") as fh:
            fh.write(POSTS_CSV)
    else:
        (root / "posts.csv").write_text(POSTS_CSV, encoding="utf-8")
    return str(root)


@pytest.mark.e2e
def test_load_builds_both_indexes(tmp_path: Path):
    tag_db, post_db = load_databases(_seed(tmp_path))

    assert len(tag_db) == 4
    assert tag_db.get("kitty").name == "cat"
    assert tag_db.get("doggo") is None  # inactive alias
    assert tag_db.get("some_artist").category is TagCategory.ARTIST
    assert tag_db.get("broken").category is TagCategory.INVALID

    # deleted post and unknown file type are skipped; order is by date
    assert [p.id for p in post_db.get_all()] == [11, 10]
    first = post_db[0]
    assert first.file_ext is FileExtension.JPG
    assert first.tags == frozenset({1, 2})
    assert (first.score, first.fav_count) == (1, 5)
    assert post_db[1].created_at.microsecond == 123456


@pytest.mark.e2e
def test_gzipped_dated_export(tmp_path: Path):
    root = _seed(tmp_path, gz_posts=True)
    (Path(root) / "posts-2023-01-01.csv").write_text("id,created_at,md5,file_ext\n", encoding="utf-8")
    assert find_export(root, "posts").endswith("posts-2024-05-01.csv.gz")

    _, post_db = load_databases(root)
    assert len(post_db) == 2


@pytest.mark.e2e
def test_missing_alias_export_is_optional(tmp_path: Path):
    root = _seed(tmp_path)
    (Path(root) / "tag_aliases.csv").unlink()
    tag_db, _ = load_databases(root)
    assert tag_db.get("kitty") is None
    assert tag_db.get("cat").id == 1


@pytest.mark.e2e
def test_missing_tags_export_raises(tmp_path: Path):
    root = _seed(tmp_path)
    (Path(root) / "tags.csv").unlink()
    with pytest.raises(FileNotFoundError):
        load_databases(root)


@pytest.mark.e2e
def test_progress_is_logged(tmp_path: Path, monkeypatch, caplog):
    monkeypatch.setattr(CFG, "PROGRESS_EVERY_ROWS", 1)
    with caplog.at_level(logging.INFO, logger="tagsearch.loader"):
        load_databases(_seed(tmp_path))
    assert any("[tags.csv] rows=" in r.getMessage() for r in caplog.records)
    assert any(r.getMessage().startswith("[done] tags=4 posts=2") for r in caplog.records)
