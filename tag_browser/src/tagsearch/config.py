from __future__ import annotations
import os

# autocomplete dropdown size
MAX_AUTOCOMPLETION_COUNT: int = 20

# above this many lexicon hits for a prefix, walk the global rank order instead
# of sorting the whole prefix range
RANK_SCAN_THRESHOLD: int = 50_000

# search workers
_cpu = os.cpu_count() or 4
SEARCH_WORKERS: int = _cpu
SEARCH_CHUNK_SIZE: int = 8192

# text shown before the first search
IDLE_MESSAGE: str = "Enter a search query"

# /* ~~~ data export files (optionally .gz and/or date-suffixed, e.g. tags-2024-05-01.csv.gz) ~~~ */
TAGS_STEM: str = "tags"
ALIASES_STEM: str = "tag_aliases"
POSTS_STEM: str = "posts"

# progress logging while loading
PROGRESS_EVERY_ROWS: int = 250_000

CDN_BASE: str = "https://static1.e621.net/data"

# set TAGSEARCH_VERBOSE=1 to enable INFO logging from the entry points
VERBOSE: bool = os.environ.get("TAGSEARCH_VERBOSE") == "1"
