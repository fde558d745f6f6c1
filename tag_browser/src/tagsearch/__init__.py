"""
Incremental Search & Autocomplete Engine

The core of a desktop tag-query browser: live tag autocomplete while the user
types a query, and a background pipeline that filters and orders a large
in-memory post index without blocking the interface thread.

- autocomplete: token under the cursor -> ranked tag/alias suggestions + replace range
- pipeline:     parallel filter with progress, then one of the sort orders
- state:        Idle / InProgress / Done cell polled by the UI, generation-guarded
- query:        minimal query language (parser + autocomplete tokenizer)
- DB:           immutable tag and post indexes; loader builds them from CSV exports

Example Usage:
    from tagsearch import Engine

    engine = Engine.load("/path/to/exports")
    result = engine.autocomplete("fox ca", 6)
    engine.start_search("fox cat order:score")
    state = engine.state.wait()
"""

# tagsearch/__init__.py
from .engine import Engine
from .query import QueryError

__version__ = "1.0.0"
__all__ = ["Engine", "QueryError"]
