"""Flask shell over a tagsearch Engine (autocomplete, search, result paging)."""
from __future__ import annotations
from .web import app, main

__all__ = ["app", "main"]
