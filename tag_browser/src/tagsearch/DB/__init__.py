from .posts import PostDatabase
from .tags import TagDatabase

__all__ = ["PostDatabase", "TagDatabase"]
