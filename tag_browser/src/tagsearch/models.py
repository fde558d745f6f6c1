# tagsearch/models.py
"""
Data models for the search & autocomplete engine.

- Tag / TagCategory: one entry of the tag index (plus aliases).
- Post / FileExtension / ImageResolution: one entry of the post index.
- SortOrder: how a finished result list is ordered.

These classes hold no search logic; the indexes own them and hand out
references, which is safe because every instance is frozen.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, Tuple

from .config import CDN_BASE


class TagCategory(IntEnum):
    # values match the category column of the tag export
    GENERAL = 0
    ARTIST = 1
    COPYRIGHT = 3
    CHARACTER = 4
    SPECIES = 5
    INVALID = 6
    META = 7
    LORE = 8


# colour each category is painted with in the suggestion dropdown
CATEGORY_COLORS: Dict[TagCategory, str] = {
    TagCategory.GENERAL: "#b4c7d9",
    TagCategory.ARTIST: "#f2ac08",
    TagCategory.COPYRIGHT: "#dd00dd",
    TagCategory.CHARACTER: "#00aa00",
    TagCategory.SPECIES: "#ed5d1f",
    TagCategory.INVALID: "#ff3d3d",
    TagCategory.META: "#ffffff",
    TagCategory.LORE: "#228822",
}


@dataclass(frozen=True, slots=True)
class Tag:
    """
    One tag of the tag index.

    Attributes
    ----------
    id : int
        Stable identifier, unique within the index.
    name : str
        Canonical name, unique within the index.
    category : TagCategory
        Drives the colour of the suggestion.
    post_count : int
        Number of posts carrying the tag. Informational, used for ranking.
    aliases : tuple[str, ...]
        Alternate names that resolve to this tag.
    """
    id: int
    name: str
    category: TagCategory = TagCategory.GENERAL
    post_count: int = 0
    aliases: Tuple[str, ...] = ()


class FileExtension(str, Enum):
    JPG = "jpg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    WEBM = "webm"
    MP4 = "mp4"
    SWF = "swf"


class ImageResolution(Enum):
    PREVIEW = "preview"
    SAMPLE = "sample"
    FULL = "full"


@dataclass(frozen=True, slots=True)
class Post:
    """
    One post of the post index.

    `tags` holds tag ids; query predicates test membership against it.
    `created_at` defines the natural (ascending) order of the post index.
    """
    id: int
    created_at: datetime
    md5: str
    file_ext: FileExtension
    score: int = 0
    fav_count: int = 0
    tags: FrozenSet[int] = frozenset()

    def url(self, resolution: ImageResolution = ImageResolution.FULL) -> str:
        shard = f"{self.md5[0:2]}/{self.md5[2:4]}"
        if resolution is ImageResolution.FULL:
            return f"{CDN_BASE}/{shard}/{self.md5}.{self.file_ext.value}"
        # previews and samples are always re-encoded as jpg
        return f"{CDN_BASE}/{resolution.value}/{shard}/{self.md5}.jpg"


class SortOrder(Enum):
    DATE = "date"
    DATE_ASCENDING = "date_asc"
    SCORE = "score"
    SCORE_ASCENDING = "score_asc"
    FAV_COUNT = "favcount"
    FAV_COUNT_ASCENDING = "favcount_asc"
    RANDOM = "random"
