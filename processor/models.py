"""Data models for event processing."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional, Tuple


@dataclass(frozen=True)
class Category:
    """Kind of event, e.g. hiking or cycling."""
    name: str
    terms: FrozenSet[str]
    icon: Optional[str] = None
    emoji: Optional[str] = None

    def matches(self, tag: str) -> bool:
        return tag.lower() in self.terms


@dataclass(frozen=True)
class CategoryTable:
    """Ordered categories, with the one used when no tag matches."""
    categories: Tuple[Category, ...]
    default: Category

    def get(self, name: str) -> Optional[Category]:
        for category in self.categories:
            if category.name == name:
                return category
        return None


@dataclass(frozen=True)
class Tag:
    """Short form for prefixing a title, long form for standalone display."""
    short: str
    long: str


@dataclass
class TitleParts:
    """Structured information extracted from a raw event title."""
    grade: Optional[str]
    title: str
    tags: List[str] = field(default_factory=list)
    distance: Optional[str] = None
    ascent: Optional[str] = None


@dataclass
class EventPage:
    """Fields scraped from an event's page on the Hiking Buddies site."""
    raw_title: str
    image_url: str
    date: datetime
    capacity: int


@dataclass
class Event:
    """Fully fetched event, ready for rendering."""
    id: int
    link: str
    desc: str
    raw_title: str
    date: datetime
    capacity: int
    registered: int
    waiting: int
    image_url: str
    image_width: int
    image_height: int
    grade: Optional[str]
    title: str
    tags: List[str]
    category: Category
    distance: Optional[str]
    ascent: Optional[str]
    age: int
    cache_version: int

    @property
    def available(self) -> int:
        """Spaces left, ignoring car seat restrictions."""
        return self.capacity - self.registered


@dataclass
class CacheRecord:
    """Persisted snapshot of an Event."""
    id: int
    link: str
    raw_title: str
    date: datetime
    capacity: int
    registered: int
    waiting: int
    image_url: str
    image_width: int
    image_height: int
    grade: Optional[str]
    title: str
    tags: List[str]
    category: str
    distance: Optional[str]
    ascent: Optional[str]
    age: int
    version: int
    long_past: bool
