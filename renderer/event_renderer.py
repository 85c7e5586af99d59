"""Renders event pages and listings from Jinja2 templates."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from processor.categories import make_tag
from processor.models import Category, CategoryTable, Event
from processor.title_parser import ASCENT_RE
from scraper.hiking_buddies import HikingBuddiesScraper

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / 'templates'
STATIC_DIR = Path(__file__).parent / 'static'
EVENT_TEMPLATE = 'event.html.j2'
LISTING_TEMPLATE = 'listing.html.j2'


@dataclass
class EventView:
    """Everything the templates may show about one event."""
    link: str
    local_link: str
    permalink: str
    url: str
    page_title: str
    title: str
    grade: Optional[str]
    tags: List[str]
    short_tags: List[str]
    category: str
    category_emoji: Optional[str]
    category_icon: str
    date: datetime
    date_iso: str
    date_string: str
    day_date_string: str
    time_string: str
    day_date_time_string: str
    capacity: int
    registered: int
    waiting: int
    available: int
    image_url: str
    image_width: int
    image_height: int
    distance: Optional[str]
    ascent: Optional[str]
    stats: Optional[str]
    desc: str
    past: bool


@dataclass
class Listing:
    """A sorted listing page."""
    file_name: str
    link: str
    events: List[EventView] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)


def date_string(date: datetime) -> str:
    """e.g. 4 Jun"""
    return f"{date.day} {date:%b}"


def day_date_string(date: datetime) -> str:
    """e.g. Mon 4 Jun"""
    return f"{date:%a} {date.day} {date:%b}"


def time_string(date: datetime) -> str:
    """e.g. 09:30"""
    return f"{date:%H:%M}"


def day_date_time_string(date: datetime, now: datetime) -> str:
    """
    Day and date, with the year only if it is not this year and the time
    only if the event has not happened yet.
    """
    text = day_date_string(date)
    if date.year != now.year:
        text += f" {date.year}"
    if date.date() >= now.date():
        text += f", {time_string(date)}"
    return text


def stats_string(distance: Optional[str], ascent: Optional[str]) -> Optional[str]:
    """e.g. [12 km, 800m asc.]"""
    parts = []
    if distance:
        parts.append(distance)
    if ascent:
        match = ASCENT_RE.match(ascent)
        parts.append(f"{match.group(1) if match else ascent} asc.")
    if not parts:
        return None
    return f"[{', '.join(parts)}]"


def category_icon(category: Category) -> str:
    """The category as an HTML snippet: a FontAwesome icon, else the emoji."""
    if category.icon:
        return f'<i class="fas {category.icon}"></i>'
    return category.emoji or ''


class EventRenderer:
    """Renders events through the page and listing templates."""

    def __init__(
        self,
        categories: CategoryTable,
        templates_dir: Union[str, Path] = TEMPLATES_DIR,
        site_name: str = 'Hiking Buddies Munich',
        site_url: str = '',
        now: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the renderer.

        Args:
            categories: Category table, for ordering the category selector
            templates_dir: Directory holding event.html.j2 and listing.html.j2
            site_name: Suffix for page titles
            site_url: Public base URL of the site, e.g. https://hb.example.org,
                for absolute links in social media metadata
            now: Clock used to split upcoming and past events
        """
        self.categories = categories
        self.site_name = site_name
        self.site_url = site_url.rstrip('/')
        self.now = now
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(['html', 'j2']),
            trim_blocks=True,
            lstrip_blocks=True
        )

    def is_past(self, event: Event) -> bool:
        return event.date.date() < self.now().date()

    def view(self, event: Event) -> EventView:
        """Build the template context for an event."""
        now = self.now()
        tags = [make_tag(tag) for tag in event.tags]
        short_tags = [tag.short for tag in tags]
        stats = stats_string(event.distance, event.ascent)

        title_parts = [event.category.emoji, *short_tags, event.title, stats]
        page_title = (
            f"{date_string(event.date)}: "
            f"{' '.join(part for part in title_parts if part)} - {self.site_name}"
        )

        return EventView(
            link=event.link,
            local_link=f"/{event.link}/",
            permalink=f"{self.site_url}/{event.link}/",
            url=HikingBuddiesScraper.event_url(event.id),
            page_title=page_title,
            title=event.title,
            grade=event.grade,
            tags=[tag.long for tag in tags],
            short_tags=short_tags,
            category=event.category.name,
            category_emoji=event.category.emoji,
            category_icon=category_icon(event.category),
            date=event.date,
            date_iso=event.date.isoformat(),
            date_string=date_string(event.date),
            day_date_string=day_date_string(event.date),
            time_string=time_string(event.date),
            day_date_time_string=day_date_time_string(event.date, now),
            capacity=event.capacity,
            registered=event.registered,
            waiting=event.waiting,
            available=event.available,
            image_url=event.image_url,
            image_width=event.image_width,
            image_height=event.image_height,
            distance=event.distance,
            ascent=event.ascent,
            stats=stats,
            desc=event.desc,
            past=self.is_past(event)
        )

    def render_event(self, event: Event) -> str:
        """Render the redirect page, with social media metadata, for an event."""
        template = self.env.get_template(EVENT_TEMPLATE)
        return template.render(event=self.view(event))

    def listings(self, events: Sequence[Event]) -> List[Listing]:
        """
        Sort events into the upcoming, past and all listings.

        Args:
            events: Events to list

        Returns:
            Listings for index.html, past.html and all.html, in that order
        """
        by_date = sorted(events, key=lambda event: event.date)
        upcoming = [event for event in by_date if not self.is_past(event)]
        past = [event for event in reversed(by_date) if self.is_past(event)]

        return [
            self._listing('index.html', upcoming),
            self._listing('past.html', past),
            self._listing('all.html', list(reversed(by_date))),
        ]

    def render_listing(self, listing: Listing) -> str:
        template = self.env.get_template(LISTING_TEMPLATE)
        return template.render(
            events=listing.events,
            link=listing.link,
            categories=listing.categories,
            site_name=self.site_name
        )

    def render_listings(self, events: Sequence[Event]) -> Dict[str, str]:
        """Render every listing, keyed by file name."""
        return {
            listing.file_name: self.render_listing(listing)
            for listing in self.listings(events)
        }

    def _listing(self, file_name: str, events: List[Event]) -> Listing:
        link = '/' + file_name[:-len('.html')]
        if link == '/index':
            link = '/'
        logger.debug(f"Listing {link} has {len(events)} events")
        used = {event.category.name for event in events}
        return Listing(
            file_name=file_name,
            link=link,
            events=[self.view(event) for event in events],
            categories=[c for c in self.categories.categories if c.name in used]
        )

    def static_files(self) -> Dict[str, str]:
        """Scripts served from the site root alongside the listings."""
        return {
            path.name: path.read_text(encoding='utf-8')
            for path in sorted(STATIC_DIR.iterdir())
            if path.is_file()
        }
