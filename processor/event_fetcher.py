"""Fetches events from the cache or the Hiking Buddies website."""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from processor.categories import classify
from processor.models import CacheRecord, CategoryTable, Event
from processor.title_parser import parse_title
from scraper.hiking_buddies import HikingBuddiesScraper
from storage.event_cache import CACHE_VERSION, EventCache, ForceRebuildPolicy

logger = logging.getLogger(__name__)


class EventFetcher:
    """Builds complete Event objects, reusing cached data where possible."""

    # Cache hits allowed for an upcoming event before a full fetch is forced.
    MAX_CACHE_AGE = 20
    # Events this long past no longer have their participants re-checked.
    LONG_PAST = timedelta(days=3)

    def __init__(
        self,
        scraper: HikingBuddiesScraper,
        cache: EventCache,
        categories: CategoryTable,
        policy: ForceRebuildPolicy,
        now: Callable[[], datetime] = datetime.now
    ):
        self.scraper = scraper
        self.cache = cache
        self.categories = categories
        self.policy = policy
        self.now = now

    def fetch(self, link: str, event_id: int, desc: str = '') -> Event:
        """
        Fetch an event, from its cache if usable, else from the website.

        The cache is written back in either case.

        Args:
            link: URL slug of the event on this site
            event_id: Hiking Buddies event id
            desc: Description from the events file

        Returns:
            Fully populated Event

        Raises:
            requests.RequestException: If the website cannot be reached
            EventPageError: If the event page cannot be parsed
        """
        event = self._fetch_cached(link, event_id, desc)
        if event is None:
            event = self._fetch_web(link, event_id, desc)

        self.cache.save(self.to_record(event))
        return event

    def is_past(self, date: datetime) -> bool:
        """
        Has the event happened?

        False on the day of the event, true from the following day.
        """
        return date.date() < self.now().date()

    def is_long_past(self, date: datetime) -> bool:
        return date + self.LONG_PAST < self.now()

    def to_record(self, event: Event) -> CacheRecord:
        return CacheRecord(
            id=event.id,
            link=event.link,
            raw_title=event.raw_title,
            date=event.date,
            capacity=event.capacity,
            registered=event.registered,
            waiting=event.waiting,
            image_url=event.image_url,
            image_width=event.image_width,
            image_height=event.image_height,
            grade=event.grade,
            title=event.title,
            tags=list(event.tags),
            category=event.category.name,
            distance=event.distance,
            ascent=event.ascent,
            age=event.age,
            version=event.cache_version,
            long_past=self.is_long_past(event.date)
        )

    def _fetch_cached(self, link: str, event_id: int, desc: str) -> Optional[Event]:
        """Build the event from its cache, or return None to fetch it afresh."""
        if self.policy.should_force(link):
            logger.info(f"Forcing a rebuild of /{link}/")
            return None

        record = self.cache.load(link)
        if record is None or not self.cache.is_usable(record, event_id):
            return None

        age = record.age + 1
        if age > self.MAX_CACHE_AGE and not self.is_past(record.date):
            logger.info(f"Cache for /{link}/ is {age} builds old, refreshing")
            return None

        registered, waiting = record.registered, record.waiting
        if not record.long_past:
            registered, waiting = self.scraper.fetch_participants(event_id)

        logger.info(f"Using cache for /{link}/ (age {age})")
        return Event(
            id=record.id,
            link=link,
            desc=desc,
            raw_title=record.raw_title,
            date=record.date,
            capacity=record.capacity,
            registered=registered,
            waiting=waiting,
            image_url=record.image_url,
            image_width=record.image_width,
            image_height=record.image_height,
            grade=record.grade,
            title=record.title,
            tags=list(record.tags),
            category=self.categories.get(record.category) or self.categories.default,
            distance=record.distance,
            ascent=record.ascent,
            age=age,
            cache_version=record.version
        )

    def _fetch_web(self, link: str, event_id: int, desc: str) -> Event:
        """Fetch every field of the event from the website."""
        logger.info(f"Fetching event {event_id} for /{link}/ from the website")
        page = self.scraper.fetch_event_page(event_id)
        image_width, image_height = self.scraper.fetch_image_size(page.image_url)

        parts = parse_title(page.raw_title)
        tags, category = classify(parts.tags, self.categories)

        registered, waiting = self.scraper.fetch_participants(event_id)

        return Event(
            id=event_id,
            link=link,
            desc=desc,
            raw_title=page.raw_title,
            date=page.date,
            capacity=page.capacity,
            registered=registered,
            waiting=waiting,
            image_url=page.image_url,
            image_width=image_width,
            image_height=image_height,
            grade=parts.grade,
            title=parts.title,
            tags=tags,
            category=category,
            distance=parts.distance,
            ascent=parts.ascent,
            age=0,
            cache_version=CACHE_VERSION
        )
