"""Unit tests for EventFetcher."""
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import requests

from processor.categories import default_categories
from processor.event_fetcher import EventFetcher
from processor.models import EventPage
from scraper.hiking_buddies import EventPageError
from storage.event_cache import CACHE_VERSION, EventCache, ForceRebuildPolicy

NOW = datetime(2024, 6, 1, 12, 0)


@pytest.fixture
def categories():
    return default_categories()


@pytest.fixture
def cache(tmp_path, categories):
    """Create a cache in a temporary site directory."""
    return EventCache(tmp_path, categories)


@pytest.fixture
def mock_scraper():
    """Create a scraper returning an upcoming event."""
    scraper = Mock()
    scraper.fetch_event_page.return_value = EventPage(
        raw_title='T3 - [Austria, Hiking] Zugspitze [21 km, 2200m gain]',
        image_url='https://www.hiking-buddies.com/media/zugspitze.jpg',
        date=datetime(2024, 7, 13, 6, 30),
        capacity=12
    )
    scraper.fetch_image_size.return_value = (1200, 630)
    scraper.fetch_participants.return_value = (9, 2)
    return scraper


def make_fetcher(scraper, cache, categories, policy=None, now=NOW):
    return EventFetcher(
        scraper,
        cache,
        categories,
        policy or ForceRebuildPolicy(),
        now=lambda: now
    )


class TestEventFetcher:
    """Test cases for EventFetcher class."""

    def test_full_fetch_without_cache(self, mock_scraper, cache, categories):
        """Test an event with no cache is fetched from the website."""
        fetcher = make_fetcher(mock_scraper, cache, categories)

        event = fetcher.fetch('zugspitze', 1234, 'Top of Germany')

        assert event.id == 1234
        assert event.link == 'zugspitze'
        assert event.desc == 'Top of Germany'
        assert event.grade == 'T3'
        assert event.title == 'Zugspitze'
        assert event.tags == ['Austria']
        assert event.category.name == 'hiking'
        assert event.distance == '21 km'
        assert event.ascent == '2200m gain'
        assert event.date == datetime(2024, 7, 13, 6, 30)
        assert event.capacity == 12
        assert event.registered == 9
        assert event.waiting == 2
        assert event.available == 3
        assert (event.image_width, event.image_height) == (1200, 630)
        assert event.age == 0
        assert event.cache_version == CACHE_VERSION

        mock_scraper.fetch_event_page.assert_called_once_with(1234)
        mock_scraper.fetch_image_size.assert_called_once_with(
            'https://www.hiking-buddies.com/media/zugspitze.jpg'
        )
        mock_scraper.fetch_participants.assert_called_once_with(1234)

    def test_cache_written_after_fetch(self, mock_scraper, cache, categories):
        """Test the fetched event is saved to the cache."""
        fetcher = make_fetcher(mock_scraper, cache, categories)

        fetcher.fetch('zugspitze', 1234)
        record = cache.load('zugspitze')

        assert record.id == 1234
        assert record.age == 0
        assert record.category == 'hiking'
        assert record.version == CACHE_VERSION
        assert record.long_past is False

    def test_age_increments_on_cache_hits(self, mock_scraper, cache, categories):
        """Test age grows by one per cache hit."""
        fetcher = make_fetcher(mock_scraper, cache, categories)

        ages = [fetcher.fetch('zugspitze', 1234).age for _ in range(4)]

        assert ages == [0, 1, 2, 3]
        assert cache.load('zugspitze').age == 3
        mock_scraper.fetch_event_page.assert_called_once()

    def test_cache_hit_refreshes_participants(self, mock_scraper, cache, categories):
        """Test participant counts are re-fetched on a cache hit."""
        fetcher = make_fetcher(mock_scraper, cache, categories)
        fetcher.fetch('zugspitze', 1234)
        mock_scraper.fetch_participants.return_value = (11, 5)

        event = fetcher.fetch('zugspitze', 1234)

        assert (event.registered, event.waiting) == (11, 5)
        assert event.title == 'Zugspitze'
        assert mock_scraper.fetch_participants.call_count == 2

    def test_long_past_event_not_requeried(self, mock_scraper, cache, categories):
        """Test participants of long past events are taken from the cache."""
        later = datetime(2024, 7, 20, 12, 0)
        make_fetcher(mock_scraper, cache, categories, now=later).fetch('zugspitze', 1234)
        assert cache.load('zugspitze').long_past is True

        mock_scraper.reset_mock()
        event = make_fetcher(mock_scraper, cache, categories, now=later).fetch('zugspitze', 1234)

        assert event.age == 1
        assert (event.registered, event.waiting) == (9, 2)
        mock_scraper.fetch_participants.assert_not_called()
        mock_scraper.fetch_event_page.assert_not_called()

    def test_recently_past_event_requeried(self, mock_scraper, cache, categories):
        """Test participants are re-checked within three days of the event."""
        day_after = datetime(2024, 7, 14, 12, 0)
        fetcher = make_fetcher(mock_scraper, cache, categories, now=day_after)
        fetcher.fetch('zugspitze', 1234)
        assert cache.load('zugspitze').long_past is False

        fetcher.fetch('zugspitze', 1234)

        assert mock_scraper.fetch_participants.call_count == 2
        mock_scraper.fetch_event_page.assert_called_once()

    def test_stale_upcoming_event_refetched(self, mock_scraper, cache, categories):
        """Test an upcoming event is fully fetched once its cache gets too old."""
        fetcher = make_fetcher(mock_scraper, cache, categories)
        ages = [fetcher.fetch('zugspitze', 1234).age for _ in range(22)]

        assert ages[20] == 20
        assert ages[21] == 0
        assert mock_scraper.fetch_event_page.call_count == 2

    def test_stale_past_event_kept(self, mock_scraper, cache, categories):
        """Test a past event keeps using its cache however old."""
        later = datetime(2024, 8, 1)
        fetcher = make_fetcher(mock_scraper, cache, categories, now=later)
        ages = [fetcher.fetch('zugspitze', 1234).age for _ in range(25)]

        assert ages[-1] == 24
        mock_scraper.fetch_event_page.assert_called_once()

    def test_id_mismatch_refetches(self, mock_scraper, cache, categories):
        """Test a cache for a different event id is ignored."""
        fetcher = make_fetcher(mock_scraper, cache, categories)
        fetcher.fetch('zugspitze', 1234)

        event = fetcher.fetch('zugspitze', 5678)

        assert event.id == 5678
        assert event.age == 0
        assert mock_scraper.fetch_event_page.call_count == 2

    def test_forced_rebuild_ignores_cache(self, mock_scraper, cache, categories):
        """Test a forced rebuild always fetches from the website."""
        policy = ForceRebuildPolicy(force_links=frozenset({'zugspitze'}), push_trigger=True)
        fetcher = make_fetcher(mock_scraper, cache, categories, policy=policy)

        fetcher.fetch('zugspitze', 1234)
        event = fetcher.fetch('zugspitze', 1234)

        assert event.age == 0
        assert mock_scraper.fetch_event_page.call_count == 2

    def test_cycling_category(self, mock_scraper, cache, categories):
        """Test the category is taken from the title tags."""
        mock_scraper.fetch_event_page.return_value.raw_title = '[Bike, Lakes] Around the Ammersee'
        fetcher = make_fetcher(mock_scraper, cache, categories)

        event = fetcher.fetch('ammersee', 1234)

        assert event.category.name == 'cycling'
        assert event.tags == ['Lakes']
        assert event.grade is None

    def test_network_error_propagates(self, mock_scraper, cache, categories):
        """Test website failures abort the fetch and write no cache."""
        mock_scraper.fetch_event_page.side_effect = requests.ConnectionError('down')
        fetcher = make_fetcher(mock_scraper, cache, categories)

        with pytest.raises(requests.ConnectionError):
            fetcher.fetch('zugspitze', 1234)

        assert cache.load('zugspitze') is None

    def test_parse_error_propagates(self, mock_scraper, cache, categories):
        """Test page parsing failures abort the fetch."""
        mock_scraper.fetch_event_page.side_effect = EventPageError('no title')
        fetcher = make_fetcher(mock_scraper, cache, categories)

        with pytest.raises(EventPageError):
            fetcher.fetch('zugspitze', 1234)

    def test_is_past(self, mock_scraper, cache, categories):
        """Test events become past the day after they happen."""
        fetcher = make_fetcher(mock_scraper, cache, categories)

        assert not fetcher.is_past(NOW.replace(hour=6))
        assert fetcher.is_past(NOW - timedelta(days=1))
        assert not fetcher.is_long_past(NOW - timedelta(days=2))
        assert fetcher.is_long_past(NOW - timedelta(days=4))
