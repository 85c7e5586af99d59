"""Client for event pages on the Hiking Buddies website."""
import json
import logging
import re
import time
from datetime import datetime
from typing import Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from PIL import ImageFile

from processor.models import EventPage

logger = logging.getLogger(__name__)


class EventPageError(ValueError):
    """An event page or endpoint did not contain what was expected."""


class HikingBuddiesScraper:
    """Scraper for event details on the Hiking Buddies website."""

    BASE_URL = "https://www.hiking-buddies.com/"
    DATE_FORMAT = "%m/%d/%Y %H:%M:%S"
    # The server errors on requests without a language header.
    HEADERS = {'Accept-Language': 'en'}
    IMAGE_CHUNK_SIZE = 1024
    MAX_RETRIES = 3

    def __init__(self, timeout: int = 30):
        """
        Initialize the scraper.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.timeout = timeout

    @classmethod
    def event_url(cls, event_id: int) -> str:
        """Absolute URL of an event's page."""
        return urljoin(cls.BASE_URL, f"/routes/events/{event_id}/")

    def participants_url(self, event_id: int) -> str:
        return urljoin(self.BASE_URL, f"/routes/get_event_details/?event_id={event_id}")

    def fetch_event_page(self, event_id: int) -> EventPage:
        """
        Fetch and parse the page of an event.

        Args:
            event_id: Hiking Buddies event id

        Returns:
            EventPage with the title, header image, date and capacity

        Raises:
            requests.RequestException: If the page cannot be fetched
            EventPageError: If the page is missing an expected element
        """
        url = self.event_url(event_id)
        logger.info(f"Fetching event page {url}")
        html_content = self._get(url).text
        return self._parse_event_page(html_content, url)

    def fetch_participants(self, event_id: int) -> Tuple[int, int]:
        """
        Fetch the number of registered and waiting participants.

        Args:
            event_id: Hiking Buddies event id

        Returns:
            Tuple of (registered, waiting)
        """
        response = self._get(self.participants_url(event_id))
        try:
            details = response.json()
            registered = self._count(details['participants'])
            waiting = self._count(details['participants_waiting'])
        except (ValueError, KeyError, TypeError) as e:
            raise EventPageError(
                f"Unexpected participant details for event {event_id}: {e}"
            ) from e
        return registered, waiting

    def fetch_image_size(self, image_url: str) -> Tuple[int, int]:
        """
        Find the pixel size of an image from its header bytes.

        Only as much of the image is downloaded as is needed to identify it.

        Args:
            image_url: Absolute URL of the image

        Returns:
            Tuple of (width, height)
        """
        response = self._get(image_url, stream=True)
        parser = ImageFile.Parser()
        try:
            for chunk in response.iter_content(self.IMAGE_CHUNK_SIZE):
                parser.feed(chunk)
                if parser.image:
                    return parser.image.size
        finally:
            response.close()
        raise EventPageError(f"Unable to determine the size of image {image_url}")

    def _get(self, url: str, stream: bool = False) -> requests.Response:
        """
        GET a URL with retry logic.

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        base_delay = 1  # seconds

        for attempt in range(self.MAX_RETRIES):
            try:
                response = requests.get(
                    url,
                    headers=self.HEADERS,
                    timeout=self.timeout,
                    stream=stream
                )
                response.raise_for_status()
                return response

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request to {url} failed (attempt {attempt + 1}/{self.MAX_RETRIES}): "
                        f"{e}. Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed for {url}. Last error: {e}"
                    )
                    raise

    def _parse_event_page(self, html_content: str, url: str) -> EventPage:
        """
        Parse the fields of an event page.

        Args:
            html_content: HTML of the event page
            url: URL the page was fetched from, for resolving relative links

        Returns:
            EventPage object
        """
        soup = BeautifulSoup(html_content, 'html.parser')

        title_elem = soup.select_one('.event-name')
        cover_elem = soup.select_one('.cover_container')
        start_elem = soup.select_one('input[name=start]')
        capacity_elem = soup.select_one('input[name=max_participants]')

        if not all([title_elem, cover_elem, start_elem, capacity_elem]):
            raise EventPageError(f"Event page {url} is missing expected elements")

        match = re.search(r'url\((.+?)\)', cover_elem.get('style', ''))
        if not match:
            raise EventPageError(f"No header image found on {url}")
        image_url = urljoin(url, match.group(1).strip('\'"'))

        try:
            date = datetime.strptime(start_elem.get('value', ''), self.DATE_FORMAT)
            capacity = int(capacity_elem.get('value', ''))
        except ValueError as e:
            raise EventPageError(f"Unparsable event details on {url}: {e}") from e

        return EventPage(
            raw_title=title_elem.get_text().strip(),
            image_url=image_url,
            date=date,
            capacity=capacity
        )

    def _count(self, participants) -> int:
        """Count participants given as a list or a JSON-encoded list."""
        if isinstance(participants, str):
            participants = json.loads(participants)
        return len(participants)
