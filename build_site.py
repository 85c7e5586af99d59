"""Build the Hiking Buddies Munich event pages and listings."""
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List

import yaml

from processor.categories import default_categories
from processor.event_fetcher import EventFetcher
from processor.models import Event
from renderer.event_renderer import EventRenderer, TEMPLATES_DIR
from scraper.hiking_buddies import HikingBuddiesScraper
from site_logging import setup_logging
from storage.event_cache import EventCache, ForceRebuildPolicy


def load_events_config(path: Path) -> Dict[str, Dict[str, Any]]:
    """
    Load the events file, a mapping of URL slug to ``{id, desc}``.

    Args:
        path: Path to the YAML events file

    Returns:
        Mapping of link to event settings, in file order

    Raises:
        ValueError: If the file is not shaped as expected
    """
    data = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must map event links to their settings")

    events = {}
    for link, settings in data.items():
        if not isinstance(settings, dict) or 'id' not in settings:
            raise ValueError(f"Event /{link}/ in {path} has no id")
        events[str(link)] = {
            'id': int(settings['id']),
            'desc': settings.get('desc') or ''
        }
    return events


def site_url_from_cname(output_dir: Path) -> str:
    """Public base URL of the site, from the CNAME file if there is one."""
    cname = output_dir / 'CNAME'
    if not cname.exists():
        return ''
    return f"https://{cname.read_text(encoding='utf-8').strip()}"


def write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')


def main() -> int:
    """
    Fetch every configured event and write the site.

    Returns:
        Exit status: 0 on success, 1 if any event could not be built
    """
    # Read configuration from environment variables
    events_file = Path(os.environ.get('EVENTS_FILE', 'events.yml'))
    output_dir = Path(os.environ.get('OUTPUT_DIR', '.'))
    templates_dir = Path(os.environ.get('TEMPLATES_DIR', str(TEMPLATES_DIR)))
    site_name = os.environ.get('SITE_NAME', 'Hiking Buddies Munich')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    cache_base_url = os.environ.get('CACHE_BASE_URL') or None
    site_url = os.environ.get('SITE_URL') or site_url_from_cname(output_dir)

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        "Site build started",
        extra={
            'events_file': str(events_file),
            'output_dir': str(output_dir),
            'cache_base_url': cache_base_url
        }
    )

    try:
        categories = default_categories()
        policy = ForceRebuildPolicy.from_env(os.environ)
        scraper = HikingBuddiesScraper(timeout=timeout_seconds)
        cache = EventCache(
            output_dir,
            categories,
            remote_base_url=cache_base_url,
            timeout=timeout_seconds
        )
        fetcher = EventFetcher(scraper, cache, categories, policy)
        renderer = EventRenderer(
            categories,
            templates_dir=templates_dir,
            site_name=site_name,
            site_url=site_url
        )

        config = load_events_config(events_file)
        logger.info(f"Loaded {len(config)} events from {events_file}")

        events: List[Event] = []
        for link, settings in config.items():
            event = fetcher.fetch(link, settings['id'], settings['desc'])
            logger.info(f"Saving '{event.title}' to /{link}/")
            write_file(output_dir / link / 'index.html', renderer.render_event(event))
            events.append(event)

        for file_name, html in renderer.render_listings(events).items():
            logger.info(f"Saving listing {file_name}")
            write_file(output_dir / file_name, html)

        for file_name, content in renderer.static_files().items():
            write_file(output_dir / file_name, content)

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Site build failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return 1

    duration = time.time() - start_time
    logger.info(
        f"Site build completed with {len(events)} events",
        extra={'duration_seconds': round(duration, 2)}
    )
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
