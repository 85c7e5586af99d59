"""File-backed cache of fetched events."""
import logging
import os
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import FrozenSet, Mapping, Optional, Union

import requests
import yaml

from processor.models import CacheRecord, CategoryTable

logger = logging.getLogger(__name__)

# Bump when the cached fields or their meaning change.
CACHE_VERSION = 1

CACHE_FILE_NAME = 'cache.yml'

TRUTHY = {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class ForceRebuildPolicy:
    """Decides when cached events must be fetched again regardless of age."""
    force_all: bool = False
    force_links: FrozenSet[str] = frozenset()
    push_trigger: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> 'ForceRebuildPolicy':
        """
        Read the policy from environment variables.

        Args:
            environ: Environment mapping (default: os.environ)

        Returns:
            ForceRebuildPolicy built from FORCE_REBUILD, FORCE_REBUILD_LINKS
            and BUILD_TRIGGER
        """
        links = environ.get('FORCE_REBUILD_LINKS', '')
        return cls(
            force_all=environ.get('FORCE_REBUILD', '').strip().lower() in TRUTHY,
            force_links=frozenset(link.strip() for link in links.split(',') if link.strip()),
            push_trigger=environ.get('BUILD_TRIGGER', '').strip().lower() == 'push'
        )

    def should_force(self, link: str) -> bool:
        """Force flags only apply to builds triggered by a push."""
        return self.push_trigger and (self.force_all or link in self.force_links)


class EventCache:
    """Reads, validates and writes one cache file per event."""

    def __init__(
        self,
        root_dir: Union[str, Path],
        categories: CategoryTable,
        remote_base_url: Optional[str] = None,
        timeout: int = 30
    ):
        """
        Initialize the cache.

        Args:
            root_dir: Site directory; caches live at <root_dir>/<link>/cache.yml
            categories: Table used to validate cached category names
            remote_base_url: If set, caches are read from this URL instead
                of root_dir (writes always go to root_dir)
            timeout: HTTP timeout in seconds for remote reads
        """
        self.root_dir = Path(root_dir)
        self.categories = categories
        self.remote_base_url = remote_base_url.rstrip('/') if remote_base_url else None
        self.timeout = timeout

    def cache_path(self, link: str) -> Path:
        return self.root_dir / link / CACHE_FILE_NAME

    def load(self, link: str) -> Optional[CacheRecord]:
        """
        Load the cached record of an event.

        Any failure to read or understand the cache is treated as a miss.

        Args:
            link: URL slug of the event

        Returns:
            CacheRecord or None if there is no usable cache file
        """
        try:
            text = self._read(link)
            if text is None:
                return None
            return self._record_from_dict(yaml.safe_load(text))
        except (OSError, requests.RequestException, yaml.YAMLError) as e:
            logger.warning(f"Unable to read cache for /{link}/: {e}")
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cache for /{link}/: {e}")
        return None

    def is_usable(self, record: CacheRecord, event_id: int) -> bool:
        """
        Check a cached record belongs to the event and the current version.

        Args:
            record: Loaded cache record
            event_id: Id of the event being fetched

        Returns:
            True if the record can stand in for a web fetch
        """
        if record.id != event_id:
            logger.info(
                f"Cache for /{record.link}/ is for event {record.id}, not {event_id}"
            )
            return False
        if record.version != CACHE_VERSION:
            logger.info(
                f"Cache for /{record.link}/ has version {record.version}, "
                f"expected {CACHE_VERSION}"
            )
            return False
        return True

    def save(self, record: CacheRecord) -> Path:
        """
        Write a record to its cache file.

        Args:
            record: CacheRecord to persist

        Returns:
            Path of the written file
        """
        path = self.cache_path(record.link)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(self._record_to_dict(record), allow_unicode=True, sort_keys=False),
            encoding='utf-8'
        )
        logger.debug(f"Saved cache for /{record.link}/ (age {record.age})")
        return path

    def _read(self, link: str) -> Optional[str]:
        """Read raw cache text locally or from the remote mirror."""
        if self.remote_base_url:
            url = f"{self.remote_base_url}/{link}/{CACHE_FILE_NAME}"
            response = requests.get(url, timeout=self.timeout)
            if response.status_code == 404:
                logger.info(f"No remote cache at {url}")
                return None
            response.raise_for_status()
            return response.text

        path = self.cache_path(link)
        if not path.exists():
            logger.info(f"No cache for /{link}/")
            return None
        return path.read_text(encoding='utf-8')

    def _record_to_dict(self, record: CacheRecord) -> dict:
        item = asdict(record)
        item['date'] = record.date.isoformat()
        return item

    def _record_from_dict(self, item: dict) -> CacheRecord:
        """
        Convert a loaded YAML mapping into a CacheRecord.

        Raises:
            KeyError: If a field is missing
            TypeError, ValueError: If a field has the wrong type or the
                category is unknown
        """
        if not isinstance(item, dict):
            raise TypeError(f"cache file holds {type(item).__name__}, not a mapping")

        values = {f.name: item[f.name] for f in fields(CacheRecord)}
        date = values['date']
        values['date'] = date if isinstance(date, datetime) else datetime.fromisoformat(date)
        values['tags'] = [str(tag) for tag in values['tags']]
        for name in ('id', 'capacity', 'registered', 'waiting',
                     'image_width', 'image_height', 'age', 'version'):
            values[name] = int(values[name])
        values['long_past'] = bool(values['long_past'])

        if self.categories.get(values['category']) is None:
            raise ValueError(f"unknown category {values['category']!r}")

        return CacheRecord(**values)
