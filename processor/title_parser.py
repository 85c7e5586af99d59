"""Parser for the free-text titles of Hiking Buddies events.

Titles look like ``T3 - [Austria, Hiking] Peak Name [12 km, 800m gain]``:
an optional grade, leading bracketed tags, the title itself and an optional
trailing block of statistics.
"""
import logging
import re
from typing import List, Optional, Tuple

from processor.models import TitleParts

logger = logging.getLogger(__name__)

GRADE_RE = re.compile(r'^(T\d)\s*-\s*(.+)$')
LEADING_TAGS_RE = re.compile(r'^\[(.+?)\]\s*(.+)$')
TRAILING_STATS_RE = re.compile(r'^(.*\S)\s*\[(.+?)\]$')
DISTANCE_RE = re.compile(r'^(.+[^a-z] km)$', re.IGNORECASE)
ASCENT_RE = re.compile(r'^((.+[^a-z])m)\s+(asc(ent|\.)?|gain)$', re.IGNORECASE)


def split_list(contents: str) -> List[str]:
    """Split bracket contents on commas, trimming each piece."""
    return [piece.strip() for piece in contents.split(',')]


def parse_stats(stats: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract distance and ascent from a stats block like ``1.2 Km, 345 m gain``.

    Args:
        stats: Raw contents of the trailing bracket block

    Returns:
        Tuple of (distance, ascent), each lower-cased or None
    """
    distance = None
    ascent = None
    for stat in split_list(stats):
        if DISTANCE_RE.match(stat):
            distance = stat.strip().lower()
        elif ASCENT_RE.match(stat):
            ascent = stat.strip().lower()
        else:
            logger.warning(f"Unrecognised stat: <{stat}> [{stats}]")
    return distance, ascent


def parse_title(raw_title: str) -> TitleParts:
    """
    Convert a raw event title into grade, tags, title and stats.

    Args:
        raw_title: Title text as shown on the event page

    Returns:
        TitleParts with the pieces found
    """
    working_title = raw_title

    match = GRADE_RE.match(working_title)
    if match:
        grade = match.group(1)
        working_title = match.group(2)
    else:
        grade = None

    tags = []
    match = LEADING_TAGS_RE.match(working_title)
    while match:
        tags.extend(split_list(match.group(1)))
        working_title = match.group(2)
        match = LEADING_TAGS_RE.match(working_title)

    distance = None
    ascent = None
    match = TRAILING_STATS_RE.match(working_title)
    if match:
        working_title = match.group(1)
        distance, ascent = parse_stats(match.group(2))

    return TitleParts(
        grade=grade,
        title=working_title,
        tags=tags,
        distance=distance,
        ascent=ascent
    )
