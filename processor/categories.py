"""Event categories and title tags."""
import string
from typing import Iterable, List, Optional, Sequence, Tuple

from processor.models import Category, CategoryTable, Tag

# The default category is the last entry in the table.
DEFAULT_CATEGORY_IS_LAST = True

# Tags shown as a flag instead of a bracketed name.
FLAG_TAGS = {
    'austria': Tag('🇦🇹', '🇦🇹 Austria'),
    'italy': Tag('🇮🇹', '🇮🇹 Italy'),
}


def make_category(name: str, *terms: str, icon: Optional[str] = None,
                  emoji: Optional[str] = None) -> Category:
    """Create a category which matches its own name and any extra terms."""
    return Category(
        name=name,
        terms=frozenset(term.lower() for term in (name,) + terms),
        icon=icon,
        emoji=emoji
    )


def make_table(categories: Iterable[Category]) -> CategoryTable:
    """Freeze categories into a table, choosing the default by position."""
    categories = tuple(categories)
    if not categories:
        raise ValueError("At least one category is required")
    default = categories[-1] if DEFAULT_CATEGORY_IS_LAST else categories[0]
    return CategoryTable(categories=categories, default=default)


def default_categories() -> CategoryTable:
    return make_table([
        make_category('cycling', 'cycle', 'bike', 'biking', icon='fa-biking', emoji='🚴'),
        make_category('hiking', 'hike', icon='fa-hiking', emoji='🥾'),
    ])


def classify(tags: Sequence[str], table: CategoryTable) -> Tuple[List[str], Category]:
    """
    Find the category of an event from its title tags.

    The first tag naming a category is removed; tags after it are kept
    without being tested.

    Args:
        tags: Tags parsed from the title, in order
        table: Categories to match against

    Returns:
        Tuple of (remaining tags, category)
    """
    remaining = []
    found = None
    for tag in tags:
        if found is None:
            found = next(
                (category for category in table.categories if category.matches(tag)),
                None
            )
            if found is not None:
                continue
        remaining.append(tag)
    return remaining, found or table.default


def make_tag(raw_tag: str) -> Tag:
    """Build the short and long display forms of a title tag."""
    flag = FLAG_TAGS.get(raw_tag.lower())
    if flag:
        return flag
    long = string.capwords(raw_tag.replace('_', ' '))
    return Tag(short=f"[{long}]", long=long)
