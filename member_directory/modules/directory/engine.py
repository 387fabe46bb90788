"""
Search, category filter and sort over the in-memory profile list.

Pure functions: nothing here touches the store or keeps state between calls.
The stages always run in the same order (search, then category, then sort),
each on the previous stage's output.
"""

import unicodedata
from typing import Iterable, List, Sequence

from member_directory.modules.directory.schemas import ALL_CATEGORIES, DirectoryFilters, Facet, SortKey
from member_directory.modules.profiles.schemas import Profile


def _fold(text: str) -> str:
    return (text or "").casefold()


def _any_contains(values: Iterable[str], needle: str) -> bool:
    return any(needle in _fold(v) for v in values or ())


def matches_search(profile: Profile, search: str) -> bool:
    """OR across name, skills, background and both facets."""
    needle = _fold(search)
    return (
        needle in _fold(profile.display_name)
        or _any_contains(profile.skills, needle)
        or needle in _fold(profile.background)
        or _any_contains(profile.open_to, needle)
        or _any_contains(profile.can_provide, needle)
    )


def matches_category(profile: Profile, category: str, facet: Facet) -> bool:
    needle = _fold(category)
    if facet == Facet.OPEN_TO:
        return _any_contains(profile.open_to, needle)
    if facet == Facet.CAN_PROVIDE:
        return _any_contains(profile.can_provide, needle)
    return _any_contains(profile.open_to, needle) or _any_contains(profile.can_provide, needle)


def name_sort_key(name: str):
    """Accent- and case-insensitive first, then accents, then raw text; a total order."""
    folded = _fold(name)
    stripped = "".join(c for c in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(c))
    return (stripped, folded, name)


def created_at_sort_key(profile: Profile) -> float:
    # Missing or unparseable timestamps count as the epoch
    return profile.created_at.timestamp() if profile.created_at else 0.0


def sort_profiles(profiles: Sequence[Profile], sort: SortKey) -> List[Profile]:
    if sort == SortKey.DISPLAY_NAME:
        return sorted(profiles, key=lambda p: name_sort_key(p.display_name))
    return sorted(profiles, key=created_at_sort_key, reverse=True)


def apply_filters(
    profiles: Sequence[Profile],
    search: str = "",
    category: str = ALL_CATEGORIES,
    facet: Facet = Facet.ALL,
    sort: SortKey = SortKey.CREATED_AT,
) -> List[Profile]:
    filtered = list(profiles)

    if search:
        filtered = [p for p in filtered if matches_search(p, search)]

    if category and category != ALL_CATEGORIES:
        filtered = [p for p in filtered if matches_category(p, category, Facet(facet))]

    return sort_profiles(filtered, SortKey(sort))


def derive_view(profiles: Sequence[Profile], filters: DirectoryFilters) -> List[Profile]:
    return apply_filters(
        profiles,
        search=filters.search,
        category=filters.category,
        facet=filters.facet,
        sort=filters.sort,
    )
