"""
Marketplace Monitor Diff Engine
Compares the current batch against listings already seen.
"""

from typing import Iterable, List, Set

from store import Listing


def _links(listings: Iterable[Listing]) -> Set[str]:
    return {listing.link for listing in listings if listing.link}


def diff(current: Iterable[Listing], seen: Iterable[Listing]) -> List[Listing]:
    """
    Find listings in ``current`` that have not been seen before.

    Only ``link`` is compared; title, price and location may drift.

    Args:
        current: Listings extracted this cycle
        seen: Listings already recorded

    Returns:
        Listings with a non-empty link absent from ``seen``, in ``current`` order
    """
    seen_links = _links(seen)
    return [listing for listing in current if listing.link and listing.link not in seen_links]


def merge(seen: Iterable[Listing], fresh: Iterable[Listing]) -> List[Listing]:
    """Append unseen listings from ``fresh`` to ``seen``, keeping links unique."""
    merged = list(seen)
    known = _links(merged)
    for listing in fresh:
        if listing.link and listing.link not in known:
            known.add(listing.link)
            merged.append(listing)
    return merged
