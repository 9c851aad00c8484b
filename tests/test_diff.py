from diff import diff, merge
from store import Listing


def test_unseen_listing_is_new():
    listing = Listing(link="https://www.facebook.com/marketplace/item/1/", title="MacBook Air")

    assert diff([listing], []) == [listing]
    assert diff([listing], [listing]) == []


def test_diff_preserves_current_order():
    current = [Listing(link=link) for link in ("c", "a", "d", "b")]
    seen = [Listing(link="a")]

    assert [listing.link for listing in diff(current, seen)] == ["c", "d", "b"]


def test_diff_ignores_field_drift():
    seen = [Listing(link="a", title="MacBook", price="PHP 20,000", location="Makati")]
    current = [Listing(link="a", title="MacBook (price drop)", price="PHP 18,000", location="Taguig")]

    assert diff(current, seen) == []


def test_diff_skips_listings_without_link():
    current = [Listing(link="", title="No link"), Listing(link="b")]

    assert diff(current, []) == [Listing(link="b")]


def test_merging_diff_makes_it_idempotent():
    seen = [Listing(link="a")]
    current = [Listing(link="a"), Listing(link="b"), Listing(link="c")]

    fresh = diff(current, seen)
    seen = merge(seen, fresh)

    assert diff(current, seen) == []


def test_merge_appends_and_deduplicates():
    seen = [Listing(link="a", title="first")]
    fresh = [Listing(link="a", title="again"), Listing(link="b"), Listing(link="b"), Listing(link="")]

    merged = merge(seen, fresh)

    assert [listing.link for listing in merged] == ["a", "b"]
    assert merged[0].title == "first"
