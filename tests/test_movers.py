"""Tests for engine/movers.py — gainers / losers relative to the batch median."""

from __future__ import annotations

from decimal import Decimal

from cardtrends.engine.movers import compute_movers, median_price

from conftest import EXAMPLE_PRICES, make_listings


def _valid(prices):
    return [listing for listing in make_listings(prices) if listing.has_valid_price]


class TestMedianPrice:
    def test_odd_count_is_middle_value(self) -> None:
        assert median_price(_valid(EXAMPLE_PRICES)) == Decimal("10")

    def test_even_count_is_mean_of_middle_pair(self) -> None:
        assert median_price(_valid([40, 60])) == Decimal("50")


class TestComputeMovers:
    def test_empty_batch(self) -> None:
        assert compute_movers([]) == ([], [])

    def test_movers_never_cross_the_median(self) -> None:
        listings = _valid(EXAMPLE_PRICES)
        baseline = median_price(listings)

        gainers, losers = compute_movers(listings, limit=5)

        assert all(m.current_price >= baseline for m in gainers)
        assert all(m.current_price <= baseline for m in losers)

    def test_small_batch_does_not_put_cheap_items_in_gainers(self) -> None:
        """Three listings, limit 5: only the at-or-above-median ones are gainers."""
        gainers, losers = compute_movers(_valid([10, 20, 30]), limit=5)

        assert [m.current_price for m in gainers] == [Decimal("30.00"), Decimal("20.00")]
        assert [m.current_price for m in losers] == [Decimal("10.00"), Decimal("20.00")]

    def test_price_change_is_percent_from_median(self) -> None:
        gainers, losers = compute_movers(_valid([10, 20, 30]), limit=1)

        assert gainers[0].previous_price == Decimal("20.00")
        assert gainers[0].price_change == Decimal("50.00")
        assert losers[0].price_change == Decimal("-50.00")

    def test_mover_carries_listing_links(self) -> None:
        listings = _valid([10, 20, 30])
        gainers, _ = compute_movers(listings, limit=1)

        top = max(listings, key=lambda listing: listing.price)
        assert gainers[0].name == top.title
        assert gainers[0].item_url == top.item_web_url
        assert gainers[0].image_url == top.image_url

    def test_limit_caps_each_side(self) -> None:
        gainers, losers = compute_movers(_valid(range(1, 31)), limit=5)
        assert len(gainers) == 5
        assert len(losers) == 5
        assert gainers[0].current_price == Decimal("30.00")
        assert losers[0].current_price == Decimal("1.00")
