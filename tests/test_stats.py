"""Tests for engine/stats.py — mean and percentage change helpers."""

from __future__ import annotations

from decimal import Decimal

import pytest

from cardtrends.engine.stats import mean_price, percentage_change


class TestMeanPrice:
    def test_rounds_half_up_to_cents(self) -> None:
        assert mean_price([Decimal("1.005"), Decimal("1.005")]) == Decimal("1.01")

    def test_empty_is_zero(self) -> None:
        assert mean_price([]) == Decimal("0.00")


class TestPercentageChange:
    @pytest.mark.parametrize(
        "current, previous, expected",
        [
            ("110", "100", "10.00"),
            ("90", "100", "-10.00"),
            ("100", "100", "0.00"),
            ("23.18", "20.00", "15.90"),
        ],
    )
    def test_relative_change(self, current, previous, expected) -> None:
        assert percentage_change(Decimal(current), Decimal(previous)) == Decimal(expected)

    def test_zero_baseline_with_positive_current_is_100(self) -> None:
        assert percentage_change(Decimal("5"), Decimal("0")) == Decimal("100.00")

    def test_zero_baseline_with_zero_current_is_0(self) -> None:
        assert percentage_change(Decimal("0"), Decimal("0")) == Decimal("0.00")
