from decimal import Decimal

from src.shared.utils.money import ZERO, round_money, sum_money


class TestRoundMoney:
    """Tests for round_money function."""

    def test_round_half_up(self):
        """Halves round away from zero for positive amounts."""
        assert round_money(Decimal("1666.665")) == Decimal("1666.67")
        assert round_money(Decimal("1666.664")) == Decimal("1666.66")
        assert round_money(10.125) == Decimal("10.13")

    def test_accepts_strings_and_ints(self):
        assert round_money("0.001") == Decimal("0.00")
        assert round_money(15000) == Decimal("15000.00")

    def test_negative_numbers(self):
        """Negative halves round toward zero."""
        assert round_money(-10.125) == Decimal("-10.12")
        assert round_money(-10.126) == Decimal("-10.13")

    def test_always_two_places(self):
        assert str(round_money(500)) == "500.00"
        assert str(round_money("1500.5")) == "1500.50"


class TestSumMoney:
    """Tests for sum_money function."""

    def test_sum_rounds_once(self):
        """Parts are summed exactly and only the total is rounded."""
        assert sum_money([Decimal("0.005"), Decimal("0.005")]) == Decimal("0.01")

    def test_mixed_types(self):
        assert sum_money([Decimal("15000.00"), "1500.00", 500]) == Decimal("17000.00")

    def test_empty(self):
        assert sum_money([]) == ZERO
