"""
Tests for the Money value object.

Design decisions documented:
- Amounts are never negative; checked operations report
  Money.NegativeAmount instead of producing one
- Arithmetic between currencies fails with Money.CurrencyMismatch
- Money is immutable and compared by value
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.domain import Money


class TestMoneyCreation:
    @pytest.mark.parametrize(
        "amount,currency,expected_code",
        [
            (Decimal("0"), "USD", None),
            (Decimal("100.50"), "USD", None),
            ("19.99", "EUR", None),
            (5, "GBP", None),
            (Decimal("-0.01"), "USD", "Money.NegativeAmount"),
            (Decimal("10"), "", "Money.InvalidCurrency"),
            (Decimal("10"), "   ", "Money.InvalidCurrency"),
        ],
    )
    def test_create(self, amount, currency, expected_code) -> None:
        result = Money.create(amount, currency)

        if expected_code is None:
            assert result.is_success
            assert result.value.amount == Decimal(amount)
            assert result.value.currency == currency
        else:
            assert result.is_failure
            assert result.error.code == expected_code

    def test_factory_helpers(self) -> None:
        assert Money.from_dollars("12.50").value == Money(
            amount=Decimal("12.50"), currency="USD"
        )
        assert Money.from_euros(3).value.currency == "EUR"
        assert Money.zero("EUR").is_zero

    def test_direct_construction_rejects_negative_amount(self) -> None:
        with pytest.raises(ValidationError):
            Money(amount=Decimal("-1"), currency="USD")

    def test_money_is_immutable(self) -> None:
        money = Money(amount=Decimal("1"), currency="USD")
        with pytest.raises(ValidationError):
            money.amount = Decimal("2")  # type: ignore[misc]


class TestMoneyArithmetic:
    def test_add_same_currency(self) -> None:
        total = Money.from_dollars("100").value.add(
            Money.from_dollars("15").value
        )
        assert total == Money(amount=Decimal("115"), currency="USD")

    def test_add_raises_on_currency_mismatch(self) -> None:
        with pytest.raises(ValueError, match="different currencies"):
            Money.from_dollars(1).value.add(Money.from_euros(1).value)

    def test_add_safe_reports_currency_mismatch(self) -> None:
        result = Money.from_dollars(1).value.add_safe(Money.from_euros(1).value)
        assert result.is_failure
        assert result.error.code == "Money.CurrencyMismatch"

    def test_subtract(self) -> None:
        result = Money.from_dollars("115").value.subtract(
            Money.from_dollars("15").value
        )
        assert result.value.amount == Decimal("100")

    def test_subtract_to_exactly_zero(self) -> None:
        money = Money.from_dollars("20").value
        assert money.subtract(money).value.is_zero

    def test_subtract_below_zero_fails(self) -> None:
        result = Money.from_dollars("10").value.subtract(
            Money.from_dollars("10.01").value
        )
        assert result.is_failure
        assert result.error.code == "Money.NegativeAmount"

    def test_subtract_currency_mismatch(self) -> None:
        result = Money.from_dollars("10").value.subtract(
            Money.from_euros("1").value
        )
        assert result.error.code == "Money.CurrencyMismatch"

    def test_multiply(self) -> None:
        result = Money.from_dollars("19.99").value.multiply(3)
        assert result.value == Money(amount=Decimal("59.97"), currency="USD")

    def test_multiply_by_negative_fails(self) -> None:
        result = Money.from_dollars("1").value.multiply(-2)
        assert result.error.code == "Money.NegativeAmount"

    def test_str(self) -> None:
        assert str(Money.from_dollars("115").value) == "115.00 USD"
