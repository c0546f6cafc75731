"""
Money value object.

Money is immutable and compared by value. Every arithmetic operation returns
a new instance. The amount can never be negative: the checked operations
report a failure Result instead of producing a negative value, and direct
construction with invalid data raises ``pydantic.ValidationError``.
"""

from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.domain.errors import MoneyErrors
from storefront.domain.results import Result

DEFAULT_CURRENCY = "USD"

Number = Union[Decimal, int, str]


class Money(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(description="Non-negative amount")
    currency: str = Field(
        default=DEFAULT_CURRENCY, description="ISO currency code, e.g. USD"
    )

    @field_validator("amount")
    @classmethod
    def amount_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Money amount cannot be negative")
        return v

    @field_validator("currency")
    @classmethod
    def currency_must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Currency code cannot be empty")
        return v

    @classmethod
    def create(
        cls, amount: Number, currency: str = DEFAULT_CURRENCY
    ) -> Result["Money"]:
        amount = Decimal(amount)
        if amount < 0:
            return Result.failure(MoneyErrors.NEGATIVE_AMOUNT)
        if currency is None or not currency.strip():
            return Result.failure(MoneyErrors.INVALID_CURRENCY)
        return Result.success(cls(amount=amount, currency=currency))

    @classmethod
    def from_dollars(cls, dollars: Number) -> Result["Money"]:
        return cls.create(dollars, "USD")

    @classmethod
    def from_euros(cls, euros: Number) -> Result["Money"]:
        return cls.create(euros, "EUR")

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def add(self, other: "Money") -> "Money":
        """Add two amounts known to share a currency.

        Raises:
            ValueError: if the currencies differ. Use ``add_safe`` for any
                value that originates from user input.
        """
        if self.currency != other.currency:
            raise ValueError(
                "Cannot add money with different currencies: "
                f"{self.currency} != {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def add_safe(self, other: "Money") -> Result["Money"]:
        if self.currency != other.currency:
            return Result.failure(MoneyErrors.CURRENCY_MISMATCH)
        return Result.success(
            Money(amount=self.amount + other.amount, currency=self.currency)
        )

    def subtract(self, other: "Money") -> Result["Money"]:
        if self.currency != other.currency:
            return Result.failure(MoneyErrors.CURRENCY_MISMATCH)
        remaining = self.amount - other.amount
        if remaining < 0:
            return Result.failure(MoneyErrors.NEGATIVE_AMOUNT)
        return Result.success(Money(amount=remaining, currency=self.currency))

    def multiply(self, multiplier: Number) -> Result["Money"]:
        multiplier = Decimal(multiplier)
        if multiplier < 0:
            return Result.failure(MoneyErrors.NEGATIVE_AMOUNT)
        return Result.success(
            Money(amount=self.amount * multiplier, currency=self.currency)
        )

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency}"
