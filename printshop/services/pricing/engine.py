"""
Multi-currency pricing engine for orders and quotations.

Products are priced in the company (base) currency. A line item in a
transaction currency is derived as

    unit_price = base_unit_price * (1 + markup_percent / 100) / exchange_rate

where ``exchange_rate`` is how many base-currency units one unit of the
transaction currency is worth. Totals are kept in both currencies:

    total_foreign = sum(item_total)
    total_company = total_foreign * exchange_rate

All arithmetic uses Decimal. Unit prices and item totals are quantized to a
fixed number of fractional digits (four by default) with ROUND_HALF_UP and
rates to eight. The company total is the exact product, so it always
equals total_foreign times the stored rate.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Sequence
from uuid import UUID

from printshop.core.config import get_settings
from printshop.core.exceptions import InvalidRateError, ValidationFailedError
from printshop.core.logging import get_logger

logger = get_logger(__name__)

HUNDRED = Decimal("100")
RATE_QUANTUM = Decimal("0.00000001")


@dataclass(frozen=True)
class LineRequest:
    """A line to price: what is sold, how many, and its base-currency price."""

    quantity: int
    base_unit_price: Decimal
    product_id: Optional[UUID] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PricedLine:
    """A fully priced line in the transaction currency."""

    quantity: int
    base_unit_price: Decimal
    unit_price: Decimal
    item_total: Decimal
    product_id: Optional[UUID] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Totals:
    total_foreign: Decimal
    total_company: Decimal


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Convert a numeric input to Decimal without binary float drift.

    Floats go through their shortest repr, so 0.1 becomes Decimal("0.1").

    Raises:
        ValidationFailedError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationFailedError(f"{field} must be a number", field=field, value=value)
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as e:
            raise ValidationFailedError(
                f"{field} must be a number", field=field, value=value
            ) from e
    if not result.is_finite():
        raise ValidationFailedError(f"{field} must be finite", field=field, value=value)
    return result


class PricingEngine:
    """
    Stateless pricing calculations.

    Args:
        scale: Fractional digits kept on unit prices and totals. Defaults to
            the ``money_scale`` setting.
    """

    MAX_MARKUP_PERCENT = Decimal("10000")

    def __init__(self, scale: Optional[int] = None):
        self.scale = scale if scale is not None else get_settings().money_scale
        self._quantum = Decimal(1).scaleb(-self.scale)

    def quantize(self, amount: Decimal) -> Decimal:
        return amount.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def validate_rate(self, exchange_rate: Any) -> Decimal:
        """
        Validate an exchange rate.

        Raises:
            InvalidRateError: If the rate is not strictly positive
        """
        try:
            rate = to_decimal(exchange_rate, "exchange_rate").quantize(
                RATE_QUANTUM, rounding=ROUND_HALF_UP
            )
        except (ValidationFailedError, InvalidOperation) as e:
            raise InvalidRateError(
                "Exchange rate must be a positive number", exchange_rate=exchange_rate
            ) from e
        if rate <= 0:
            raise InvalidRateError(
                "Exchange rate must be greater than zero", exchange_rate=str(rate)
            )
        return rate

    def validate_markup(self, markup_percent: Any) -> Decimal:
        markup = to_decimal(markup_percent, "markup_percent")
        if markup < 0:
            raise ValidationFailedError(
                "Markup percentage cannot be negative", markup_percent=str(markup)
            )
        if markup > self.MAX_MARKUP_PERCENT:
            raise ValidationFailedError(
                "Markup percentage is out of range", markup_percent=str(markup)
            )
        return markup

    def price_line_item(
        self,
        base_unit_price: Any,
        markup_percent: Any,
        exchange_rate: Any,
    ) -> Decimal:
        """
        Derive a transaction-currency unit price.

        Args:
            base_unit_price: Product price in company currency
            markup_percent: Markup tier percentage (0 means no markup)
            exchange_rate: Company-currency units per transaction unit

        Returns:
            Unit price in the transaction currency

        Raises:
            InvalidRateError: If exchange_rate <= 0
            ValidationFailedError: If price or markup is negative
        """
        rate = self.validate_rate(exchange_rate)
        markup = self.validate_markup(markup_percent)
        base = to_decimal(base_unit_price, "base_unit_price")
        if base < 0:
            raise ValidationFailedError(
                "Base unit price cannot be negative", base_unit_price=str(base)
            )

        return self.quantize(base * (1 + markup / HUNDRED) / rate)

    def price_line(
        self,
        line: LineRequest,
        markup_percent: Any,
        exchange_rate: Any,
    ) -> PricedLine:
        """Price one line and compute its total."""
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
            raise ValidationFailedError(
                "Quantity must be a whole number", quantity=line.quantity
            )
        if line.quantity < 1:
            raise ValidationFailedError(
                "Quantity must be at least 1", quantity=line.quantity
            )

        unit_price = self.price_line_item(line.base_unit_price, markup_percent, exchange_rate)
        return PricedLine(
            quantity=line.quantity,
            base_unit_price=to_decimal(line.base_unit_price, "base_unit_price"),
            unit_price=unit_price,
            item_total=self.quantize(unit_price * line.quantity),
            product_id=line.product_id,
            description=line.description,
        )

    def price_lines(
        self,
        lines: Sequence[LineRequest],
        markup_percent: Any,
        exchange_rate: Any,
    ) -> List[PricedLine]:
        """
        Price every line, or none.

        The full result list is built before it is returned, so a failure on
        any line leaves the caller with nothing to apply.

        Raises:
            ValidationFailedError: If there are no lines or any line is invalid
        """
        if not lines:
            raise ValidationFailedError("At least one line item is required")

        priced = [self.price_line(line, markup_percent, exchange_rate) for line in lines]

        logger.debug(
            "Line items priced",
            line_count=len(priced),
            markup_percent=str(markup_percent),
            exchange_rate=str(exchange_rate),
        )
        return priced

    def reprice(
        self,
        lines: Iterable[Any],
        markup_percent: Any,
        exchange_rate: Any,
    ) -> List[PricedLine]:
        """
        Recompute existing lines with a new markup or exchange rate.

        Args:
            lines: Objects exposing ``quantity``, ``base_unit_price``,
                ``product_id`` and ``description`` (order or quotation items)
            markup_percent: New markup percentage
            exchange_rate: New exchange rate

        Returns:
            New priced lines in the same order
        """
        requests = [
            LineRequest(
                quantity=line.quantity,
                base_unit_price=line.base_unit_price,
                product_id=line.product_id,
                description=line.description,
            )
            for line in lines
        ]
        return self.price_lines(requests, markup_percent, exchange_rate)

    def compute_totals(
        self,
        item_totals: Iterable[Decimal],
        exchange_rate: Any,
    ) -> Totals:
        """
        Aggregate item totals into transaction and company totals.

        Raises:
            InvalidRateError: If exchange_rate <= 0
        """
        rate = self.validate_rate(exchange_rate)
        total_foreign = self.quantize(sum(item_totals, Decimal("0")))
        return Totals(
            total_foreign=total_foreign,
            total_company=total_foreign * rate,
        )


def format_money(amount: Any, currency_code: Optional[str] = None) -> str:
    """
    Format an amount for messages and logs.

    Example:
        >>> format_money(Decimal("1234.5"), "AED")
        '1,234.50 AED'
    """
    value = to_decimal(amount, "amount").quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{value:,.2f}"
    return f"{text} {currency_code}" if currency_code else text
