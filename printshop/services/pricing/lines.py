"""
Turning requested line items into priceable lines.

A line either references a catalog product, whose current unit price is
used as the base price, or is a custom line that carries its own base price
and description.
"""

import uuid
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from printshop.core.exceptions import ValidationFailedError
from printshop.services.pricing.engine import LineRequest, to_decimal
from printshop.services.pricing.repository import PricingRepository


@dataclass(frozen=True)
class ItemInput:
    """Line item as submitted by a caller."""

    quantity: int
    product_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    base_unit_price: Optional[Any] = None


async def resolve_lines(
    repository: PricingRepository,
    company_id: uuid.UUID,
    items: Sequence[ItemInput],
) -> List[LineRequest]:
    """
    Resolve base prices for requested items.

    An explicit ``base_unit_price`` overrides the catalog price of a
    product line.

    Raises:
        ValidationFailedError: If there are no items or a custom line has
            no price
        NotFoundError: If a referenced product does not exist
    """
    if not items:
        raise ValidationFailedError("At least one line item is required")

    product_ids = [item.product_id for item in items if item.product_id is not None]
    products = await repository.get_products(company_id, product_ids)

    lines = []
    for index, item in enumerate(items):
        product = products.get(item.product_id) if item.product_id else None
        if item.base_unit_price is not None:
            base_unit_price = to_decimal(item.base_unit_price, "base_unit_price")
        elif product is not None:
            base_unit_price = product.unit_price
        else:
            raise ValidationFailedError(
                "Custom line items need a base unit price", line=index
            )
        lines.append(
            LineRequest(
                quantity=item.quantity,
                base_unit_price=base_unit_price,
                product_id=item.product_id,
                description=item.description or (product.name if product else None),
            )
        )
    return lines
