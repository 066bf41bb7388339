"""
Price resolution
Price of a product at a quantity and fulfillment mode

Rules:
- an operator tier matching the quantity exactly is the total price for that
  quantity (differentiated tiers pick the delivery or pickup amount)
- any other quantity is priced linearly: base price x quantity
- quantities are validated by the caller, only positive finite values arrive here
"""

from typing import Union

from ..models.catalog import FulfillmentMode, Product
from ..utils.quantity import parse_quantity, quantity_key

Price = Union[int, float]


def resolve_price(product: Product, quantity: Union[int, float], mode: FulfillmentMode) -> Price:
    """Total price for `quantity` units of `product`"""
    tier = product.tier_for(quantity)
    if tier is not None:
        return tier.for_mode(mode)
    return product.base_price * quantity


def unit_price(product: Product, quantity: Union[int, float], mode: FulfillmentMode) -> float:
    """Effective unit price, for display"""
    return resolve_price(product, quantity, mode) / quantity


__all__ = ["resolve_price", "unit_price", "quantity_key", "parse_quantity"]
