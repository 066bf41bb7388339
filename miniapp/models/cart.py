"""
Cart and order data models
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional, Union

from pydantic import AfterValidator, Field

from .base import BaseEntity
from .catalog import FulfillmentMode


def _positive(value: Union[int, float]) -> Union[int, float]:
    if value <= 0:
        raise ValueError("must be positive")
    return value


PositiveQuantity = Annotated[Union[int, float], AfterValidator(_positive)]


class CartItem(BaseEntity):
    """Cart entry, at most one per product"""
    product_id: int = Field(..., gt=0)
    quantity: PositiveQuantity


class CartLine(BaseEntity):
    """Priced cart line"""
    product_id: int
    name: str
    emoji: str = ""
    quantity: Union[int, float]
    line_total: float
    unit_price: float


class CartTotal(BaseEntity):
    """Cart total with its per-line breakdown"""
    mode: FulfillmentMode
    lines: List[CartLine] = Field(default_factory=list)
    total: float = 0

    @property
    def item_count(self) -> int:
        return len(self.lines)


class OrderState(str, Enum):
    """Order lifecycle state"""
    EMPTY = "empty"
    BUILDING = "building"
    MODE_SELECTED = "mode_selected"
    DETAIL_COLLECTED = "detail_collected"
    SUBMITTED = "submitted"


class OrderSummary(BaseEntity):
    """Order handed off to the restaurant"""
    mode: FulfillmentMode
    lines: List[CartLine]
    total: float
    delivery_address: Optional[str] = None
    arrival_time: Optional[str] = None
    created_at: datetime


class SubmittedOrder(BaseEntity):
    """Result of a checkout: summary, message text and hand-off link"""
    summary: OrderSummary
    message: str
    link: str
