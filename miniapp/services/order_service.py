"""
Checkout service
Turns the cart into an order message for the restaurant

Main features:
- fulfillment mode selection
- delivery address / pickup arrival time collection
- order summary, restaurant-facing message and hand-off link

Business rules:
- Empty -> Building -> ModeSelected -> DetailCollected -> Submitted -> Empty
- the cart total is re-validated at submission, errors are reported, never
  truncated or dropped
- a successful submission clears the cart
- cancel returns to Building with the cart intact
"""

import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from ..core.exceptions import OrderStateError, ValidationError
from ..models.cart import CartTotal, OrderState, OrderSummary, SubmittedOrder
from ..models.catalog import FulfillmentMode
from .admin_service import AdminService
from .cart_service import CartService

logger = logging.getLogger(__name__)

ADDRESS_MIN_LENGTH = 10
ADDRESS_MAX_LENGTH = 200
ARRIVAL_TIME_MAX_LENGTH = 200

HANDOFF_URL = "https://t.me/{username}?text={text}"
# Characters encodeURIComponent leaves as they are
_URI_SAFE = "-_.!~*'()"


def format_amount(value: float) -> str:
    return f"{value:.2f}€"


def format_order_message(summary: OrderSummary) -> str:
    """Restaurant-facing order text"""
    if summary.mode == FulfillmentMode.PICKUP:
        header = "🛒 NOUVELLE COMMANDE - SUR PLACE"
        detail = f"🕐 Heure d'arrivée: {summary.arrival_time or 'Non spécifiée'}"
    else:
        header = "🛒 NOUVELLE COMMANDE"
        detail = f"📍 Adresse de livraison: {summary.delivery_address}"

    lines = "\n".join(
        f"• {line.name} x{line.quantity} = {format_amount(line.line_total)}"
        for line in summary.lines
    )
    return (
        f"{header}\n\n"
        f"{detail}\n\n"
        f"📋 Détails de la commande:\n"
        f"{lines}\n\n"
        f"💰 TOTAL: {format_amount(summary.total)}\n"
        f"🕐 Commandé le: {summary.created_at.strftime('%d/%m/%Y %H:%M:%S')}"
    )


def handoff_link(username: str, message: str) -> str:
    """Chat link that opens a conversation with the message prefilled"""
    return HANDOFF_URL.format(username=quote(username, safe=_URI_SAFE), text=quote(message, safe=_URI_SAFE))


class CheckoutService:
    """Order lifecycle for one session"""

    def __init__(self, cart: CartService, admin: AdminService):
        self.cart = cart
        self.admin = admin
        self._stage = OrderState.BUILDING
        self.delivery_address: Optional[str] = None
        self.arrival_time: Optional[str] = None
        self.last_order: Optional[SubmittedOrder] = None
        self._generation = cart.generation

    @property
    def state(self) -> OrderState:
        if self.cart.generation != self._generation:
            # the cart was emptied since the details were collected
            self._restart()
        if self.cart.is_empty:
            return OrderState.EMPTY
        return self._stage

    @property
    def mode(self) -> FulfillmentMode:
        return self.cart.mode

    def choose_mode(self, mode: FulfillmentMode) -> CartTotal:
        """
        Select delivery or pickup, re-pricing the cart

        Raises:
            OrderStateError: cart is empty
            BoundsError: the re-priced cart exceeds a maximum, nothing changed
        """
        self._require_state(OrderState.BUILDING, OrderState.MODE_SELECTED, OrderState.DETAIL_COLLECTED)
        total = self.cart.set_fulfillment_mode(mode)
        self._reset_details()
        self._stage = OrderState.MODE_SELECTED
        return total

    def provide_address(self, text: str) -> str:
        """Delivery address, 10 to 200 characters"""
        self._require_state(OrderState.MODE_SELECTED)
        self._require_mode(FulfillmentMode.DELIVERY)
        address = (text or "").strip()
        if not ADDRESS_MIN_LENGTH <= len(address) <= ADDRESS_MAX_LENGTH:
            raise ValidationError(
                f"Delivery address must be {ADDRESS_MIN_LENGTH} to {ADDRESS_MAX_LENGTH} characters",
                details={"length": len(address)},
            )
        self.delivery_address = address
        self._stage = OrderState.DETAIL_COLLECTED
        return address

    def provide_arrival_time(self, text: Optional[str] = None) -> Optional[str]:
        """Pickup arrival time, free text and optional"""
        self._require_state(OrderState.MODE_SELECTED)
        self._require_mode(FulfillmentMode.PICKUP)
        arrival_time = (text or "").strip() or None
        if arrival_time and len(arrival_time) > ARRIVAL_TIME_MAX_LENGTH:
            raise ValidationError(
                f"Arrival time is limited to {ARRIVAL_TIME_MAX_LENGTH} characters",
                details={"length": len(arrival_time)},
            )
        self.arrival_time = arrival_time
        self._stage = OrderState.DETAIL_COLLECTED
        return arrival_time

    def submit(self, now: Optional[datetime] = None) -> SubmittedOrder:
        """
        Build the order and clear the cart

        Raises:
            OrderStateError: details not collected yet
            BoundsError / NotFoundError: the cart no longer prices, nothing
                submitted and the cart is kept
        """
        self._require_state(OrderState.DETAIL_COLLECTED)
        total = self.cart.compute_total()

        summary = OrderSummary(
            mode=total.mode,
            lines=total.lines,
            total=total.total,
            delivery_address=self.delivery_address if total.mode == FulfillmentMode.DELIVERY else None,
            arrival_time=self.arrival_time if total.mode == FulfillmentMode.PICKUP else None,
            created_at=now or datetime.now(),
        )
        message = format_order_message(summary)
        order = SubmittedOrder(
            summary=summary,
            message=message,
            link=handoff_link(self.admin.restaurant_username(), message),
        )

        self._stage = OrderState.SUBMITTED
        logger.info("Order submitted: %s lines, total %.2f (%s)", total.item_count, total.total, total.mode.value)
        self.last_order = order
        self.cart.clear()
        self._restart()
        return order

    def cancel(self) -> OrderState:
        """Back to Building, the cart is kept"""
        self._reset_details()
        self._stage = OrderState.BUILDING
        return self.state

    def _restart(self):
        self._reset_details()
        self._stage = OrderState.BUILDING
        self._generation = self.cart.generation

    def _reset_details(self):
        self.delivery_address = None
        self.arrival_time = None

    def _require_state(self, *allowed: OrderState):
        state = self.state
        if state not in allowed:
            raise OrderStateError(
                f"Not allowed while the order is {state.value}",
                details={"state": state.value, "allowed": [s.value for s in allowed]},
            )

    def _require_mode(self, mode: FulfillmentMode):
        if self.mode != mode:
            raise OrderStateError(
                f"Not allowed in {self.mode.value} mode",
                details={"mode": self.mode.value},
            )
