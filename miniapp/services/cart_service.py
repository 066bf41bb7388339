"""
Cart service
The order being built in the current session

Business rules:
- one entry per product, insertion order is display order
- adding an existing product adds to its quantity
- a quantity of zero or less removes the entry
- every change re-prices the whole cart; an operation that would exceed the
  line or total maximum fails with BoundsError and leaves the cart unchanged
"""

import logging
import math
from contextlib import contextmanager
from typing import Dict, List, Optional, Union

from ..config.settings import Settings, settings as default_settings
from ..core.exceptions import BoundsError, NotFoundError, ValidationError
from ..models.cart import CartItem, CartLine, CartTotal
from ..models.catalog import FulfillmentMode, Product
from ..utils.quantity import parse_quantity
from .config_store import ConfigStore
from .pricing_service import resolve_price

logger = logging.getLogger(__name__)

Quantity = Union[int, float, str]


class CartService:
    """Cart aggregator, prices every line through resolve_price"""

    def __init__(self, store: ConfigStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or default_settings
        self._items: Dict[int, CartItem] = {}
        self.mode = FulfillmentMode.DELIVERY
        # bumped each time the cart is emptied
        self.generation = 0

    @property
    def items(self) -> List[CartItem]:
        return [item.model_copy() for item in self._items.values()]

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def quantity_of(self, product_id: int) -> Union[int, float]:
        item = self._items.get(product_id)
        return item.quantity if item else 0

    def add(self, product_id: int, quantity: Quantity = 1) -> CartItem:
        """
        Add a product, merging with an existing entry

        Raises:
            NotFoundError: product not in the catalog
            ValidationError: quantity not positive, not finite or too large
            BoundsError: too many lines or total too high
        """
        self._get_product(product_id)
        quantity = self._validate_quantity(quantity)

        with self._rollback_on_error():
            existing = self._items.get(product_id)
            if existing is not None:
                new_quantity = self._validate_quantity(existing.quantity + quantity)
                self._items[product_id] = CartItem(product_id=product_id, quantity=new_quantity)
            else:
                self._items[product_id] = CartItem(product_id=product_id, quantity=quantity)

        logger.debug("Cart add: product %s qty %s", product_id, quantity)
        return self._items[product_id].model_copy()

    def set_quantity(self, product_id: int, quantity: Quantity) -> Optional[CartItem]:
        """Replace a line quantity; zero or less removes the line"""
        quantity = self._parse(quantity)
        if quantity <= 0:
            self.remove(product_id)
            return None

        self._get_product(product_id)
        quantity = self._validate_quantity(quantity)
        with self._rollback_on_error():
            self._items[product_id] = CartItem(product_id=product_id, quantity=quantity)
        return self._items[product_id].model_copy()

    def change_quantity(self, product_id: int, delta: Quantity) -> Optional[CartItem]:
        """Increment or decrement a line already in the cart"""
        item = self._items.get(product_id)
        if item is None:
            raise NotFoundError(f"Product {product_id} is not in the cart", details={"product_id": product_id})
        return self.set_quantity(product_id, item.quantity + self._parse(delta))

    def remove(self, product_id: int):
        if self._items.pop(product_id, None) is not None:
            logger.debug("Cart remove: product %s", product_id)
            if not self._items:
                self.generation += 1

    def clear(self):
        if self._items:
            self._items.clear()
            self.generation += 1

    def set_fulfillment_mode(self, mode: FulfillmentMode) -> CartTotal:
        """Switch delivery/pickup and re-price every line"""
        mode = FulfillmentMode(mode)
        with self._rollback_on_error():
            self.mode = mode
        return self.compute_total()

    def compute_total(self) -> CartTotal:
        """
        Price every line in the current mode

        Raises:
            BoundsError: line count or total above the configured maximum
            NotFoundError: a line refers to a product no longer in the catalog
        """
        if len(self._items) > self.settings.max_cart_lines:
            raise BoundsError(
                f"Cart is limited to {self.settings.max_cart_lines} lines",
                details={"lines": len(self._items), "max_lines": self.settings.max_cart_lines},
            )

        lines = []
        total = 0
        for item in self._items.values():
            product = self._get_product(item.product_id)
            line_total = resolve_price(product, item.quantity, self.mode)
            total += line_total
            lines.append(CartLine(
                product_id=product.id,
                name=product.name,
                emoji=product.emoji,
                quantity=item.quantity,
                line_total=line_total,
                unit_price=line_total / item.quantity,
            ))

        if total > self.settings.max_total_price:
            raise BoundsError(
                f"Cart total {total:.2f} exceeds the maximum of {self.settings.max_total_price:.2f}",
                details={"total": total, "max_total": self.settings.max_total_price},
            )
        return CartTotal(mode=self.mode, lines=lines, total=total)

    @contextmanager
    def _rollback_on_error(self):
        saved_items = dict(self._items)
        saved_mode = self.mode
        try:
            yield
            self.compute_total()
        except Exception:
            self._items = saved_items
            self.mode = saved_mode
            raise

    def _get_product(self, product_id: int) -> Product:
        found = self.store.snapshot.find_product(product_id)
        if found is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        return found[1]

    def _parse(self, quantity: Quantity) -> Union[int, float]:
        try:
            return parse_quantity(quantity)
        except ValueError as e:
            raise ValidationError(str(e), details={"quantity": str(quantity)})

    def _validate_quantity(self, quantity: Quantity) -> Union[int, float]:
        quantity = self._parse(quantity)
        if quantity <= 0 or not math.isfinite(quantity):
            raise ValidationError("Quantity must be positive", details={"quantity": quantity})
        if quantity > self.settings.max_item_quantity:
            raise ValidationError(
                f"Quantity is limited to {self.settings.max_item_quantity}",
                details={"quantity": quantity, "max_quantity": self.settings.max_item_quantity},
            )
        return quantity
