"""
Catalog data models
Snapshot, categories, products, tier prices and admin settings

The snapshot is the unit of persistence: it is always validated, read and
written whole. Wire names (price, isNew, isPromo, customPrices) are kept as
aliases so the JSON exchanged with the endpoint is unchanged.
"""

import json
import math
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import (
    AfterValidator,
    Field,
    ValidationError as PydanticValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .base import BaseEntity
from ..core.exceptions import ValidationError
from ..utils.quantity import quantity_key

REQUIRED_SNAPSHOT_KEYS = ("restaurant", "categories", "products", "admin")


def _positive_finite(value: Union[int, float]) -> Union[int, float]:
    if isinstance(value, bool) or not math.isfinite(value) or value <= 0:
        raise ValueError("must be a positive finite number")
    return value


# int stays int so that saved JSON is unchanged by a load/save cycle
Amount = Annotated[Union[int, float], AfterValidator(_positive_finite)]


class FulfillmentMode(str, Enum):
    """Fulfillment mode, session-scoped"""
    DELIVERY = "delivery"
    PICKUP = "pickup"


class SimplePrice(BaseEntity):
    """Total price for the tier quantity, whatever the mode"""
    kind: Literal["simple"] = "simple"
    amount: Amount

    def for_mode(self, mode: FulfillmentMode) -> Union[int, float]:
        return self.amount

    def to_wire(self) -> Union[int, float]:
        return self.amount


class DifferentiatedPrice(BaseEntity):
    """Tier price that depends on the fulfillment mode"""
    kind: Literal["differentiated"] = "differentiated"
    delivery: Amount
    pickup: Amount

    def for_mode(self, mode: FulfillmentMode) -> Union[int, float]:
        if FulfillmentMode(mode) == FulfillmentMode.PICKUP:
            return self.pickup
        return self.delivery

    def to_wire(self) -> Dict[str, Union[int, float]]:
        return {"delivery": self.delivery, "pickup": self.pickup}


PriceEntry = Annotated[Union[SimplePrice, DifferentiatedPrice], Field(discriminator="kind")]


def tag_price_entry(entry: Any) -> Any:
    """Wire tier value (number or {delivery, pickup}) to its tagged form"""
    if isinstance(entry, (SimplePrice, DifferentiatedPrice)):
        return entry
    if isinstance(entry, bool):
        raise ValueError("tier price must be a number or {delivery, pickup}")
    if isinstance(entry, (int, float)):
        return {"kind": "simple", "amount": entry}
    if isinstance(entry, dict):
        if "kind" in entry:
            return entry
        if set(entry) == {"delivery", "pickup"}:
            return {"kind": "differentiated", **entry}
    raise ValueError("tier price must be a number or {delivery, pickup}")


def _required_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


RequiredText = Annotated[str, AfterValidator(_required_text)]


class Category(BaseEntity):
    """Category record, its id is the key it is stored under"""
    name: RequiredText
    emoji: str = ""
    description: str = ""


class Product(BaseEntity):
    """Catalog product"""
    id: int = Field(..., gt=0)
    name: RequiredText
    description: str = ""
    base_price: Amount = Field(..., alias="price")
    emoji: str = ""
    image: str = ""
    video: Optional[str] = None
    category: RequiredText
    is_new: bool = Field(False, alias="isNew")
    is_promo: bool = Field(False, alias="isPromo")
    custom_prices: Optional[Dict[str, PriceEntry]] = Field(None, alias="customPrices")

    @field_validator("custom_prices", mode="before")
    @classmethod
    def normalize_tiers(cls, value):
        """Canonical tier keys, tagged tier values"""
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ValueError("customPrices must be an object")

        tiers: Dict[str, Any] = {}
        for raw_key, entry in value.items():
            key = quantity_key(raw_key)
            if float(key) <= 0:
                raise ValueError(f"tier quantity must be positive: {raw_key!r}")
            if key in tiers:
                raise ValueError(f"duplicate price tier for quantity {key}")
            tiers[key] = tag_price_entry(entry)
        return tiers or None

    @model_validator(mode="after")
    def resolve_flag_conflict(self):
        """A product is new or on promotion, never both: new wins"""
        if self.is_new and self.is_promo:
            self.is_promo = False
        return self

    @field_serializer("custom_prices")
    def dump_tiers(self, tiers: Optional[Dict[str, Any]]):
        if tiers is None:
            return None
        return {key: entry.to_wire() for key, entry in tiers.items()}

    def tier_for(self, quantity) -> Optional[Union[SimplePrice, DifferentiatedPrice]]:
        """Exact-match tier for a quantity, no interpolation"""
        if not self.custom_prices:
            return None
        return self.custom_prices.get(quantity_key(quantity))


class AdminConfig(BaseEntity):
    """Restaurant contact and operator whitelist"""
    telegram_username: str = ""
    channel_link: str = ""
    whitelist: List[str] = Field(default_factory=list)

    @field_validator("whitelist")
    @classmethod
    def validate_whitelist(cls, value: List[str]) -> List[str]:
        """Identities are unique case-insensitively, '@' is not part of them"""
        seen = set()
        cleaned = []
        for identity in value:
            identity = normalize_identity(identity)
            if not identity:
                raise ValueError("whitelist entries must not be empty")
            if identity.casefold() in seen:
                raise ValueError(f"duplicate admin identity: {identity}")
            seen.add(identity.casefold())
            cleaned.append(identity)
        return cleaned

    def has_identity(self, identity: Optional[str]) -> bool:
        identity = normalize_identity(identity or "")
        if not identity:
            return False
        return any(entry.casefold() == identity.casefold() for entry in self.whitelist)


def normalize_identity(identity: str) -> str:
    """Strip whitespace and a leading '@' from a chat identity"""
    return identity.strip().lstrip("@").strip()


class Snapshot(BaseEntity):
    """Complete persisted catalog and admin state"""
    restaurant: Dict[str, Any]
    categories: Dict[str, Category]
    products: Dict[str, List[Product]]
    admin: AdminConfig

    @model_validator(mode="after")
    def check_references(self):
        """Products are filed under existing categories, ids are unique"""
        seen_ids = set()
        for category_id, products in self.products.items():
            if category_id not in self.categories:
                raise ValueError(f"products filed under unknown category '{category_id}'")
            for product in products:
                if product.category != category_id:
                    raise ValueError(
                        f"product {product.id} declares category '{product.category}' "
                        f"but is filed under '{category_id}'"
                    )
                if product.id in seen_ids:
                    raise ValueError(f"duplicate product id {product.id}")
                seen_ids.add(product.id)
        return self

    @classmethod
    def from_wire(cls, data: Any) -> "Snapshot":
        """Validate a wire dict, raising ValidationError with details"""
        if not isinstance(data, dict):
            raise ValidationError("Invalid configuration format", details={"reason": "not an object"})

        missing = [key for key in REQUIRED_SNAPSHOT_KEYS if key not in data]
        if missing:
            raise ValidationError("Invalid configuration format", details={"missing_keys": missing})

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            errors = [
                {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                for err in e.errors()
            ]
            raise ValidationError("Invalid configuration", details={"errors": errors})

    @classmethod
    def from_json(cls, text: str) -> "Snapshot":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise ValidationError("Configuration is not valid JSON", details={"reason": str(e)})
        return cls.from_wire(data)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_json(self) -> str:
        """Canonical JSON text of the snapshot"""
        return json.dumps(self.to_wire(), ensure_ascii=False, indent=2)

    def revalidated(self) -> "Snapshot":
        """Fresh copy validated as a whole, edits made in place included"""
        return Snapshot.from_wire(self.to_wire())

    def iter_products(self) -> Iterator[Product]:
        for products in self.products.values():
            yield from products

    def find_product(self, product_id: int) -> Optional[Tuple[str, Product]]:
        for category_id, products in self.products.items():
            for product in products:
                if product.id == product_id:
                    return category_id, product
        return None

    def next_product_id(self) -> int:
        return max((product.id for product in self.iter_products()), default=0) + 1
