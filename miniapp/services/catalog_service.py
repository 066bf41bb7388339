"""
Catalog editing service
Operator edits on products and categories

Every edit is built on a deep copy of the snapshot, validated whole and
swapped into the store in one step before the save. A failed save raises
PersistenceError with the edit still applied in memory, so the operator can
retry through ConfigStore.save().
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import require_admin
from ..models.catalog import Category, Product, Snapshot
from ..schemas.catalog import CategoryDraft, CategoryUpdate, ProductDraft, ProductUpdate, TierInput
from ..utils.quantity import parse_quantity, quantity_key
from .config_store import ConfigStore, SaveResult

_TIER_SEPARATOR = re.compile(r"[;\n]+")


class EditResult(BaseModel):
    """Edited entity and where the save landed"""
    product: Optional[Product] = None
    category_id: Optional[str] = None
    save: SaveResult


def parse_custom_prices(text: str) -> Optional[TierInput]:
    """
    Parse operator tier input

    "5=40; 10=75/70" gives {"5": 40, "10": {"delivery": 75, "pickup": 70}}.
    Entries are separated by ';' or newlines, ',' is a decimal separator.
    Empty input means no tiers.
    """
    tiers: TierInput = {}
    for raw_entry in _TIER_SEPARATOR.split(text or ""):
        entry = raw_entry.strip()
        if not entry:
            continue
        quantity, sep, amount = entry.partition("=")
        if not sep or not quantity.strip() or not amount.strip():
            raise ValidationError(f"Invalid tier '{entry}', expected quantity=price", details={"entry": entry})
        try:
            key = quantity_key(quantity.strip())
            if "/" in amount:
                delivery, pickup = amount.split("/", 1)
                value: Any = {"delivery": parse_quantity(delivery.strip()), "pickup": parse_quantity(pickup.strip())}
            else:
                value = parse_quantity(amount.strip())
        except ValueError:
            raise ValidationError(f"Invalid tier '{entry}', expected numbers", details={"entry": entry})
        if key in tiers:
            raise ValidationError(f"Duplicate tier for quantity {key}", details={"entry": entry})
        tiers[key] = value
    return tiers or None


class CatalogService:
    """Catalog editor"""

    def __init__(self, store: ConfigStore):
        self.store = store

    # Products

    def list_products(self, category_id: Optional[str] = None) -> List[Product]:
        snapshot = self.store.snapshot
        if category_id is None:
            return list(snapshot.iter_products())
        self._require_category(snapshot, category_id)
        return list(snapshot.products.get(category_id, []))

    def get_product(self, product_id: int) -> Product:
        found = self.store.snapshot.find_product(product_id)
        if found is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        return found[1]

    async def create_product(self, actor: str, draft: ProductDraft) -> EditResult:
        """
        Create a product, its id is the current maximum plus one

        Raises:
            PermissionDeniedError: actor is not an operator
            NotFoundError: unknown category
            ValidationError: invalid product fields
        """
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        self._require_category(snapshot, draft.category)

        product = _build_product({**draft.model_dump(), "id": snapshot.next_product_id()})
        snapshot.products.setdefault(product.category, []).append(product)
        self._apply(snapshot)

        save = await self.store.commit(actor, "product_create", {"product_id": product.id, "name": product.name})
        return EditResult(product=product, category_id=product.category, save=save)

    async def update_product(self, actor: str, product_id: int, changes: ProductUpdate) -> EditResult:
        """Update a product in place, moving it when its category changes"""
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        found = snapshot.find_product(product_id)
        if found is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        old_category, current = found

        updates = changes.model_dump(exclude_unset=True)
        if "category" in updates:
            self._require_category(snapshot, updates["category"])
        product = _build_product({**current.model_dump(), **updates, "id": product_id})

        products = snapshot.products[old_category]
        index = next(i for i, p in enumerate(products) if p.id == product_id)
        if product.category == old_category:
            products[index] = product
        else:
            del products[index]
            snapshot.products.setdefault(product.category, []).append(product)
        self._apply(snapshot)

        save = await self.store.commit(actor, "product_update", {
            "product_id": product_id,
            "fields": sorted(updates),
        })
        return EditResult(product=product, category_id=product.category, save=save)

    async def delete_product(self, actor: str, product_id: int) -> EditResult:
        """Remove a product id from every category list"""
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        if snapshot.find_product(product_id) is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

        for category_id, products in snapshot.products.items():
            snapshot.products[category_id] = [p for p in products if p.id != product_id]
        self._apply(snapshot)

        save = await self.store.commit(actor, "product_delete", {"product_id": product_id})
        return EditResult(save=save)

    # Categories

    def list_categories(self) -> Dict[str, Category]:
        return dict(self.store.snapshot.categories)

    async def create_category(self, actor: str, draft: CategoryDraft) -> EditResult:
        """Create a category; ConflictError if the id exists"""
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        category_id = draft.id.strip()
        if not category_id:
            raise ValidationError("Category id is required")
        if category_id in snapshot.categories:
            raise ConflictError(f"Category '{category_id}' already exists", details={"category_id": category_id})

        snapshot.categories[category_id] = _build_category(draft.model_dump(exclude={"id"}))
        snapshot.products.setdefault(category_id, [])
        self._apply(snapshot)

        save = await self.store.commit(actor, "category_create", {"category_id": category_id})
        return EditResult(category_id=category_id, save=save)

    async def update_category(self, actor: str, category_id: str, changes: CategoryUpdate) -> EditResult:
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        current = self._require_category(snapshot, category_id)

        updates = changes.model_dump(exclude_unset=True)
        snapshot.categories[category_id] = _build_category({**current.model_dump(), **updates})
        self._apply(snapshot)

        save = await self.store.commit(actor, "category_update", {
            "category_id": category_id,
            "fields": sorted(updates),
        })
        return EditResult(category_id=category_id, save=save)

    async def rename_category(self, actor: str, old_id: str, new_id: str) -> EditResult:
        """
        Change a category id and re-key every product filed under it

        Applied as one unit: the old id disappears, the new id keeps the
        category fields and its position, and every product points at it.

        Raises:
            NotFoundError: old id unknown
            ConflictError: new id already exists
        """
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        self._require_category(snapshot, old_id)
        new_id = (new_id or "").strip()
        if not new_id:
            raise ValidationError("Category id is required")
        if new_id == old_id:
            raise ValidationError("New category id is the same as the old one", details={"category_id": old_id})
        if new_id in snapshot.categories:
            raise ConflictError(f"Category '{new_id}' already exists", details={"category_id": new_id})

        snapshot.categories = {
            (new_id if key == old_id else key): category
            for key, category in snapshot.categories.items()
        }
        moved = snapshot.products.pop(old_id, [])
        for product in moved:
            product.category = new_id
        snapshot.products[new_id] = moved
        self._apply(snapshot)

        save = await self.store.commit(actor, "category_rename", {
            "old_id": old_id,
            "new_id": new_id,
            "products_moved": len(moved),
        })
        return EditResult(category_id=new_id, save=save)

    async def delete_category(self, actor: str, category_id: str, confirmed: bool = False) -> EditResult:
        """Delete a category and the products filed under it, confirmed=True required"""
        actor = self._authorize(actor)
        snapshot = self._working_copy()
        self._require_category(snapshot, category_id)
        removed = len(snapshot.products.get(category_id, []))
        if not confirmed:
            raise ValidationError(
                f"Deleting category '{category_id}' also deletes {removed} product(s), confirmation required",
                details={"category_id": category_id, "products": removed},
            )

        del snapshot.categories[category_id]
        snapshot.products.pop(category_id, None)
        for key, products in snapshot.products.items():
            snapshot.products[key] = [p for p in products if p.category != category_id]
        self._apply(snapshot)

        save = await self.store.commit(actor, "category_delete", {
            "category_id": category_id,
            "products_removed": removed,
        })
        return EditResult(save=save)

    def _authorize(self, actor: str) -> str:
        return require_admin(self.store.snapshot.admin, actor)

    def _working_copy(self) -> Snapshot:
        return self.store.snapshot.model_copy(deep=True)

    def _apply(self, snapshot: Snapshot):
        self.store.replace(snapshot.revalidated())

    @staticmethod
    def _require_category(snapshot: Snapshot, category_id: str) -> Category:
        category = snapshot.categories.get(category_id)
        if category is None:
            raise NotFoundError(f"Category '{category_id}' not found", details={"category_id": category_id})
        return category


def _build_product(data: Dict[str, Any]) -> Product:
    try:
        return Product.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid product", details={"errors": _error_list(e)})


def _build_category(data: Dict[str, Any]) -> Category:
    try:
        return Category.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid category", details={"errors": _error_list(e)})


def _error_list(error: PydanticValidationError) -> List[Dict[str, Any]]:
    return [{"loc": [str(part) for part in err["loc"]], "msg": err["msg"]} for err in error.errors()]
