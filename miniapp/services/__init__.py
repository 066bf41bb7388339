"""
Business logic services.
Contains service layer implementations for core business operations.
"""

from .admin_service import AdminService
from .cart_service import CartService
from .catalog_service import CatalogService, parse_custom_prices
from .config_repository import ConfigRepository
from .config_store import ConfigStore, SaveOutcome, SaveResult
from .order_service import CheckoutService
from .pricing_service import resolve_price, unit_price
from .remote_config import RemoteConfigClient, RemoteStatus

__all__ = [
    "AdminService",
    "CartService",
    "CatalogService",
    "CheckoutService",
    "ConfigRepository",
    "ConfigStore",
    "RemoteConfigClient",
    "RemoteStatus",
    "SaveOutcome",
    "SaveResult",
    "parse_custom_prices",
    "resolve_price",
    "unit_price",
]
