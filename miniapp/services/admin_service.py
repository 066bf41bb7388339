"""
Admin settings service
Operator whitelist and restaurant contact settings, persisted through the
configuration store like catalog edits
"""

from typing import List, Optional

from ..config.settings import Settings, settings as default_settings
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import is_admin, require_admin
from ..models.catalog import normalize_identity
from .config_store import ConfigStore, SaveResult


class AdminService:
    """Admin settings"""

    def __init__(self, store: ConfigStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or default_settings

    def is_admin(self, identity: Optional[str]) -> bool:
        return is_admin(self.store.snapshot.admin, identity)

    def list_admins(self) -> List[str]:
        return list(self.store.snapshot.admin.whitelist)

    def restaurant_username(self) -> str:
        """Identity orders are sent to"""
        username = self.store.snapshot.admin.telegram_username
        return normalize_identity(username) or self.settings.default_restaurant_username

    async def add_admin(self, actor: str, identity: str) -> SaveResult:
        """
        Add an operator identity

        Raises:
            PermissionDeniedError: actor is not an operator
            ValidationError: empty identity
            ConflictError: identity already whitelisted
        """
        actor = require_admin(self.store.snapshot.admin, actor)
        identity = normalize_identity(identity or "")
        if not identity:
            raise ValidationError("Admin username is required")
        if self.is_admin(identity):
            raise ConflictError(f"Admin '{identity}' already exists", details={"identity": identity})

        snapshot = self.store.snapshot.model_copy(deep=True)
        snapshot.admin.whitelist.append(identity)
        self.store.replace(snapshot.revalidated())
        return await self.store.commit(actor, "admin_add", {"identity": identity})

    async def remove_admin(self, actor: str, identity: str) -> SaveResult:
        """Remove an operator identity; NotFoundError if absent, ConflictError for the last one"""
        actor = require_admin(self.store.snapshot.admin, actor)
        identity = normalize_identity(identity or "")

        snapshot = self.store.snapshot.model_copy(deep=True)
        remaining = [entry for entry in snapshot.admin.whitelist if entry.casefold() != identity.casefold()]
        if len(remaining) == len(snapshot.admin.whitelist):
            raise NotFoundError(f"Admin '{identity}' not found", details={"identity": identity})
        if not remaining:
            raise ConflictError("Cannot remove the last operator", details={"identity": identity})

        snapshot.admin.whitelist = remaining
        self.store.replace(snapshot.revalidated())
        return await self.store.commit(actor, "admin_remove", {"identity": identity})

    async def update_settings(self, actor: str, telegram_username: str, channel_link: str = "") -> SaveResult:
        """Update the restaurant contact; the whitelist is kept as is"""
        actor = require_admin(self.store.snapshot.admin, actor)
        username = normalize_identity(telegram_username or "")
        if not username:
            raise ValidationError("Telegram username is required")

        snapshot = self.store.snapshot.model_copy(deep=True)
        snapshot.admin.telegram_username = username
        snapshot.admin.channel_link = (channel_link or "").strip()
        self.store.replace(snapshot.revalidated())
        return await self.store.commit(actor, "admin_settings_update", {
            "telegram_username": username,
            "channel_link": snapshot.admin.channel_link,
        })
