"""
Operator access control
A static whitelist of chat identities stored in the snapshot's admin section
"""

from typing import Optional

from .exceptions import PermissionDeniedError
from ..models.catalog import AdminConfig, normalize_identity


def is_admin(admin_config: AdminConfig, identity: Optional[str]) -> bool:
    """Case-insensitive whitelist membership, '@' ignored"""
    return admin_config.has_identity(identity)


def require_admin(admin_config: AdminConfig, identity: Optional[str]) -> str:
    """Return the normalized identity or raise PermissionDeniedError"""
    if not is_admin(admin_config, identity):
        raise PermissionDeniedError(
            "Operator access required",
            details={"identity": normalize_identity(identity or "")},
        )
    return normalize_identity(identity)
