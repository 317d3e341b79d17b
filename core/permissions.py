"""
Admin permission model.

A principal on the owner allow-list holds the implicit 'owner' tag, which satisfies every check.
Everyone else gets exactly the tags stored in their role grant.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.config import logger, ADMIN_EMAILS
from core.auth import AuthProvider, Principal, get_principal

OWNER = "owner"
ADMIN_PERMISSIONS = (
    "products",
    "orders",
    "inventory",
    "coupons",
    "customers",
    "shipping",
    "pages",
    "marketing",
    "banners",
    "sellers",
    "withdrawals",
    "roles",
)


@dataclass(frozen=True)
class AdminAccess:
    email: str = ""
    is_owner: bool = False
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def can_access(self) -> bool:
        return self.is_owner or bool(self.roles)

    def has_permission(self, permission: str) -> bool:
        if self.is_owner or OWNER in self.roles:
            return True
        return (permission or "").strip().lower() in self.roles

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "isOwner": self.is_owner,
            "roles": sorted(self.roles),
            "canAccess": self.can_access,
        }


def resolve_admin_access(email: Optional[str], admin_emails: Iterable[str], role_store) -> AdminAccess:
    """Never raises: a failed grant lookup resolves to no permissions."""
    key = (email or "").strip().lower()
    if not key:
        return AdminAccess()
    if key in {e.strip().lower() for e in admin_emails or []}:
        return AdminAccess(email=key, is_owner=True)
    try:
        roles = role_store.get(key)
    except Exception as ex:
        logger.warning(f"[admin.roles] role lookup failed for {key}: {ex}")
        return AdminAccess(email=key)
    return AdminAccess(email=key, roles=frozenset(roles or ()))


async def require_admin_permission(
    request: Request,
    db: Session,
    provider: AuthProvider,
    permission: Optional[str] = None,
    admin_emails: Optional[Iterable[str]] = None,
) -> tuple[Optional[Principal], Optional[JSONResponse]]:
    """Returns (principal, None) when allowed, else (None, error response).

    With permission=None only admin-area access (owner or any role) is required.
    """
    from utils.admin_roles import AdminRoleStore

    principal = await get_principal(request, provider)
    if not principal or not principal.email:
        return None, JSONResponse({"error": "unauthorized"}, status_code=401)
    access = resolve_admin_access(
        principal.email,
        ADMIN_EMAILS if admin_emails is None else admin_emails,
        AdminRoleStore(db),
    )
    allowed = access.has_permission(permission) if permission else access.can_access
    if not allowed:
        logger.info(f"[admin] {principal.email} denied permission '{permission or 'access'}'")
        return None, JSONResponse({"error": "forbidden"}, status_code=403)
    return principal, None
