from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

from src.auth.context import Principal
from src.auth.decisions import Decision
from src.auth.permissions import PermissionCatalog, PermissionGroup, UnknownPermissionGroupError
from src.auth.roles import ADMIN_TIER_ROLES, SUPER_TIER_ROLES, Role

R = TypeVar("R")

OwnerIdGetter = Callable[[Principal, R], Any]


class AuthorizationEvaluator:
    """Pure role and permission-group checks against an injected catalog."""

    def __init__(self, catalog: PermissionCatalog) -> None:
        self.catalog = catalog

    def require_any_role(self, principal: Principal | None, allowed_roles: Iterable[Role]) -> Decision:
        if principal is None:
            return Decision.unauthenticated()
        allowed = frozenset(allowed_roles)
        if principal.role not in allowed:
            return Decision.insufficient_role(allowed, principal.role)
        return Decision.allow()

    def require_permission(self, principal: Principal | None, group_name: PermissionGroup | str) -> Decision:
        # An unknown group is a deploy-time defect whoever is asking.
        try:
            allowed = self.catalog.resolve(group_name)
        except UnknownPermissionGroupError as exc:
            return Decision.unknown_permission_group(exc.group_name)
        return self.require_any_role(principal, allowed)

    def require_super_tier(self, principal: Principal | None) -> Decision:
        return self.require_any_role(principal, SUPER_TIER_ROLES)

    def require_admin_tier(self, principal: Principal | None) -> Decision:
        return self.require_any_role(principal, ADMIN_TIER_ROLES)

    def require_owner_or_admin_tier(
        self,
        principal: Principal | None,
        owner_id_of: OwnerIdGetter[R],
        request: R,
    ) -> Decision:
        if principal is None:
            return Decision.unauthenticated()
        if principal.role in ADMIN_TIER_ROLES:
            return Decision.allow()
        if principal.id == owner_id_of(principal, request):
            return Decision.allow()
        return Decision.not_owner()


def has_role(principal: Principal | None, role: Role) -> bool:
    return principal is not None and principal.role == role


def has_any_role(principal: Principal | None, roles: Iterable[Role]) -> bool:
    return principal is not None and principal.role in frozenset(roles)
