from src.auth.context import AccessContext, AccessRequest, Principal
from src.auth.decisions import AccessDecisionError, Decision, DecisionKind
from src.auth.dependencies import (
    get_access_policy,
    get_current_principal,
    require_access,
    require_admin,
    require_org_scope,
    require_owner_or_admin,
    require_permission,
    require_roles,
    require_route_policy,
    require_super_admin,
)
from src.auth.jwt import create_access_token
from src.auth.permissions import PermissionGroup
from src.auth.roles import Role

__all__ = [
    "AccessContext",
    "AccessRequest",
    "Principal",
    "AccessDecisionError",
    "Decision",
    "DecisionKind",
    "get_access_policy",
    "get_current_principal",
    "require_access",
    "require_admin",
    "require_org_scope",
    "require_owner_or_admin",
    "require_permission",
    "require_roles",
    "require_route_policy",
    "require_super_admin",
    "create_access_token",
    "PermissionGroup",
    "Role",
]
