from fastapi import APIRouter, Depends, HTTPException, Request, status
from src.auth import AccessContext, AccessRequest, PermissionGroup, require_admin, require_org_scope, require_permission
from src.auth.decisions import AccessDecisionError, Decision
from src.auth.dependencies import evaluate_access, get_access_policy
from src.auth.permissions import UnknownPermissionGroupError
from src.auth.policy import AccessPolicy
from src.auth.route_policies import ROUTE_POLICIES, find_route_policy
from src.models.access import (
    AccessCheckRequest,
    AccessCheckResponse,
    PermissionGroupCheckResponse,
    PermissionGroupResponse,
    RoutePolicyResponse,
    ScopeResponse,
)

router = APIRouter(prefix="/api/access", tags=["access"])

_authenticated = require_permission(PermissionGroup.ALL_USERS, org_scope=False)


@router.get("/scope", response_model=ScopeResponse)
async def get_scope(access: AccessContext = Depends(require_org_scope())):
    """Effective organization id for the caller. Super admins may pass ?orgId= or stay unscoped."""
    return ScopeResponse(
        user_id=access.principal.id,
        role=access.principal.role.value,
        org_id=access.org_id,
        scoped=access.org_id is not None,
    )


@router.get("/permission-groups", response_model=list[PermissionGroupResponse])
async def list_permission_groups(
    _access: AccessContext = Depends(require_admin()),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """Full permission catalog. Admin tier only."""
    return [
        PermissionGroupResponse(name=name, roles=roles)
        for name, roles in policy.catalog.as_dict().items()
    ]


@router.get("/permission-groups/{group_name}", response_model=PermissionGroupCheckResponse)
async def get_permission_group(
    group_name: str,
    access: AccessContext = Depends(_authenticated),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """One permission group and whether the caller is a member of it."""
    try:
        roles = policy.catalog.ordered_roles(group_name)
    except UnknownPermissionGroupError as exc:
        raise AccessDecisionError(Decision.unknown_permission_group(exc.group_name)) from exc

    return PermissionGroupCheckResponse(
        name=group_name,
        roles=[role.value for role in roles],
        user_role=access.principal.role.value,
        allowed=access.principal.role in roles,
    )


@router.get("/route-policies", response_model=list[RoutePolicyResponse])
async def list_route_policies(_access: AccessContext = Depends(require_admin())):
    """Route-to-permission table applied to the hospital API."""
    return [
        RoutePolicyResponse(
            method=policy.method,
            path=policy.path,
            permission=policy.permission,
            rule=policy.rule,
            roles=[role.value for role in policy.roles],
            org_scoped=policy.org_scoped,
        )
        for policy in ROUTE_POLICIES
    ]


@router.post("/check", response_model=AccessCheckResponse)
async def check_access(
    data: AccessCheckRequest,
    request: Request,
    access: AccessContext = Depends(_authenticated),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """Dry-run the route policy for the caller. Nothing is executed."""
    route_policy = find_route_policy(data.method, data.path)
    if route_policy is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No access policy for route")

    decision = evaluate_access(
        policy.for_route(route_policy),
        AccessRequest(
            principal=access.principal,
            method=route_policy.method,
            path=route_policy.path,
            requested_org_id=data.org_id,
        ),
        action=f"check {route_policy.method} {route_policy.path}",
        request_id=getattr(request.state, "request_id", None),
    )
    if decision.is_fault:
        raise AccessDecisionError(decision)

    return AccessCheckResponse(
        method=route_policy.method,
        path=route_policy.path,
        allowed=decision.allowed,
        outcome=decision.kind.value,
        status_code=decision.status_code,
        message=decision.message,
        effective_org_id=decision.effective_org_id,
    )
