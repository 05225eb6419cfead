from fastapi import APIRouter, Depends
from src.auth import AccessContext, PermissionGroup, require_permission
from src.auth.dependencies import get_access_policy
from src.auth.policy import AccessPolicy
from src.models.access import MeResponse

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me", response_model=MeResponse)
async def get_me(
    access: AccessContext = Depends(require_permission(PermissionGroup.ALL_USERS, org_scope=False)),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """Current principal with the permission groups its role belongs to."""
    principal = access.principal
    return MeResponse(
        user_id=principal.id,
        email=principal.email,
        role=principal.role.value,
        org_id=principal.organization_id,
        permission_groups=policy.catalog.groups_for_role(principal.role),
    )
