from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class MeResponse(BaseModel):
    user_id: str
    email: str | None
    role: str
    org_id: str | None
    permission_groups: list[str]


class ScopeResponse(BaseModel):
    user_id: str
    role: str
    org_id: str | None
    scoped: bool


class PermissionGroupResponse(BaseModel):
    name: str
    roles: list[str]


class PermissionGroupCheckResponse(PermissionGroupResponse):
    user_role: str
    allowed: bool


class RoutePolicyResponse(BaseModel):
    method: str
    path: str
    permission: str | None
    rule: str | None
    roles: list[str]
    org_scoped: bool


class AccessCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    method: HttpMethod
    path: str
    org_id: str | None = Field(default=None, alias="orgId")


class AccessCheckResponse(BaseModel):
    method: str
    path: str
    allowed: bool
    outcome: str
    status_code: int
    message: str | None = None
    effective_org_id: str | None = None


class AccessMetricsResponse(BaseModel):
    counters: dict[str, int]
