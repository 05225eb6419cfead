from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Iterable, Mapping

from src.auth.roles import Role, ordered_roles


class DecisionKind(str, Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_OWNER = "not_owner"
    NO_ORGANIZATION_ASSIGNED = "no_organization_assigned"
    CROSS_TENANT_ACCESS = "cross_tenant_access"
    UNKNOWN_PERMISSION_GROUP = "unknown_permission_group"


_STATUS_CODES: Final[dict[DecisionKind, int]] = {
    DecisionKind.ALLOW: 200,
    DecisionKind.UNAUTHENTICATED: 401,
    DecisionKind.INSUFFICIENT_ROLE: 403,
    DecisionKind.NOT_OWNER: 403,
    DecisionKind.NO_ORGANIZATION_ASSIGNED: 403,
    DecisionKind.CROSS_TENANT_ACCESS: 403,
    DecisionKind.UNKNOWN_PERMISSION_GROUP: 500,
}

CONFIGURATION_ERROR_MESSAGE: Final[str] = "Internal server error: Invalid permission configuration"


@dataclass(frozen=True)
class Decision:
    """
    Outcome of one access check.

    `details` are client diagnostics and are rendered into the error body.
    `internal` is for the server log only. `scoped` marks decisions produced by
    the tenant scope enforcer, whose `effective_org_id` handlers must use.
    """
    kind: DecisionKind
    message: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)
    internal: Mapping[str, Any] = field(default_factory=dict)
    effective_org_id: str | None = None
    scoped: bool = False

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.ALLOW

    @property
    def is_fault(self) -> bool:
        return self.status_code >= 500

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind]

    def error_body(self) -> dict[str, Any]:
        if self.is_fault:
            return {"errors": [{"message": CONFIGURATION_ERROR_MESSAGE}]}
        error: dict[str, Any] = {"message": self.message or ""}
        error.update(self.details)
        return {"errors": [error]}

    @classmethod
    def allow(cls) -> Decision:
        return cls(kind=DecisionKind.ALLOW)

    @classmethod
    def allow_scoped(cls, effective_org_id: str | None) -> Decision:
        return cls(kind=DecisionKind.ALLOW, effective_org_id=effective_org_id, scoped=True)

    @classmethod
    def unauthenticated(cls, message: str = "Authentication required") -> Decision:
        return cls(kind=DecisionKind.UNAUTHENTICATED, message=message)

    @classmethod
    def insufficient_role(cls, allowed_roles: Iterable[Role], user_role: Role) -> Decision:
        return cls(
            kind=DecisionKind.INSUFFICIENT_ROLE,
            message="Access denied. Insufficient permissions.",
            details={
                "requiredRoles": [role.value for role in ordered_roles(frozenset(allowed_roles))],
                "userRole": user_role.value,
            },
        )

    @classmethod
    def not_owner(cls) -> Decision:
        return cls(
            kind=DecisionKind.NOT_OWNER,
            message="Access denied. Can only access your own resources.",
        )

    @classmethod
    def no_organization_assigned(cls) -> Decision:
        return cls(kind=DecisionKind.NO_ORGANIZATION_ASSIGNED, message="User has no organization assigned")

    @classmethod
    def cross_tenant_access(cls, user_org_id: str, requested_org_id: str) -> Decision:
        return cls(
            kind=DecisionKind.CROSS_TENANT_ACCESS,
            message="Access denied. Cannot access other organizations.",
            details={"userOrgId": user_org_id, "requestedOrgId": requested_org_id},
        )

    @classmethod
    def unknown_permission_group(cls, group_name: str) -> Decision:
        return cls(
            kind=DecisionKind.UNKNOWN_PERMISSION_GROUP,
            message=f"Invalid permission group: {group_name}",
            internal={"permission_group": group_name},
        )


class AccessDecisionError(Exception):
    """Raised by the HTTP layer to turn a non-ALLOW decision into an error response."""

    def __init__(self, decision: Decision) -> None:
        super().__init__(decision.message or decision.kind.value)
        self.decision = decision
