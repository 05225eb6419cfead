from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from src.auth.roles import Role, normalize_role

if TYPE_CHECKING:
    from src.auth.decisions import Decision


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to one request. Never persisted."""
    id: str
    role: Role
    organization_id: str | None = None
    email: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", normalize_role(self.role))


@dataclass(frozen=True)
class AccessRequest:
    """What a decision producer sees of the incoming request."""
    principal: Principal | None
    method: str = "GET"
    path: str = ""
    requested_org_id: str | None = None
    path_params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessContext:
    """Handed to handlers after every access check allowed the request.

    `org_id` is the effective organization id and the only one a handler may
    use to filter or tag data.
    """
    principal: Principal
    org_id: str | None
    decision: Decision | None = None
