from __future__ import annotations

from typing import Any, Iterable, Mapping

from src.auth.context import Principal
from src.auth.decisions import AccessDecisionError, Decision
from src.auth.roles import ORGANIZATION_AGNOSTIC_ROLES, Role

ORG_ID_FIELD = "orgId"


def _clean_org_id(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class TenantScopeEnforcer:
    """
    Keeps every principal inside its own organization.

    Organization-agnostic roles pass through with whatever org id was
    requested (possibly none). Everyone else gets their own org id back as the
    effective org id, and a request naming any other org is denied.
    """

    def __init__(self, organization_agnostic_roles: Iterable[Role] = ORGANIZATION_AGNOSTIC_ROLES) -> None:
        self.organization_agnostic_roles = frozenset(organization_agnostic_roles)

    def enforce_scope(self, principal: Principal | None, requested_org_id: str | None) -> Decision:
        if principal is None:
            return Decision.unauthenticated()

        requested = _clean_org_id(requested_org_id)
        if principal.role in self.organization_agnostic_roles:
            return Decision.allow_scoped(requested)

        if not principal.organization_id:
            return Decision.no_organization_assigned()

        if requested is not None and requested != principal.organization_id:
            return Decision.cross_tenant_access(principal.organization_id, requested)

        return Decision.allow_scoped(principal.organization_id)

    def is_same_org(self, principal: Principal, org_id: str | None) -> bool:
        if principal.role in self.organization_agnostic_roles:
            return True
        return bool(principal.organization_id) and principal.organization_id == org_id

    def effective_org_id(self, principal: Principal | None, requested_org_id: str | None) -> str | None:
        """
        Org id to query with.

        None only for an organization-agnostic principal that asked for no org.
        Any other principal gets its own org id whatever was requested, and a
        principal that cannot be scoped at all raises `AccessDecisionError`.
        """
        if principal is None:
            raise AccessDecisionError(Decision.unauthenticated())
        if principal.role in self.organization_agnostic_roles:
            return _clean_org_id(requested_org_id)
        own = _clean_org_id(principal.organization_id)
        if own is None:
            raise AccessDecisionError(Decision.no_organization_assigned())
        return own


def resolve_requested_org_id(
    query: Mapping[str, Any] | None = None,
    body: Any = None,
    path_params: Mapping[str, Any] | None = None,
) -> str | None:
    """Requested org id from query, then JSON body, then path. First non-empty wins."""
    candidates: list[Any] = []
    if query:
        candidates.append(query.get(ORG_ID_FIELD))
    if isinstance(body, Mapping):
        candidates.append(body.get(ORG_ID_FIELD))
    if path_params:
        candidates.append(path_params.get(ORG_ID_FIELD))
    for candidate in candidates:
        cleaned = _clean_org_id(candidate)
        if cleaned is not None:
            return cleaned
    return None
