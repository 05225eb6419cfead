from __future__ import annotations

from typing import Any, Callable, Iterable

from src.auth.context import AccessRequest, Principal
from src.auth.decisions import Decision
from src.auth.evaluator import AuthorizationEvaluator
from src.auth.permissions import (
    PermissionCatalog,
    PermissionConfigurationError,
    PermissionGroup,
    default_catalog,
)
from src.auth.roles import Role
from src.auth.route_policies import RULE_ADMIN, RULE_SUPER_ADMIN, RoutePolicy
from src.auth.scope import TenantScopeEnforcer

DecisionProducer = Callable[[AccessRequest], Decision]
OwnerIdOf = Callable[[Principal, AccessRequest], Any]


def chain(*producers: DecisionProducer) -> DecisionProducer:
    """
    Run producers in order and stop at the first decision that is not ALLOW.

    The combined ALLOW carries the effective org id of the last scoped
    producer, so `chain(role_check, org_scope)` hands the handler its org id.
    """
    if not producers:
        raise ValueError("chain() needs at least one decision producer")

    def _run(request: AccessRequest) -> Decision:
        result = Decision.allow()
        for producer in producers:
            decision = producer(request)
            if not decision.allowed:
                return decision
            if decision.scoped:
                result = decision
        return result

    return _run


class AccessPolicy:
    """Builds decision producers bound to one evaluator and scope enforcer."""

    def __init__(self, evaluator: AuthorizationEvaluator, enforcer: TenantScopeEnforcer) -> None:
        self.evaluator = evaluator
        self.enforcer = enforcer

    @property
    def catalog(self) -> PermissionCatalog:
        return self.evaluator.catalog

    def any_role(self, roles: Iterable[Role]) -> DecisionProducer:
        allowed = frozenset(roles)
        return lambda request: self.evaluator.require_any_role(request.principal, allowed)

    def permission(self, group_name: PermissionGroup | str) -> DecisionProducer:
        return lambda request: self.evaluator.require_permission(request.principal, group_name)

    def super_tier(self) -> DecisionProducer:
        return lambda request: self.evaluator.require_super_tier(request.principal)

    def admin_tier(self) -> DecisionProducer:
        return lambda request: self.evaluator.require_admin_tier(request.principal)

    def owner_or_admin_tier(self, owner_id_of: OwnerIdOf) -> DecisionProducer:
        return lambda request: self.evaluator.require_owner_or_admin_tier(
            request.principal, owner_id_of, request
        )

    def org_scope(self) -> DecisionProducer:
        return lambda request: self.enforcer.enforce_scope(request.principal, request.requested_org_id)

    def role_with_org_scope(self, roles: Iterable[Role]) -> DecisionProducer:
        return chain(self.any_role(roles), self.org_scope())

    def permission_with_org_scope(self, group_name: PermissionGroup | str) -> DecisionProducer:
        return chain(self.permission(group_name), self.org_scope())

    def for_route(self, route: RoutePolicy) -> DecisionProducer:
        if route.permission is not None:
            check = self.permission(route.permission)
        elif route.roles:
            check = self.any_role(route.roles)
        elif route.rule == RULE_SUPER_ADMIN:
            check = self.super_tier()
        elif route.rule == RULE_ADMIN:
            check = self.admin_tier()
        else:
            raise PermissionConfigurationError(f"Unknown route rule: {route.rule}")
        if route.org_scoped:
            return chain(check, self.org_scope())
        return check


def build_access_policy(catalog: PermissionCatalog | None = None) -> AccessPolicy:
    return AccessPolicy(
        evaluator=AuthorizationEvaluator(catalog if catalog is not None else default_catalog),
        enforcer=TenantScopeEnforcer(),
    )
