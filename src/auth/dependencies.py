import logging
from json import JSONDecodeError
from typing import Any, Callable

from fastapi import Depends, Header, Request

from src.auth.audit import log_access
from src.auth.context import AccessContext, AccessRequest, Principal
from src.auth.decisions import AccessDecisionError, Decision
from src.auth.jwt import principal_from_token
from src.auth.permissions import PermissionConfigurationError, PermissionGroup
from src.auth.policy import AccessPolicy, DecisionProducer, OwnerIdOf, build_access_policy
from src.auth.roles import Role
from src.auth.route_policies import find_route_policy
from src.auth.scope import resolve_requested_org_id
from src.config import settings
from src.observability import incr_metric, log_event

ProducerBuilder = Callable[[AccessPolicy], DecisionProducer]

_BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "DELETE"})

# Built once at import; read-only afterwards.
_access_policy = build_access_policy()


def get_access_policy() -> AccessPolicy:
    return _access_policy


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from 'Bearer <token>' header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


async def get_current_principal(authorization: str | None = Header(None)) -> Principal | None:
    """
    Principal for the bearer token, or None when no credentials were sent.

    An absent principal is left to the access checks, which answer 401. A
    token that was sent but does not verify is rejected here.
    """
    if not authorization:
        return None

    token = _extract_bearer_token(authorization)
    principal = principal_from_token(token) if token else None
    if principal is None:
        raise AccessDecisionError(Decision.unauthenticated("Invalid or expired token"))
    return principal


async def _read_json_body(request: Request) -> Any:
    if request.method in _BODYLESS_METHODS:
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        return await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        # Malformed bodies are rejected by the handler's own validation.
        return None


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def evaluate_access(
    producer: DecisionProducer,
    access_request: AccessRequest,
    *,
    action: str,
    request_id: str | None = None,
) -> Decision:
    """Run one access check and record it. The returned decision is never altered."""
    decision = producer(access_request)
    incr_metric("access.decisions", outcome=decision.kind)

    if decision.is_fault:
        log_event(
            "access_configuration_error",
            level=logging.ERROR,
            request_id=request_id,
            action=action,
            path=access_request.path,
            message=decision.message,
            **decision.internal,
        )

    if settings.access_audit_enabled:
        log_access(action, access_request, decision, request_id=request_id)
    return decision


def _guard(
    resolve: Callable[[AccessPolicy, Request], DecisionProducer],
    action: str | None,
):
    async def _require(
        request: Request,
        principal: Principal | None = Depends(get_current_principal),
        policy: AccessPolicy = Depends(get_access_policy),
    ) -> AccessContext:
        body = await _read_json_body(request)
        access_request = AccessRequest(
            principal=principal,
            method=request.method,
            path=request.url.path,
            requested_org_id=resolve_requested_org_id(request.query_params, body, request.path_params),
            path_params=dict(request.path_params),
        )
        decision = evaluate_access(
            resolve(policy, request),
            access_request,
            action=action or f"{request.method} {_route_template(request)}",
            request_id=getattr(request.state, "request_id", None),
        )
        if not decision.allowed:
            raise AccessDecisionError(decision)
        if principal is None:
            raise AccessDecisionError(Decision.unauthenticated())

        request.state.org_id = decision.effective_org_id
        return AccessContext(principal=principal, org_id=decision.effective_org_id, decision=decision)

    return _require


def require_access(build: ProducerBuilder, *, action: str | None = None):
    """Dependency running the producers `build` makes from the injected policy."""
    return _guard(lambda policy, _request: build(policy), action)


def require_roles(*roles: Role, org_scope: bool = True, action: str | None = None):
    def _build(policy: AccessPolicy) -> DecisionProducer:
        if org_scope:
            return policy.role_with_org_scope(roles)
        return policy.any_role(roles)

    return require_access(_build, action=action)


def require_permission(
    group_name: PermissionGroup | str,
    *,
    org_scope: bool = True,
    action: str | None = None,
):
    def _build(policy: AccessPolicy) -> DecisionProducer:
        if org_scope:
            return policy.permission_with_org_scope(group_name)
        return policy.permission(group_name)

    return require_access(_build, action=action)


def require_admin(*, action: str | None = None):
    return require_access(lambda policy: policy.admin_tier(), action=action)


def require_super_admin(*, action: str | None = None):
    return require_access(lambda policy: policy.super_tier(), action=action)


def require_owner_or_admin(owner_id_of: OwnerIdOf, *, action: str | None = None):
    return require_access(lambda policy: policy.owner_or_admin_tier(owner_id_of), action=action)


def require_org_scope(*, action: str | None = None):
    return require_access(lambda policy: policy.org_scope(), action=action)


def require_route_policy(*, action: str | None = None):
    """Dependency applying the route policy table entry for the matched route."""

    def _resolve(policy: AccessPolicy, request: Request) -> DecisionProducer:
        template = _route_template(request)
        route_policy = find_route_policy(request.method, template)
        if route_policy is None:
            raise PermissionConfigurationError(f"No route policy for {request.method} {template}")
        return policy.for_route(route_policy)

    return _guard(_resolve, action)


def path_param_owner(param: str = "user_id") -> OwnerIdOf:
    """Owner getter reading the resource owner's id from a path parameter."""

    def _owner_id(_principal: Principal, request: AccessRequest) -> Any:
        return request.path_params.get(param)

    return _owner_id
