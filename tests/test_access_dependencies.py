import json
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from src.auth import (
    AccessContext,
    Role,
    require_admin,
    require_access,
    require_owner_or_admin,
    require_permission,
    require_roles,
    require_route_policy,
    require_super_admin,
)
from src.auth.context import Principal
from src.auth.dependencies import get_current_principal, path_param_owner
from src.auth.decisions import AccessDecisionError, Decision
from src.auth.permissions import PermissionConfigurationError
from src.main import access_decision_error_handler, permission_configuration_error_handler
from src.observability import metrics_snapshot, reset_metrics


def _build_app() -> FastAPI:
    api = FastAPI()
    api.add_exception_handler(AccessDecisionError, access_decision_error_handler)
    api.add_exception_handler(PermissionConfigurationError, permission_configuration_error_handler)

    @api.get("/api/lab/tests")
    async def list_lab_tests(access: AccessContext = Depends(require_route_policy())):
        return {"org_id": access.org_id}

    @api.post("/api/lab/tests/{testId}/results")
    async def record_results(testId: str, access: AccessContext = Depends(require_route_policy())):
        return {"org_id": access.org_id, "test_id": testId}

    @api.get("/api/unmapped")
    async def unmapped(access: AccessContext = Depends(require_route_policy())):
        return {"org_id": access.org_id}

    @api.post("/api/patients")
    async def create_patient(
        request: Request,
        access: AccessContext = Depends(require_permission("PATIENT_WRITE", action="patients.create")),
    ):
        return {"org_id": access.org_id, "state_org_id": request.state.org_id}

    @api.get("/api/organizations/{orgId}/stats")
    async def org_stats(orgId: str, access: AccessContext = Depends(require_roles(Role.SUPER_ADMIN, Role.HOSPITAL_ADMIN))):
        return {"org_id": access.org_id}

    @api.get("/api/typo")
    async def typo(access: AccessContext = Depends(require_permission("LAB_PROCES"))):
        return {"org_id": access.org_id}

    @api.delete("/api/departments/{id}")
    async def delete_department(id: str, access: AccessContext = Depends(require_admin())):
        return {"deleted": id}

    @api.get("/api/dashboard/superadmin")
    async def super_dashboard(access: AccessContext = Depends(require_super_admin())):
        return {"role": access.principal.role.value}

    allow_everyone = require_access(lambda _policy: lambda _request: Decision.allow())

    @api.get("/api/public-notice")
    async def public_notice(access: AccessContext = Depends(allow_everyone)):
        return {"user_id": access.principal.id}

    @api.patch("/api/users/{user_id}/profile")
    async def update_profile(
        user_id: str,
        access: AccessContext = Depends(require_owner_or_admin(path_param_owner("user_id"))),
    ):
        return {"user_id": user_id}

    return api


api = _build_app()


def _client_as(principal: Principal | None) -> TestClient:
    async def _override():
        return principal

    api.dependency_overrides[get_current_principal] = _override
    return TestClient(api)


NURSE = Principal(id="u42", role=Role.NURSE, organization_id="org-1")
LAB_TECH = Principal(id="u7", role=Role.LAB_TECHNICIAN, organization_id="org-1")
HOSPITAL_ADMIN = Principal(id="u2", role=Role.HOSPITAL_ADMIN, organization_id="org-1")
SUPER_ADMIN = Principal(id="u9", role=Role.SUPER_ADMIN, organization_id=None)


def test_route_policy_guard_scopes_to_own_org():
    client = _client_as(NURSE)
    assert client.get("/api/lab/tests").json() == {"org_id": "org-1"}
    assert client.get("/api/lab/tests?orgId=org-1").status_code == 200
    assert client.get("/api/lab/tests?orgId=org-2").status_code == 403


def test_route_policy_guard_denies_missing_capability():
    client = _client_as(NURSE)
    response = client.post("/api/lab/tests/t-1/results")

    assert response.status_code == 403
    error = response.json()["errors"][0]
    assert error["requiredRoles"] == ["SuperAdmin", "HospitalAdmin", "LabTechnician"]
    assert error["userRole"] == "Nurse"

    assert _client_as(LAB_TECH).post("/api/lab/tests/t-1/results").json() == {"org_id": "org-1", "test_id": "t-1"}


def test_role_check_runs_before_org_check():
    # An unauthorized caller must not learn anything about the org id it sent.
    response = _client_as(NURSE).post("/api/lab/tests/t-1/results?orgId=org-2")
    assert response.status_code == 403
    assert "requestedOrgId" not in response.json()["errors"][0]


def test_route_without_policy_is_a_server_fault():
    response = _client_as(SUPER_ADMIN).get("/api/unmapped")
    assert response.status_code == 500
    assert response.json() == {"errors": [{"message": "Internal server error: Invalid permission configuration"}]}


def test_unknown_group_in_route_dependency_is_logged_and_hidden(caplog):
    caplog.set_level(logging.INFO, logger="hospital_access")
    response = _client_as(NURSE).get("/api/typo")

    assert response.status_code == 500
    assert "LAB_PROCES" not in response.text
    events = [json.loads(r.getMessage()) for r in caplog.records if r.name == "hospital_access"]
    faults = [e for e in events if e["event"] == "access_configuration_error"]
    assert faults and faults[0]["permission_group"] == "LAB_PROCES"


def test_body_org_id_is_checked_and_effective_org_is_injected():
    client = _client_as(NURSE)
    own = client.post("/api/patients", json={"name": "Jane", "orgId": "org-1"})
    other = client.post("/api/patients", json={"name": "Jane", "orgId": "org-2"})
    omitted = client.post("/api/patients", json={"name": "Jane"})

    assert own.status_code == 200
    assert own.json() == {"org_id": "org-1", "state_org_id": "org-1"}
    assert other.status_code == 403
    assert other.json()["errors"][0]["requestedOrgId"] == "org-2"
    assert omitted.json()["org_id"] == "org-1"


def test_query_org_id_wins_over_body():
    client = _client_as(SUPER_ADMIN)
    response = client.post("/api/patients?orgId=org-q", json={"orgId": "org-b"})
    assert response.json()["org_id"] == "org-q"


def test_path_org_id_is_enforced():
    assert _client_as(HOSPITAL_ADMIN).get("/api/organizations/org-1/stats").json() == {"org_id": "org-1"}
    assert _client_as(HOSPITAL_ADMIN).get("/api/organizations/org-2/stats").status_code == 403
    assert _client_as(SUPER_ADMIN).get("/api/organizations/org-2/stats").json() == {"org_id": "org-2"}
    assert _client_as(NURSE).get("/api/organizations/org-1/stats").status_code == 403


def test_admin_and_super_admin_guards():
    assert _client_as(NURSE).delete("/api/departments/d-1").status_code == 403
    assert _client_as(HOSPITAL_ADMIN).delete("/api/departments/d-1").status_code == 200
    assert _client_as(HOSPITAL_ADMIN).get("/api/dashboard/superadmin").status_code == 403
    assert _client_as(SUPER_ADMIN).get("/api/dashboard/superadmin").json() == {"role": "SuperAdmin"}


def test_owner_or_admin_guard():
    assert _client_as(NURSE).patch("/api/users/u42/profile").status_code == 200
    denied = _client_as(NURSE).patch("/api/users/u1/profile")
    assert denied.status_code == 403
    assert denied.json() == {"errors": [{"message": "Access denied. Can only access your own resources."}]}
    assert _client_as(HOSPITAL_ADMIN).patch("/api/users/u1/profile").status_code == 200


def test_anonymous_requests_get_401_everywhere():
    client = _client_as(None)
    for method, path in (
        ("GET", "/api/lab/tests"),
        ("POST", "/api/patients"),
        ("DELETE", "/api/departments/d-1"),
        ("GET", "/api/dashboard/superadmin"),
        ("PATCH", "/api/users/u1/profile"),
    ):
        response = client.request(method, path)
        assert response.status_code == 401, path
        assert response.json() == {"errors": [{"message": "Authentication required"}]}


def test_custom_producer_allowing_anonymous_caller_still_needs_a_principal():
    anonymous = _client_as(None).get("/api/public-notice")
    assert anonymous.status_code == 401
    assert anonymous.json() == {"errors": [{"message": "Authentication required"}]}

    assert _client_as(NURSE).get("/api/public-notice").json() == {"user_id": "u42"}


def test_decisions_are_counted_and_audited(caplog):
    caplog.set_level(logging.INFO, logger="hospital_access")
    reset_metrics()
    client = _client_as(NURSE)
    client.get("/api/lab/tests")
    client.get("/api/lab/tests?orgId=org-2")
    client.post("/api/patients", json={})

    counters = metrics_snapshot()
    assert counters["access.decisions|outcome=allow"] == 2
    assert counters["access.decisions|outcome=cross_tenant_access"] == 1

    events = [json.loads(r.getMessage()) for r in caplog.records if r.name == "hospital_access"]
    audited = [e for e in events if e["event"] == "access_decision"]
    assert [e["action"] for e in audited] == ["GET /api/lab/tests", "GET /api/lab/tests", "patients.create"]
    assert audited[1]["org_id"] == "org-2"
    reset_metrics()
