from fastapi.testclient import TestClient

from src.auth.context import Principal
from src.auth.dependencies import get_access_policy, get_current_principal
from src.auth.permissions import PermissionCatalog
from src.auth.policy import build_access_policy
from src.auth.roles import Role
from src.main import app


def _set_principal(principal: Principal | None):
    async def _override():
        return principal

    app.dependency_overrides[get_current_principal] = _override


def _clear():
    app.dependency_overrides.clear()


NURSE = Principal(id="u42", role=Role.NURSE, organization_id="org-1")
HOSPITAL_ADMIN = Principal(id="u2", role=Role.HOSPITAL_ADMIN, organization_id="org-1")
SUPER_ADMIN = Principal(id="u9", role=Role.SUPER_ADMIN, organization_id=None)
ORPHAN_DOCTOR = Principal(id="u5", role=Role.DOCTOR, organization_id=None)


def test_access_endpoints_require_auth():
    client = TestClient(app)
    assert client.get("/api/access/scope").status_code == 401
    assert client.get("/api/access/permission-groups").status_code == 401
    assert client.get("/api/access/permission-groups/LAB_PROCESS").status_code == 401
    assert client.get("/api/access/route-policies").status_code == 401
    assert client.post("/api/access/check", json={"method": "GET", "path": "/api/lab/tests"}).status_code == 401


def test_scope_auto_fills_own_org():
    _set_principal(NURSE)
    client = TestClient(app)
    response = client.get("/api/access/scope")
    _clear()

    assert response.status_code == 200
    assert response.json() == {"user_id": "u42", "role": "Nurse", "org_id": "org-1", "scoped": True}


def test_scope_rejects_other_org_in_query():
    _set_principal(HOSPITAL_ADMIN)
    client = TestClient(app)
    response = client.get("/api/access/scope?orgId=org-2")
    _clear()

    assert response.status_code == 403
    error = response.json()["errors"][0]
    assert error["message"] == "Access denied. Cannot access other organizations."
    assert error["userOrgId"] == "org-1"
    assert error["requestedOrgId"] == "org-2"


def test_scope_for_super_admin_follows_request():
    _set_principal(SUPER_ADMIN)
    client = TestClient(app)
    scoped = client.get("/api/access/scope?orgId=org-7")
    unscoped = client.get("/api/access/scope")
    _clear()

    assert scoped.status_code == 200
    assert scoped.json()["org_id"] == "org-7"
    assert unscoped.status_code == 200
    assert unscoped.json()["org_id"] is None
    assert unscoped.json()["scoped"] is False


def test_scope_rejects_principal_without_org():
    _set_principal(ORPHAN_DOCTOR)
    client = TestClient(app)
    response = client.get("/api/access/scope")
    _clear()

    assert response.status_code == 403
    assert response.json() == {"errors": [{"message": "User has no organization assigned"}]}


def test_catalog_listing_is_admin_only():
    client = TestClient(app)

    _set_principal(NURSE)
    denied = client.get("/api/access/permission-groups")
    _set_principal(HOSPITAL_ADMIN)
    allowed = client.get("/api/access/permission-groups")
    _clear()

    assert denied.status_code == 403
    assert denied.json()["errors"][0]["requiredRoles"] == ["SuperAdmin", "HospitalAdmin"]
    assert denied.json()["errors"][0]["userRole"] == "Nurse"
    assert allowed.status_code == 200
    groups = {row["name"]: row["roles"] for row in allowed.json()}
    assert groups["LAB_PROCESS"] == ["SuperAdmin", "HospitalAdmin", "Nurse", "LabTechnician"]


def test_permission_group_lookup_reports_membership():
    _set_principal(NURSE)
    client = TestClient(app)
    lab = client.get("/api/access/permission-groups/LAB_PROCESS")
    radiology = client.get("/api/access/permission-groups/RADIOLOGY_PROCESS")
    _clear()

    assert lab.status_code == 200
    assert lab.json()["allowed"] is True
    assert radiology.status_code == 200
    assert radiology.json()["allowed"] is False
    assert radiology.json()["roles"] == ["SuperAdmin", "HospitalAdmin", "Radiologist"]


def test_unknown_permission_group_is_a_server_fault():
    _set_principal(SUPER_ADMIN)
    client = TestClient(app)
    response = client.get("/api/access/permission-groups/LAB_TELEPORT")
    _clear()

    assert response.status_code == 500
    body = response.json()
    assert body == {"errors": [{"message": "Internal server error: Invalid permission configuration"}]}
    assert "LAB_TELEPORT" not in response.text


def test_route_policies_listing_is_admin_only():
    client = TestClient(app)
    _set_principal(NURSE)
    denied = client.get("/api/access/route-policies")
    _set_principal(SUPER_ADMIN)
    allowed = client.get("/api/access/route-policies")
    _clear()

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert {"method": "POST", "path": "/api/lab/tests/{testId}/samples", "permission": "LAB_PROCESS",
            "rule": None, "roles": [], "org_scoped": True} in allowed.json()
    assert {"method": "GET", "path": "/api/dashboard/hospital-admin", "permission": None, "rule": None,
            "roles": ["HospitalAdmin", "Doctor", "Nurse"], "org_scoped": True} in allowed.json()


def test_access_check_dry_runs_route_policy():
    _set_principal(NURSE)
    client = TestClient(app)
    lab = client.post("/api/access/check", json={"method": "POST", "path": "/api/lab/tests/{testId}/samples"})
    radiology = client.post("/api/access/check", json={"method": "PATCH", "path": "/api/radiology/tests/{id}"})
    cross = client.post(
        "/api/access/check",
        json={"method": "GET", "path": "/api/lab/tests", "orgId": "org-2"},
    )
    missing = client.post("/api/access/check", json={"method": "GET", "path": "/api/nowhere"})
    _clear()

    assert lab.status_code == 200
    assert lab.json()["allowed"] is True
    assert lab.json()["effective_org_id"] == "org-1"

    assert radiology.status_code == 200
    assert radiology.json()["allowed"] is False
    assert radiology.json()["outcome"] == "insufficient_role"
    assert radiology.json()["status_code"] == 403

    assert cross.status_code == 200
    assert cross.json()["outcome"] == "cross_tenant_access"

    assert missing.status_code == 404


def test_access_check_for_super_admin_route():
    client = TestClient(app)
    _set_principal(HOSPITAL_ADMIN)
    denied = client.post("/api/access/check", json={"method": "POST", "path": "/api/organizations"})
    _set_principal(SUPER_ADMIN)
    allowed = client.post("/api/access/check", json={"method": "POST", "path": "/api/organizations"})
    _clear()

    assert denied.json()["allowed"] is False
    assert allowed.json()["allowed"] is True


def test_alternate_catalog_is_injectable():
    catalog = PermissionCatalog({"ALL_USERS": ("Nurse",), "LAB_PROCESS": ("Radiologist",)})
    app.dependency_overrides[get_access_policy] = lambda: build_access_policy(catalog)
    _set_principal(NURSE)
    client = TestClient(app)
    response = client.get("/api/access/permission-groups/LAB_PROCESS")
    _clear()

    assert response.status_code == 200
    assert response.json()["roles"] == ["Radiologist"]
    assert response.json()["allowed"] is False


def test_request_id_is_echoed():
    client = TestClient(app)
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
