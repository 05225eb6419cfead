from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Iterable

from src.auth.permissions import PermissionCatalog, PermissionConfigurationError
from src.auth.roles import Role, normalize_role

RULE_ADMIN: Final[str] = "admin"
RULE_SUPER_ADMIN: Final[str] = "super_admin"
KNOWN_RULES: Final[frozenset[str]] = frozenset({RULE_ADMIN, RULE_SUPER_ADMIN})


@dataclass(frozen=True)
class RoutePolicy:
    """Access rule for one (method, path template) of the hospital API.

    Exactly one of `permission` (a permission-group name), `rule` or `roles`
    (an explicit role list) is set.
    """
    method: str
    path: str
    permission: str | None = None
    rule: str | None = None
    roles: tuple[Role, ...] = ()
    org_scoped: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        try:
            object.__setattr__(self, "roles", tuple(normalize_role(role) for role in self.roles))
        except ValueError as exc:
            raise PermissionConfigurationError(f"Route {self.method} {self.path}: {exc}") from exc
        if sum((self.permission is not None, self.rule is not None, bool(self.roles))) != 1:
            raise PermissionConfigurationError(
                f"Route {self.method} {self.path} needs exactly one of permission, rule or roles"
            )

    @property
    def key(self) -> tuple[str, str]:
        return self.method, self.path


def _p(method: str, path: str, permission: str) -> RoutePolicy:
    return RoutePolicy(method=method, path=path, permission=permission)


def _r(method: str, path: str, rule: str, org_scoped: bool = True) -> RoutePolicy:
    return RoutePolicy(method=method, path=path, rule=rule, org_scoped=org_scoped)


def _roles(method: str, path: str, *roles: Role) -> RoutePolicy:
    return RoutePolicy(method=method, path=path, roles=roles)


_CLINICAL_LEADS: Final[tuple[Role, ...]] = (Role.HOSPITAL_ADMIN, Role.DOCTOR, Role.NURSE)
_WARD_STAFF: Final[tuple[Role, ...]] = (Role.SUPER_ADMIN, *_CLINICAL_LEADS)


ROUTE_POLICIES: Final[tuple[RoutePolicy, ...]] = (
    # Patients
    _p("GET", "/api/patients", "PATIENT_ACCESS"),
    _p("POST", "/api/patients", "PATIENT_WRITE"),
    _p("GET", "/api/patients/{id}", "PATIENT_ACCESS"),
    _p("GET", "/api/patients/code/{code}", "PATIENT_ACCESS"),
    _p("PATCH", "/api/patients/{id}", "PATIENT_WRITE"),
    _r("DELETE", "/api/patients/{id}", RULE_ADMIN),
    _p("GET", "/api/patients/{id}/history", "PATIENT_ACCESS"),
    # OPD
    _p("GET", "/api/opd/tokens", "OPD_ACCESS"),
    _p("GET", "/api/opd/tokens/{id}", "OPD_ACCESS"),
    _p("POST", "/api/opd/tokens", "OPD_ACCESS"),
    _p("PATCH", "/api/opd/tokens/{id}", "OPD_ACCESS"),
    _p("POST", "/api/opd/tokens/{id}/call", "OPD_CONSULTATION"),
    _p("POST", "/api/opd/tokens/{id}/complete", "OPD_CONSULTATION"),
    _r("DELETE", "/api/opd/tokens/{id}", RULE_ADMIN),
    _p("GET", "/api/opd/queue", "OPD_ACCESS"),
    _p("GET", "/api/opd/queue/next", "OPD_CONSULTATION"),
    _p("GET", "/api/opd/stats", "OPD_ACCESS"),
    # Appointments
    _p("GET", "/api/appointments", "OPD_ACCESS"),
    _p("POST", "/api/appointments", "OPD_ACCESS"),
    _p("GET", "/api/appointments/{id}", "OPD_ACCESS"),
    _p("PATCH", "/api/appointments/{id}", "OPD_ACCESS"),
    _r("DELETE", "/api/appointments/{id}", RULE_ADMIN),
    # IPD
    _p("GET", "/api/ipd/admissions", "IPD_ACCESS"),
    _p("POST", "/api/ipd/admissions", "IPD_ACCESS"),
    _p("GET", "/api/ipd/admissions/{id}", "IPD_ACCESS"),
    _p("PATCH", "/api/ipd/admissions/{id}", "IPD_ACCESS"),
    _p("POST", "/api/ipd/admissions/{id}/discharge", "IPD_DISCHARGE"),
    _r("DELETE", "/api/ipd/admissions/{id}", RULE_ADMIN),
    # Beds
    _roles("GET", "/api/beds", *_WARD_STAFF),
    _roles("GET", "/api/beds/stats/summary", *_WARD_STAFF),
    _roles("GET", "/api/beds/{id}", *_WARD_STAFF),
    _p("POST", "/api/beds", "IPD_ACCESS"),
    _p("PATCH", "/api/beds/{id}", "IPD_ACCESS"),
    _r("DELETE", "/api/beds/{id}", RULE_ADMIN),
    # Pharmacy
    _p("GET", "/api/pharmacy/medicines", "PHARMACY_READ"),
    _p("POST", "/api/pharmacy/medicines", "PHARMACY_MANAGE"),
    _p("GET", "/api/pharmacy/medicines/low-stock", "PHARMACY_READ"),
    _p("GET", "/api/pharmacy/medicines/{id}", "PHARMACY_READ"),
    _p("PATCH", "/api/pharmacy/medicines/{id}", "PHARMACY_MANAGE"),
    _p("DELETE", "/api/pharmacy/medicines/{id}", "PHARMACY_MANAGE"),
    _p("GET", "/api/pharmacy/prescriptions", "PHARMACY_READ"),
    _p("POST", "/api/pharmacy/prescriptions", "PRESCRIPTION_CREATE"),
    _p("GET", "/api/pharmacy/prescriptions/{id}", "PHARMACY_READ"),
    _p("POST", "/api/pharmacy/orders", "PHARMACY_MANAGE"),
    # Lab
    _p("GET", "/api/lab/tests", "LAB_ORDER"),
    _p("POST", "/api/lab/tests", "LAB_ORDER"),
    _p("GET", "/api/lab/tests/{id}", "LAB_ORDER"),
    _p("POST", "/api/lab/tests/{testId}/samples", "LAB_PROCESS"),
    _p("POST", "/api/lab/tests/{testId}/results", "LAB_RESULTS"),
    _r("DELETE", "/api/lab/tests/{id}", RULE_ADMIN),
    # Radiology
    _p("GET", "/api/radiology/tests", "RADIOLOGY_ORDER"),
    _p("POST", "/api/radiology/tests", "RADIOLOGY_ORDER"),
    _p("GET", "/api/radiology/tests/{id}", "RADIOLOGY_ORDER"),
    _p("PATCH", "/api/radiology/tests/{id}", "RADIOLOGY_PROCESS"),
    _r("DELETE", "/api/radiology/tests/{id}", RULE_ADMIN),
    # Billing
    _p("GET", "/api/billing/invoices", "BILLING_VIEW"),
    _p("POST", "/api/billing/invoices", "BILLING_MANAGE"),
    _p("GET", "/api/billing/invoices/{id}", "BILLING_VIEW"),
    _p("PATCH", "/api/billing/invoices/{id}", "BILLING_MANAGE"),
    _p("GET", "/api/billing/payments", "BILLING_VIEW"),
    _p("POST", "/api/billing/payments", "BILLING_MANAGE"),
    _p("GET", "/api/billing/reports/revenue", "BILLING_REPORTS"),
    # Departments
    _p("GET", "/api/departments", "PATIENT_ACCESS"),
    _r("POST", "/api/departments", RULE_ADMIN),
    _r("PATCH", "/api/departments/{id}", RULE_ADMIN),
    _r("DELETE", "/api/departments/{id}", RULE_ADMIN),
    _p("POST", "/api/departments/beds/{bedId}/assign", "IPD_ACCESS"),
    _p("POST", "/api/departments/beds/{bedId}/transfer", "IPD_ACCESS"),
    # Dashboard
    _r("GET", "/api/dashboard/superadmin", RULE_SUPER_ADMIN, org_scoped=False),
    _roles("GET", "/api/dashboard/hospital-admin", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/doctor", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/nurse", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/receptionist", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/pharmacist", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/lab-technician", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/radiologist", *_CLINICAL_LEADS),
    _roles("GET", "/api/dashboard/billing", *_CLINICAL_LEADS),
    # Organizations
    _p("GET", "/api/organizations", "ORG_VIEW"),
    _r("POST", "/api/organizations", RULE_SUPER_ADMIN, org_scoped=False),
    _p("GET", "/api/organizations/{orgId}", "ORG_VIEW"),
    _r("PATCH", "/api/organizations/{orgId}", RULE_ADMIN),
    _r("DELETE", "/api/organizations/{orgId}", RULE_SUPER_ADMIN, org_scoped=False),
)

_POLICIES_BY_KEY: Final[dict[tuple[str, str], RoutePolicy]] = {policy.key: policy for policy in ROUTE_POLICIES}


def find_route_policy(
    method: str,
    path: str,
    policies: Iterable[RoutePolicy] | None = None,
) -> RoutePolicy | None:
    key = (method.upper(), path.rstrip("/") or "/")
    if policies is None:
        return _POLICIES_BY_KEY.get(key)
    for policy in policies:
        if policy.key == key:
            return policy
    return None


def validate_route_policies(
    catalog: PermissionCatalog,
    policies: Iterable[RoutePolicy] = ROUTE_POLICIES,
) -> list[str]:
    """Every problem in the route table, empty when it is consistent with the catalog."""
    problems: list[str] = []
    seen: set[tuple[str, str]] = set()
    for policy in policies:
        label = f"{policy.method} {policy.path}"
        if policy.key in seen:
            problems.append(f"{label}: duplicate route policy")
        seen.add(policy.key)
        if policy.permission is not None and policy.permission not in catalog:
            problems.append(f"{label}: unknown permission group {policy.permission}")
        if policy.rule is not None and policy.rule not in KNOWN_RULES:
            problems.append(f"{label}: unknown rule {policy.rule}")
    return problems


def ensure_route_policies_valid(
    catalog: PermissionCatalog,
    policies: Iterable[RoutePolicy] = ROUTE_POLICIES,
) -> None:
    problems = validate_route_policies(catalog, policies)
    if problems:
        raise PermissionConfigurationError("Invalid route policies: " + "; ".join(problems))
