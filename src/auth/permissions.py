from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Final, Iterable, Mapping

from src.auth.roles import Role, normalize_role, ordered_roles


class PermissionConfigurationError(RuntimeError):
    """The static role/permission configuration is broken. Server fault, never a user error."""


class UnknownPermissionGroupError(PermissionConfigurationError):
    def __init__(self, group_name: str) -> None:
        super().__init__(f"Invalid permission group: {group_name}")
        self.group_name = group_name


class PermissionGroup(str, Enum):
    ALL_USERS = "ALL_USERS"
    ADMINS = "ADMINS"
    MEDICAL_STAFF = "MEDICAL_STAFF"
    CLINICAL_ALL = "CLINICAL_ALL"
    PATIENT_ACCESS = "PATIENT_ACCESS"
    PATIENT_WRITE = "PATIENT_WRITE"
    OPD_ACCESS = "OPD_ACCESS"
    OPD_CONSULTATION = "OPD_CONSULTATION"
    IPD_ACCESS = "IPD_ACCESS"
    IPD_DISCHARGE = "IPD_DISCHARGE"
    PHARMACY_READ = "PHARMACY_READ"
    PHARMACY_MANAGE = "PHARMACY_MANAGE"
    PRESCRIPTION_CREATE = "PRESCRIPTION_CREATE"
    LAB_ORDER = "LAB_ORDER"
    LAB_PROCESS = "LAB_PROCESS"
    LAB_RESULTS = "LAB_RESULTS"
    RADIOLOGY_ORDER = "RADIOLOGY_ORDER"
    RADIOLOGY_PROCESS = "RADIOLOGY_PROCESS"
    BILLING_VIEW = "BILLING_VIEW"
    BILLING_MANAGE = "BILLING_MANAGE"
    BILLING_REPORTS = "BILLING_REPORTS"
    ORG_VIEW = "ORG_VIEW"
    ORG_MANAGE = "ORG_MANAGE"
    DASHBOARD_ACCESS = "DASHBOARD_ACCESS"
    FINANCIAL_REPORTS = "FINANCIAL_REPORTS"
    HR_MANAGEMENT = "HR_MANAGEMENT"
    MEDICAL_RECORDS_ACCESS = "MEDICAL_RECORDS_ACCESS"
    INVENTORY_MANAGE = "INVENTORY_MANAGE"
    DIETARY_MANAGE = "DIETARY_MANAGE"
    THERAPY_MANAGE = "THERAPY_MANAGE"


_SA: Final = Role.SUPER_ADMIN
_HA: Final = Role.HOSPITAL_ADMIN

# Every group lists its members directly. No inheritance, no wildcards.
DEFAULT_PERMISSION_GROUPS: Final[dict[str, tuple[Role, ...]]] = {
    PermissionGroup.ALL_USERS.value: tuple(Role),
    PermissionGroup.ADMINS.value: (_SA, _HA),
    PermissionGroup.MEDICAL_STAFF.value: (Role.DOCTOR, Role.NURSE),
    PermissionGroup.CLINICAL_ALL.value: (Role.DOCTOR, Role.NURSE, Role.LAB_TECHNICIAN, Role.RADIOLOGIST),
    PermissionGroup.PATIENT_ACCESS.value: (_SA, _HA, Role.DOCTOR, Role.NURSE, Role.RECEPTIONIST),
    PermissionGroup.PATIENT_WRITE.value: (_SA, _HA, Role.DOCTOR, Role.NURSE, Role.RECEPTIONIST),
    PermissionGroup.OPD_ACCESS.value: (_SA, _HA, Role.DOCTOR, Role.NURSE, Role.RECEPTIONIST),
    PermissionGroup.OPD_CONSULTATION.value: (_SA, _HA, Role.DOCTOR),
    PermissionGroup.IPD_ACCESS.value: (_SA, _HA, Role.DOCTOR, Role.NURSE),
    PermissionGroup.IPD_DISCHARGE.value: (_SA, _HA, Role.DOCTOR),
    PermissionGroup.PHARMACY_READ.value: (_SA, _HA, Role.DOCTOR, Role.PHARMACIST),
    PermissionGroup.PHARMACY_MANAGE.value: (_SA, _HA, Role.PHARMACIST),
    PermissionGroup.PRESCRIPTION_CREATE.value: (_SA, _HA, Role.DOCTOR),
    PermissionGroup.LAB_ORDER.value: (_SA, _HA, Role.DOCTOR, Role.NURSE),
    PermissionGroup.LAB_PROCESS.value: (_SA, _HA, Role.NURSE, Role.LAB_TECHNICIAN),
    PermissionGroup.LAB_RESULTS.value: (_SA, _HA, Role.LAB_TECHNICIAN),
    PermissionGroup.RADIOLOGY_ORDER.value: (_SA, _HA, Role.DOCTOR),
    PermissionGroup.RADIOLOGY_PROCESS.value: (_SA, _HA, Role.RADIOLOGIST),
    PermissionGroup.BILLING_VIEW.value: (
        _SA,
        _HA,
        Role.DOCTOR,
        Role.RECEPTIONIST,
        Role.BILLING,
        Role.ACCOUNTANT,
    ),
    PermissionGroup.BILLING_MANAGE.value: (_SA, _HA, Role.RECEPTIONIST, Role.BILLING),
    PermissionGroup.BILLING_REPORTS.value: (_SA, _HA, Role.BILLING, Role.ACCOUNTANT),
    PermissionGroup.ORG_VIEW.value: (_SA, _HA),
    PermissionGroup.ORG_MANAGE.value: (_SA,),
    PermissionGroup.DASHBOARD_ACCESS.value: (_SA, _HA, Role.DOCTOR),
    PermissionGroup.FINANCIAL_REPORTS.value: (_SA, _HA, Role.ACCOUNTANT),
    PermissionGroup.HR_MANAGEMENT.value: (_SA, _HA, Role.HR_MANAGER),
    PermissionGroup.MEDICAL_RECORDS_ACCESS.value: (
        _SA,
        _HA,
        Role.DOCTOR,
        Role.NURSE,
        Role.MEDICAL_RECORDS,
    ),
    PermissionGroup.INVENTORY_MANAGE.value: (_SA, _HA, Role.INVENTORY_MANAGER, Role.PHARMACIST),
    PermissionGroup.DIETARY_MANAGE.value: (_SA, _HA, Role.DIETITIAN, Role.DOCTOR),
    PermissionGroup.THERAPY_MANAGE.value: (_SA, _HA, Role.PHYSIOTHERAPIST, Role.DOCTOR),
}


def _group_key(group_name: PermissionGroup | str) -> str:
    if isinstance(group_name, PermissionGroup):
        return group_name.value
    return group_name


class PermissionCatalog:
    """
    Immutable mapping of permission-group name to the roles authorized for it.

    Built once at process start. Construction fails loudly on an empty group or
    an unknown role so a broken table never reaches request handling.
    """

    def __init__(self, groups: Mapping[str, Iterable[Role | str]]) -> None:
        resolved: dict[str, frozenset[Role]] = {}
        for name, members in groups.items():
            key = _group_key(name)
            try:
                roles = frozenset(normalize_role(member) for member in members)
            except ValueError as exc:
                raise PermissionConfigurationError(f"Permission group {key}: {exc}") from exc
            if not roles:
                raise PermissionConfigurationError(f"Permission group {key} has no roles")
            resolved[key] = roles
        self._groups: Mapping[str, frozenset[Role]] = MappingProxyType(resolved)

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, group_name: object) -> bool:
        if not isinstance(group_name, str):
            return False
        return _group_key(group_name) in self._groups

    def resolve(self, group_name: PermissionGroup | str) -> frozenset[Role]:
        key = _group_key(group_name)
        roles = self._groups.get(key)
        if roles is None:
            raise UnknownPermissionGroupError(key)
        return roles

    def ordered_roles(self, group_name: PermissionGroup | str) -> list[Role]:
        return ordered_roles(self.resolve(group_name))

    def group_names(self) -> list[str]:
        return list(self._groups)

    def groups_for_role(self, role: Role | str) -> list[str]:
        normalized = normalize_role(role)
        return [name for name, roles in self._groups.items() if normalized in roles]

    def as_dict(self) -> dict[str, list[str]]:
        return {name: [role.value for role in ordered_roles(roles)] for name, roles in self._groups.items()}


default_catalog: Final[PermissionCatalog] = PermissionCatalog(DEFAULT_PERMISSION_GROUPS)
