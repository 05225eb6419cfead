from __future__ import annotations

from enum import Enum
from typing import Any, Final


class Role(str, Enum):
    """Job-function tags carried by a principal. Values are the wire names."""

    SUPER_ADMIN = "SuperAdmin"
    HOSPITAL_ADMIN = "HospitalAdmin"
    DOCTOR = "Doctor"
    NURSE = "Nurse"
    RECEPTIONIST = "Receptionist"
    PHARMACIST = "Pharmacist"
    LAB_TECHNICIAN = "LabTechnician"
    RADIOLOGIST = "Radiologist"
    BILLING = "Billing"
    # Extended roles
    ACCOUNTANT = "Accountant"
    HR_MANAGER = "HRManager"
    MEDICAL_RECORDS = "MedicalRecords"
    INVENTORY_MANAGER = "InventoryManager"
    DIETITIAN = "Dietitian"
    PHYSIOTHERAPIST = "Physiotherapist"


SUPER_TIER_ROLES: Final[frozenset[Role]] = frozenset({Role.SUPER_ADMIN})
ADMIN_TIER_ROLES: Final[frozenset[Role]] = frozenset({Role.SUPER_ADMIN, Role.HOSPITAL_ADMIN})

# Roles that act across every organization and never carry a home tenant.
ORGANIZATION_AGNOSTIC_ROLES: Final[frozenset[Role]] = frozenset({Role.SUPER_ADMIN})

_ROLES_BY_VALUE: Final[dict[str, Role]] = {role.value: role for role in Role}


def is_known_role(value: Any) -> bool:
    if isinstance(value, Role):
        return True
    if not isinstance(value, str):
        return False
    return value.strip() in _ROLES_BY_VALUE


def normalize_role(value: Role | str) -> Role:
    if isinstance(value, Role):
        return value
    raw = (value or "").strip() if isinstance(value, str) else ""
    role = _ROLES_BY_VALUE.get(raw)
    if role is None:
        raise ValueError(f"Unsupported role: {value}")
    return role


def ordered_roles(roles: frozenset[Role] | set[Role]) -> list[Role]:
    """Roles in declaration order, for stable diagnostics."""
    return [role for role in Role if role in roles]
