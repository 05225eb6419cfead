#!/usr/bin/env python3
"""
Validate the permission catalog and the route policy table.

Prints the permission groups each role belongs to, then every route policy
problem found. Exits 1 when any problem is reported.
Run from project root: python scripts/check_access_config.py
"""

import sys
import os

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

# Load .env file
from dotenv import load_dotenv
load_dotenv(os.path.join(project_root, ".env"))

from src.auth.permissions import default_catalog
from src.auth.roles import Role
from src.auth.route_policies import ROUTE_POLICIES, validate_route_policies


def main():
    print(f"{len(default_catalog)} permission groups, {len(ROUTE_POLICIES)} route policies")
    for role in Role:
        groups = default_catalog.groups_for_role(role)
        print(f"  {role.value}: {len(groups)} groups")

    problems = validate_route_policies(default_catalog, ROUTE_POLICIES)
    if problems:
        print("Invalid access configuration:")
        for problem in problems:
            print(f"  {problem}")
        sys.exit(1)

    print("Access configuration OK")


if __name__ == "__main__":
    main()
