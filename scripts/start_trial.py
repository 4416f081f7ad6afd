"""Start the free trial for a newly created organization.

Usage:
    DATABASE_URL=... uv run python scripts/start_trial.py <organization_id> [days]
"""

from __future__ import annotations

import os
import sys

from subsync.domain.locator import OrganizationNotFoundError
from subsync.domain.reconcile import TRIAL_PERIOD_DAYS, start_trial
from subsync.infra.repositories.organizations_repository import PostgresOrganizationStore


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: uv run python scripts/start_trial.py <organization_id> [days]")
        sys.exit(2)

    if not os.environ.get("DATABASE_URL"):
        print("ERROR: DATABASE_URL not set")
        sys.exit(1)

    organization_id = sys.argv[1]
    days = int(sys.argv[2]) if len(sys.argv) > 2 else TRIAL_PERIOD_DAYS

    try:
        trial_end = start_trial(PostgresOrganizationStore(), organization_id, days=days)
    except OrganizationNotFoundError:
        print(f"ERROR: organization {organization_id} not found")
        sys.exit(1)

    print(f"Trial started for {organization_id}, ends {trial_end}")


if __name__ == "__main__":
    main()
