"""Check every balance against credited accruals and withdrawals; print JSON."""

import argparse
import json
import sys

from loyalty_gateway.config import Settings
from loyalty_gateway.infrastructure.database.session import build_engine, build_session_factory
from loyalty_gateway.workers.ledger_audit import audit_ledger


def main() -> int:
    """CLI entrypoint for ledger consistency checks."""

    parser = argparse.ArgumentParser(description="Audit loyalty balances against order and withdrawal history.")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URI")
    args = parser.parse_args()

    settings = Settings(database_url=args.database_url) if args.database_url else Settings()
    session_factory = build_session_factory(build_engine(settings))

    discrepancies = audit_ledger(session_factory)
    report = {
        "consistent": not discrepancies,
        "discrepancies": [
            {
                "owner_id": str(d.owner_id),
                "current": str(d.current),
                "expected_current": str(d.expected_current),
                "withdrawn": str(d.withdrawn),
                "expected_withdrawn": str(d.expected_withdrawn),
            }
            for d in discrepancies
        ],
    }
    print(json.dumps(report, indent=2))
    return 1 if discrepancies else 0


if __name__ == "__main__":
    sys.exit(main())
