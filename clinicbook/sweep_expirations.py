"""Run the subscription expiry sweep once.

Usage:
    python -m clinicbook.sweep_expirations

Meant to be triggered periodically (cron, a scheduler job, ...). Re-running it
is harmless.
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from clinicbook.database import SessionLocal
from clinicbook.services.entitlement import EntitlementEngine

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        summary = EntitlementEngine(db).sweep_expirations()
    except SQLAlchemyError:
        logger.exception('Expiration sweep failed. Check DATABASE_URL and Postgres credentials.')
        sys.exit(1)
    finally:
        db.close()

    print(f"moved_to_grace={len(summary.moved_to_grace)} expired={len(summary.expired)}")


if __name__ == "__main__":
    main()
