"""
Generate bills for one billing period outside the scheduler.

Usage:
    python -m billing_service.scripts.generate_bills_for_month [YYYY-MM] [--owner OWNER_ID]

Without a month the current month is generated. Re-running a period only
reports skips.
"""
import argparse
import asyncio
import logging
import sys
from uuid import UUID

from fastapi import HTTPException

from billing_service.app.crud.financials.bill_generation_service import generate_for_period
from billing_service.app.models import Bill  # noqa: F401
from shared.core.database import Base, billing_engine

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate the monthly bills of every ACTIVE lease for one period.")
    parser.add_argument("month", nargs="?", default=None,
                        help="billing period in YYYY-MM format (default: current month)")
    parser.add_argument("--owner", type=UUID, default=None,
                        help="only generate bills for this owner's properties")
    return parser.parse_args(argv)


def print_result(result):
    print("=" * 60)
    print(f"BILL GENERATION - {result.period}")
    print("=" * 60)
    print(f"Bill date:        {result.bill_date}")
    print(f"Due date:         {result.due_date}")
    print(f"Active leases:    {result.total_leases}")
    print(f"Bills generated:  {result.bills_generated}")
    print(f"Bills skipped:    {result.bills_skipped}")
    print(f"Errors:           {result.errors}")

    for detail in result.error_details:
        print(f"  - {detail.tenant_name or detail.tenant_id}: {detail.error}")


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s]: %(message)s"
    )
    args = parse_args(argv)

    Base.metadata.create_all(bind=billing_engine)

    try:
        result = asyncio.run(generate_for_period(args.month, owner_id=args.owner))
    except HTTPException as e:
        logger.error(e.detail.get("message") if isinstance(e.detail, dict) else e.detail)
        return 2

    print_result(result)
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
