import argparse
import logging
import sys

from erp.core.logging import setup_logging
from erp.database import SessionLocal, init_db
from erp.services.inventory_service import ledger_product_ids, verify_movement_chain

logger = logging.getLogger("verify_ledger")


def parse_args():
    parser = argparse.ArgumentParser(
        description="Check that every inventory record matches its movement ledger."
    )
    parser.add_argument(
        "--product-id",
        type=int,
        default=None,
        help="Verify a single product instead of all of them.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run.",
    )
    return parser.parse_args()


def run(db, product_id=None) -> int:
    product_ids = [product_id] if product_id is not None else ledger_product_ids(db)
    failures = 0
    for pid in product_ids:
        issues = verify_movement_chain(db, pid)
        if issues:
            failures += 1
            for issue in issues:
                print(f"product {pid}: {issue}")
    print(f"Checked {len(product_ids)} product(s), {failures} inconsistent.")
    return failures


def main():
    args = parse_args()
    setup_logging(args.log_level)
    init_db()

    db = SessionLocal()
    try:
        failures = run(db, args.product_id)
    finally:
        db.close()

    if failures:
        logger.error("Ledger verification failed for %s product(s)", failures)
        sys.exit(1)


if __name__ == "__main__":
    main()
