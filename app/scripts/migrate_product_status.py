# One-shot conversion of legacy product statuses.
#   python -m app.scripts.migrate_product_status            # run
#   python -m app.scripts.migrate_product_status --status   # report only
import asyncio
import sys

from app.core.db import AsyncSessionLocal
from app.core.logging import setup_logging
from app.services.migration.product_status_migration_service import (
    migration_status,
    run_migration,
)


async def main(report_only: bool) -> int:
    async with AsyncSessionLocal() as session:
        if report_only:
            status = await migration_status(session)
            print(
                f"{status.migrated}/{status.total} products migrated "
                f"({status.percent_complete}%), {status.needs_migration} remaining"
            )
            return 0

        result = await run_migration(session)
        print(
            f"total={result.total} migrated={result.migrated} "
            f"already_migrated={result.already_migrated} failed={result.failed}"
        )
        for error in result.errors:
            print(f"  product {error.product_id} ({error.legacy_status!r}): {error.error_code}")
        return 1 if result.failed else 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main("--status" in sys.argv[1:])))
