"""Recompute and cache Trust Flow for every user who has received pushes.

Walks the pushed users page by page (most-pushed first) and recomputes each
one in its own transaction, the same way POST /api/v1/admin/trust-flow/backfill
does for a single page.

Usage:
    cd api
    DATABASE_URL="postgresql+asyncpg://..." uv run python -m scripts.backfill_trust_flow

    # Smaller pages, stop after two of them:
    uv run python -m scripts.backfill_trust_flow --batch-size 100 --max-pages 2
"""
import argparse
import asyncio
import sys
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Support running from both project root and api/ directory
_api_root = Path(__file__).parent.parent  # api/
if str(_api_root) not in sys.path:
    sys.path.insert(0, str(_api_root))

from trustflow.config import settings
from trustflow.logging_config import configure_logging
from trustflow.services.backfill import backfill_trust_flow


async def run_backfill(batch_size: int, max_pages: int | None) -> int:
    """Backfill every page and return the number of users that failed."""
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    processed = changed = failed = 0
    offset = 0
    pages = 0
    try:
        while max_pages is None or pages < max_pages:
            entries = await backfill_trust_flow(
                session_factory, limit=batch_size, offset=offset, calculated_by="script"
            )
            if not entries:
                break
            processed += len(entries)
            changed += sum(1 for e in entries if e.changed)
            failed += sum(1 for e in entries if e.error)
            for entry in entries:
                if entry.error:
                    print(f"  {entry.user_id}: FAILED ({entry.error})", file=sys.stderr)
            offset += len(entries)
            pages += 1
            if len(entries) < batch_size:
                break
    finally:
        await engine.dispose()

    print(f"Backfill complete: {processed} processed, {changed} changed, {failed} failed")
    return failed


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recompute Trust Flow for every user who has received pushes"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.backfill_max_batch,
        help=f"Users per page (default: {settings.backfill_max_batch})",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Stop after this many pages (default: run until every user is done)",
    )
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    configure_logging()
    failures = asyncio.run(run_backfill(args.batch_size, args.max_pages))
    sys.exit(1 if failures else 0)
