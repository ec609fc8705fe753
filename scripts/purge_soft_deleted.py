#!/usr/bin/env python3
"""
Script to permanently delete soft-deleted CRM records.

Records marked isDeleted with a deletedAt older than the retention window are
removed from every CRM collection. This action cannot be undone.

Usage:
    python scripts/purge_soft_deleted.py [--confirm] [--older-than-days N] [--collections a,b]

    Without --confirm flag, the script will run in dry-run mode and show what would be deleted.
    With --confirm flag, the script will actually delete the records.
"""

import sys
import argparse
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional

# Add parent directory to path to import config
sys.path.append(str(Path(__file__).parent.parent))

from google.cloud.firestore import FieldFilter
from config import get_firestore_client
from services.collections import CRM_COLLECTIONS, DELETED_AT, IS_DELETED
import logging

logger = logging.getLogger(__name__)

# Firestore batch limit
MAX_BATCH_SIZE = 500


def purge_collection(db, collection_name: str, cutoff: datetime, dry_run: bool = True) -> int:
    """Delete documents soft-deleted before cutoff; returns how many matched"""
    query = (
        db.collection(collection_name)
        .where(filter=FieldFilter(IS_DELETED, "==", True))
        .where(filter=FieldFilter(DELETED_AT, "<", cutoff))
    )
    deleted_count = 0

    try:
        if dry_run:
            deleted_count = sum(1 for _ in query.stream())
            logger.info(f"  [DRY RUN] Would delete {deleted_count} documents from '{collection_name}'")
            return deleted_count

        batch = db.batch()
        batch_count = 0
        for doc in query.stream():
            batch.delete(doc.reference)
            batch_count += 1
            deleted_count += 1

            if batch_count >= MAX_BATCH_SIZE:
                batch.commit()
                logger.info(f"  Deleted batch of {batch_count} documents from '{collection_name}' (total: {deleted_count})")
                batch = db.batch()
                batch_count = 0

        if batch_count > 0:
            batch.commit()
            logger.info(f"  Deleted final batch of {batch_count} documents from '{collection_name}'")

        logger.info(f"  ✅ Deleted {deleted_count} documents from '{collection_name}'")
    except Exception as e:
        logger.error(f"  ❌ Error purging '{collection_name}': {e}")
        raise

    return deleted_count


def purge_soft_deleted(db, older_than_days: int = 30, collections: Optional[Iterable[str]] = None,
                       dry_run: bool = True, now: Optional[datetime] = None) -> Dict[str, int]:
    """Purge every collection and return the per-collection counts"""
    if older_than_days < 0:
        raise ValueError("older_than_days must not be negative")
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=older_than_days)
    logger.info(f"Purging records soft-deleted before {cutoff.isoformat()}")

    return {
        name: purge_collection(db, name, cutoff, dry_run=dry_run)
        for name in (collections or CRM_COLLECTIONS)
    }


def main():
    parser = argparse.ArgumentParser(
        description='Permanently delete soft-deleted records from the CRM collections',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dry run (safe, shows what would be deleted):
  python scripts/purge_soft_deleted.py

  # Delete records soft-deleted more than 90 days ago:
  python scripts/purge_soft_deleted.py --confirm --older-than-days 90
        """
    )
    parser.add_argument(
        '--confirm',
        action='store_true',
        help='Actually delete the data (without this flag, runs in dry-run mode)'
    )
    parser.add_argument(
        '--older-than-days',
        type=int,
        default=30,
        help='Only purge records soft-deleted at least this many days ago (default: 30)'
    )
    parser.add_argument(
        '--collections',
        type=str,
        default=None,
        help=f'Comma-separated collections to purge (default: {",".join(CRM_COLLECTIONS)})'
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    dry_run = not args.confirm
    collections = [c.strip() for c in args.collections.split(",") if c.strip()] if args.collections else None
    unknown = sorted(set(collections or []) - set(CRM_COLLECTIONS))
    if unknown:
        parser.error(f"Unknown collections: {', '.join(unknown)}")

    if dry_run:
        logger.warning("=" * 70)
        logger.warning("⚠️  DRY RUN MODE - No data will be deleted")
        logger.warning("=" * 70)

    try:
        db = get_firestore_client()
        counts = purge_soft_deleted(db, args.older_than_days, collections, dry_run=dry_run)
    except Exception as e:
        logger.error(f"❌ Fatal error: {e}")
        sys.exit(1)

    total = sum(counts.values())
    logger.info("\n" + "=" * 70)
    if dry_run:
        logger.info(f"DRY RUN SUMMARY - {total} documents would be deleted")
        logger.info("To actually delete the data, run:")
        logger.info("  python scripts/purge_soft_deleted.py --confirm")
    else:
        logger.info(f"✅ PURGE COMPLETE - {total} documents deleted")
    logger.info("=" * 70)


if __name__ == "__main__":
    main()
