#!/usr/bin/env python3
"""
Retry remote deletions that failed while videos were being deleted or updated.

Every asset the media host could not delete is recorded in the
``orphaned_assets`` table. This script walks those rows, asks the media host
to delete each asset again, and removes the row once the asset is gone.
Rows that fail again have their ``attempts`` counter incremented.

Usage:
    # Preview what would be retried
    python scripts/reconcile_assets.py --dry-run

    # Retry every orphaned asset
    python scripts/reconcile_assets.py

    # Skip assets that already failed 5 times
    python scripts/reconcile_assets.py --max-attempts 5
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Any, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy.orm import Session

from app.database import SessionLocal, check_database_connection
from app.exceptions import MediaStoreException
from app.models.orphaned_asset import OrphanedAsset
from app.services.media_store import MediaStore, get_media_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def reconcile_orphan(
    orphan: OrphanedAsset,
    session: Session,
    media_store: MediaStore,
    dry_run: bool = False
) -> Dict[str, Any]:
    """
    Retry the deletion of one orphaned asset.

    An asset the media host no longer knows about counts as deleted.

    Returns:
        Dictionary with the result:
        - status: 'deleted', 'skipped' or 'failed'
        - public_id: Asset public id
        - message: Description of what happened
    """
    if dry_run:
        logger.info(
            f"[DRY RUN] Would delete {orphan.resource_type} asset {orphan.public_id} "
            f"(attempts so far: {orphan.attempts})"
        )
        return {
            'status': 'skipped',
            'public_id': orphan.public_id,
            'message': 'Dry run',
            'dry_run': True
        }

    try:
        found = media_store.delete(orphan.public_id, resource_type=orphan.resource_type)
    except MediaStoreException as e:
        orphan.attempts += 1
        orphan.reason = e.message
        session.commit()
        logger.warning(
            f"Deletion of {orphan.public_id} failed again: {e.message}",
            extra={"public_id": orphan.public_id, "attempts": orphan.attempts}
        )
        return {
            'status': 'failed',
            'public_id': orphan.public_id,
            'message': 'Deletion failed',
            'error': e.message
        }

    session.delete(orphan)
    session.commit()
    message = 'Deleted' if found else 'Already gone from media host'
    logger.info(f"{message}: {orphan.public_id}")
    return {
        'status': 'deleted',
        'public_id': orphan.public_id,
        'message': message
    }


def reconcile_all(
    session: Session,
    media_store: MediaStore,
    dry_run: bool = False,
    max_attempts: Optional[int] = None
) -> Dict[str, Any]:
    """
    Retry every orphaned asset, optionally skipping ones that failed too often.

    Returns:
        Dictionary with counts (total, deleted, skipped, failed) and the
        individual results.
    """
    query = session.query(OrphanedAsset).order_by(OrphanedAsset.created_at.asc(), OrphanedAsset.id.asc())
    if max_attempts is not None:
        query = query.filter(OrphanedAsset.attempts < max_attempts)
    orphans = query.all()

    logger.info(f"Found {len(orphans)} orphaned assets to reconcile")

    results = [reconcile_orphan(orphan, session, media_store, dry_run) for orphan in orphans]
    summary = {
        'total': len(orphans),
        'deleted': sum(1 for result in results if result['status'] == 'deleted'),
        'skipped': sum(1 for result in results if result['status'] == 'skipped'),
        'failed': sum(1 for result in results if result['status'] == 'failed'),
        'results': results
    }

    logger.info("=" * 80)
    logger.info("Reconciliation Summary:")
    logger.info(f"  Orphaned assets: {summary['total']}")
    logger.info(f"  Deleted: {summary['deleted']}")
    logger.info(f"  Skipped: {summary['skipped']}")
    logger.info(f"  Failed: {summary['failed']}")
    if dry_run:
        logger.info("[DRY RUN] No changes were made")
    logger.info("=" * 80)

    return summary


def main():
    """Main entry point for the reconciliation script."""
    parser = argparse.ArgumentParser(
        description='Retry deletion of media host assets left behind by failed deletions'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List the assets that would be retried without deleting anything'
    )
    parser.add_argument(
        '--max-attempts',
        type=int,
        help='Skip assets that have already failed this many times'
    )
    args = parser.parse_args()

    logger.info("Checking database connection...")
    if not check_database_connection():
        logger.error("Database connection failed. Please check your configuration.")
        sys.exit(1)

    session = SessionLocal()

    try:
        summary = reconcile_all(session, get_media_store(), args.dry_run, args.max_attempts)
        if summary['failed'] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        logger.warning("Reconciliation interrupted by user")
        sys.exit(130)

    except Exception as e:
        logger.error(f"Reconciliation failed with error: {e}", exc_info=True)
        sys.exit(1)

    finally:
        session.close()
        logger.info("Database session closed")


if __name__ == '__main__':
    main()
