"""
Import Batch Ledger — persistence and queries for ImportBatch records.

open_batch() commits the `processing` row before any parsing starts, so an
import that dies midway still leaves an auditable record. close_batch() and
fail_batch() perform the single terminal transition.
"""
import logging
from typing import Iterable, List, Optional

from adloop.database import get_session
from adloop.errors import NotFoundError
from adloop.models.campaign import Campaign
from adloop.models.import_batch import ImportBatch, RowError, FAILED

logger = logging.getLogger('services.ledger')


def open_batch(campaign_id: str, filename: str) -> ImportBatch:
    """INSERT a new batch in `processing` state and return it (detached)."""
    session = get_session()
    try:
        batch = ImportBatch(campaign_id=campaign_id, filename=filename)
        session.add(batch)
        session.commit()
        logger.info("Opened import batch %s for %s", batch.id, filename,
                    extra={'batch_id': batch.id, 'campaign_id': campaign_id})
        return batch
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_batch(
    batch_id: str,
    status: str,
    rows_total: int,
    rows_processed: int,
    rows_failed: int,
    errors: Optional[Iterable[RowError]] = None,
) -> ImportBatch:
    """Record the terminal outcome of a batch. Raises BatchStateError if already closed."""
    session = get_session()
    try:
        batch = session.get(ImportBatch, batch_id)
        if batch is None:
            raise NotFoundError('Import batch')
        batch.finish(
            status,
            rows_total=rows_total,
            rows_processed=rows_processed,
            rows_failed=rows_failed,
            errors=errors,
        )
        session.commit()
        logger.info(
            "Import batch %s %s: %d/%d rows accepted, %d failed",
            batch_id, status, rows_processed, rows_total, rows_failed,
            extra={'batch_id': batch_id, 'campaign_id': batch.campaign_id},
        )
        return batch
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def fail_batch(batch_id: str, message: str, code: str = 'import_failed') -> ImportBatch:
    """File-level failure: no rows counted, one synthetic row-0 error."""
    return close_batch(
        batch_id, FAILED,
        rows_total=0, rows_processed=0, rows_failed=0,
        errors=[RowError(row=0, code=code, message=message)],
    )


def get_batch(batch_id: str) -> ImportBatch:
    session = get_session()
    try:
        batch = session.get(ImportBatch, batch_id)
        if batch is None:
            raise NotFoundError('Import batch')
        return batch
    finally:
        session.close()


def list_batches(campaign_id: str) -> List[ImportBatch]:
    """All batches for a campaign, most recent first."""
    session = get_session()
    try:
        if session.get(Campaign, campaign_id) is None:
            raise NotFoundError('Campaign')
        return (
            session.query(ImportBatch)
            .filter(ImportBatch.campaign_id == campaign_id)
            .order_by(ImportBatch.created_at.desc(), ImportBatch.id.desc())
            .all()
        )
    finally:
        session.close()
