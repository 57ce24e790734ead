"""
CSV Ingestion Pipeline — upload → validated PerformanceRows + a closed batch.

Flow for one upload:
  1. Campaign must exist; an ImportBatch is committed in `processing`.
  2. The file is decoded and parsed as a stream, one record at a time.
  3. Each record goes through the Row Validator, then the variant lookup
     (unknown variant / variant of another campaign are row errors).
  4. Accepted rows are bulk-inserted in chunks inside one transaction that
     commits after the whole file has been scanned.
  5. The batch is closed exactly once with counts, error log and status.

A file that cannot be parsed at all (bad encoding, broken quoting, missing
required columns) fails the batch with a single row-0 error and persists no rows.
"""
import csv
import io
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Iterator, List, Tuple, Union

from sqlalchemy import insert

from adloop.config import REQUIRED_CSV_COLUMNS, IMPORT_CHUNK_SIZE
from adloop.database import get_session
from adloop.errors import NotFoundError
from adloop.models.campaign import Campaign
from adloop.models.import_batch import ImportBatch, RowError, final_status
from adloop.models.performance_row import PerformanceRow
from adloop.models.variant import ContentVariant
from adloop.pipeline.validator import RowValidationError, ValidatedRow, validate_row
from adloop.services import ledger

logger = logging.getLogger('pipeline.ingestion')

# Spreadsheet numbering: the header is line 1, so the first data row is 2
FIRST_DATA_ROW = 2


class CsvFileError(Exception):
    """The upload as a whole is not a usable CSV."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass
class ImportResult:
    """Summary returned for every import, including failed ones."""
    batch_id: str
    filename: str
    status: str
    rows_total: int = 0
    rows_processed: int = 0
    rows_failed: int = 0
    errors: List[RowError] = field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: ImportBatch) -> 'ImportResult':
        return cls(
            batch_id=batch.id,
            filename=batch.filename,
            status=batch.status,
            rows_total=batch.rows_total,
            rows_processed=batch.rows_processed,
            rows_failed=batch.rows_failed,
            errors=batch.errors,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'batch_id': self.batch_id,
            'filename': self.filename,
            'status': self.status,
            'rows_total': self.rows_total,
            'rows_processed': self.rows_processed,
            'rows_failed': self.rows_failed,
            'errors': [e.to_dict() for e in self.errors],
        }


# ── CSV streaming ────────────────────────────────────────────────────────────

def iter_csv_records(data: Union[bytes, BinaryIO]) -> Iterator[Tuple[int, Dict[str, str]]]:
    """
    Yield (row_number, record) for every data row of a CSV stream.

    Header names are whitespace-trimmed. Blank lines are skipped and do not
    consume a row number. Raises CsvFileError when the stream is not a usable CSV.
    """
    if isinstance(data, (bytes, bytearray)):
        data = io.BytesIO(data)
    text = io.TextIOWrapper(data, encoding='utf-8-sig', newline='')
    try:
        reader = csv.DictReader(text, strict=True)
        try:
            header = reader.fieldnames
        except (csv.Error, UnicodeDecodeError) as e:
            raise CsvFileError('malformed_csv', f"CSV header could not be parsed: {e}")
        if header is None:
            return  # zero-byte upload

        header = [(name or '').strip() for name in header]
        reader.fieldnames = header
        missing = [name for name in REQUIRED_CSV_COLUMNS if name not in header]
        if missing:
            raise CsvFileError('missing_columns', f"CSV is missing required columns: {', '.join(missing)}")

        row_number = FIRST_DATA_ROW - 1
        while True:
            try:
                record = next(reader)
            except StopIteration:
                return
            except (csv.Error, UnicodeDecodeError) as e:
                raise CsvFileError(
                    'malformed_csv', f"CSV could not be parsed near line {reader.line_num}: {e}"
                )
            row_number += 1
            yield row_number, record
    finally:
        text.detach()


# ── Variant lookups ──────────────────────────────────────────────────────────

class VariantResolver:
    """
    Checks that a variant exists and belongs to the campaign being imported.

    The campaign's own variant ids are loaded once; any other id is looked up
    once and remembered, so repeated rows never hit the database twice.
    """

    def __init__(self, session, campaign_id: str):
        self.session = session
        self.campaign_id = campaign_id
        rows = session.query(ContentVariant.id).filter(ContentVariant.campaign_id == campaign_id)
        self._owners = {variant_id: campaign_id for (variant_id,) in rows}

    def check(self, variant_id: str):
        if variant_id not in self._owners:
            found = (
                self.session.query(ContentVariant.campaign_id)
                .filter(ContentVariant.id == variant_id)
                .first()
            )
            self._owners[variant_id] = found.campaign_id if found else None

        owner = self._owners[variant_id]
        if owner is None:
            raise RowValidationError('variant_not_found', f"Variant {variant_id} not found")
        if owner != self.campaign_id:
            raise RowValidationError(
                'cross_campaign_reference',
                f"Variant {variant_id} does not belong to campaign {self.campaign_id}",
            )


def _row_values(row: ValidatedRow, batch_id: str) -> Dict[str, Any]:
    return {
        'id': str(uuid.uuid4()),
        'import_batch_id': batch_id,
        'variant_id': row.variant_id,
        'impressions': row.impressions,
        'clicks': row.clicks,
        'conversions': row.conversions,
        'spend': row.spend,
        'revenue': row.revenue,
        'platform': row.platform,
        'locale': row.locale,
        'date_range_start': row.date_start,
        'date_range_end': row.date_end,
    }


def _flush(session, chunk: List[Dict[str, Any]]):
    if chunk:
        session.execute(insert(PerformanceRow), chunk)


# ── Public API ───────────────────────────────────────────────────────────────

def import_csv(
    campaign_id: str,
    filename: str,
    data: Union[bytes, BinaryIO],
    chunk_size: int = None,
) -> ImportResult:
    """
    Import one CSV of performance metrics into a campaign.

    Args:
        campaign_id: Campaign the rows are imported into.
        filename:    Original upload name, kept on the batch for auditing.
        data:        Raw bytes or a binary file object (read as a stream).
        chunk_size:  Accepted rows per bulk INSERT (default IMPORT_CHUNK_SIZE).

    Returns:
        ImportResult — always a full summary, also for failed imports.

    Raises:
        NotFoundError: the campaign does not exist (no batch is created).
    """
    chunk_size = chunk_size or IMPORT_CHUNK_SIZE

    session = get_session()
    try:
        if session.get(Campaign, campaign_id) is None:
            raise NotFoundError('Campaign')
    finally:
        session.close()

    batch = ledger.open_batch(campaign_id, filename)
    log_ctx = {'batch_id': batch.id, 'campaign_id': campaign_id}

    errors: List[RowError] = []
    rows_total = 0
    rows_processed = 0
    file_error = None

    session = get_session()
    try:
        resolver = VariantResolver(session, campaign_id)
        chunk: List[Dict[str, Any]] = []
        try:
            for row_number, record in iter_csv_records(data):
                rows_total += 1
                try:
                    row = validate_row(record)
                    resolver.check(row.variant_id)
                except RowValidationError as e:
                    errors.append(RowError(row=row_number, code=e.code, message=e.message))
                    continue

                chunk.append(_row_values(row, batch.id))
                rows_processed += 1
                if len(chunk) >= chunk_size:
                    _flush(session, chunk)
                    chunk = []
        except CsvFileError as e:
            file_error = e

        if file_error is None:
            _flush(session, chunk)
            session.commit()
        else:
            session.rollback()
    except Exception as e:
        session.rollback()
        logger.error("Import of %s aborted", filename, exc_info=True, extra=log_ctx)
        try:
            ledger.fail_batch(batch.id, f"Import aborted: {e}")
        except Exception:
            logger.error("Could not mark batch %s failed", batch.id, exc_info=True, extra=log_ctx)
        raise
    finally:
        session.close()

    if file_error is not None:
        logger.warning("Rejected %s: %s", filename, file_error.message, extra=log_ctx)
        closed = ledger.fail_batch(batch.id, file_error.message, file_error.code)
        return ImportResult.from_batch(closed)

    rows_failed = len(errors)
    closed = ledger.close_batch(
        batch.id,
        final_status(rows_processed, rows_failed),
        rows_total=rows_total,
        rows_processed=rows_processed,
        rows_failed=rows_failed,
        errors=errors,
    )
    return ImportResult.from_batch(closed)
