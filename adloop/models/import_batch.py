"""
ImportBatch model — one CSV upload and its outcome.

State machine:
    processing → completed | partial | failed

The terminal transition happens exactly once (finish()); after that the row
is frozen. error_log holds RowError dicts in input order.
"""
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Any

from sqlalchemy import Column, Text, Integer, DateTime, JSON, ForeignKey

from adloop.database import Base
from adloop.errors import BatchStateError

PROCESSING = 'processing'
COMPLETED = 'completed'
PARTIAL = 'partial'
FAILED = 'failed'

TERMINAL_STATUSES = (COMPLETED, PARTIAL, FAILED)


def _utcnow():
    return datetime.now(timezone.utc)


@dataclass
class RowError:
    """One rejected CSV row. row is the spreadsheet line number (0 = whole file)."""
    row: int
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'RowError':
        return cls(row=int(d.get('row', 0)), code=d.get('code', ''), message=d.get('message', ''))


def final_status(rows_processed: int, rows_failed: int) -> str:
    """Terminal status from the accepted/rejected tallies of a fully scanned file."""
    if rows_failed == 0:
        return COMPLETED
    if rows_processed == 0:
        return FAILED
    return PARTIAL


class ImportBatch(Base):
    __tablename__ = 'import_batches'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(Text, ForeignKey('campaigns.id'), nullable=False, index=True)
    filename = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=PROCESSING)
    rows_total = Column(Integer, nullable=False, default=0)
    rows_processed = Column(Integer, nullable=False, default=0)
    rows_failed = Column(Integer, nullable=False, default=0)
    error_log = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def errors(self) -> List[RowError]:
        return [RowError.from_dict(e) for e in (self.error_log or [])]

    def finish(
        self,
        status: str,
        rows_total: int = 0,
        rows_processed: int = 0,
        rows_failed: int = 0,
        errors: Optional[Iterable[RowError]] = None,
    ):
        """Move processing → terminal. Raises BatchStateError on any other transition."""
        if status not in TERMINAL_STATUSES:
            raise BatchStateError(f"'{status}' is not a terminal import status")
        if self.status != PROCESSING:
            raise BatchStateError(
                f"Import batch {self.id} is already '{self.status}' and cannot become '{status}'"
            )
        self.status = status
        self.rows_total = rows_total
        self.rows_processed = rows_processed
        self.rows_failed = rows_failed
        self.error_log = [e.to_dict() for e in (errors or [])]
        self.completed_at = _utcnow()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'filename': self.filename,
            'status': self.status,
            'rows_total': self.rows_total,
            'rows_processed': self.rows_processed,
            'rows_failed': self.rows_failed,
            'errors': list(self.error_log or []),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
