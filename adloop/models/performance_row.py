"""
PerformanceRow model — one accepted CSV row, immutable once stored.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Text, Integer, BigInteger, Numeric, Date, DateTime, ForeignKey

from adloop.database import Base


class PerformanceRow(Base):
    __tablename__ = 'performance_rows'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    import_batch_id = Column(Text, ForeignKey('import_batches.id'), nullable=False, index=True)
    variant_id = Column(Text, ForeignKey('content_variants.id'), nullable=False, index=True)
    impressions = Column(BigInteger, nullable=False, default=0)
    clicks = Column(BigInteger, nullable=False, default=0)
    conversions = Column(Integer, nullable=False, default=0)
    spend = Column(Numeric(14, 2), nullable=False, default=0)
    revenue = Column(Numeric(14, 2), nullable=False, default=0)
    platform = Column(Text, nullable=True)
    locale = Column(Text, nullable=True)
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
