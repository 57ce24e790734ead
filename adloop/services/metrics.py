"""
Metrics Aggregation Engine — per-variant totals and derived ratios.

Totals are summed in the database (LEFT JOIN so variants without rows still
appear with zeros); the ratios are derived here with explicit zero guards:

    ctr  = clicks * 100 / impressions   (0 when impressions == 0)
    cpa  = spend / conversions          (None when conversions == 0)
    roas = revenue / spend              (None when spend == 0)

Nothing is cached: every call reflects the rows that exist at query time.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func

from adloop.config import PLATFORMS, LOCALES
from adloop.database import get_session
from adloop.errors import NotFoundError, ValidationError
from adloop.models.campaign import Campaign
from adloop.models.performance_row import PerformanceRow
from adloop.models.variant import ContentVariant

logger = logging.getLogger('services.metrics')

TWO_PLACES = Decimal('0.01')


@dataclass
class AggregatedMetrics:
    variant_id: str
    hook: str
    is_winner: bool
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    spend: Decimal = Decimal('0.00')
    revenue: Decimal = Decimal('0.00')
    ctr: float = 0.0
    cpa: Optional[float] = None
    roas: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variant_id': self.variant_id,
            'hook': self.hook,
            'is_winner': self.is_winner,
            'impressions': self.impressions,
            'clicks': self.clicks,
            'conversions': self.conversions,
            'spend': float(self.spend),
            'revenue': float(self.revenue),
            'ctr': self.ctr,
            'cpa': self.cpa,
            'roas': self.roas,
        }


def derive_ratios(
    impressions: int,
    clicks: int,
    conversions: int,
    spend: Decimal,
    revenue: Decimal,
) -> Tuple[float, Optional[float], Optional[float]]:
    """Return (ctr, cpa, roas). CTR of an unshown variant is 0; CPA/ROAS without a denominator are None."""
    ctr = float(Decimal(clicks) * 100 / Decimal(impressions)) if impressions > 0 else 0.0
    cpa = float(spend / Decimal(conversions)) if conversions > 0 else None
    roas = float(revenue / spend) if spend > 0 else None
    return ctr, cpa, roas


def _as_decimal(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(TWO_PLACES)


def _check_filter(name, value, choices):
    if value is not None and value not in choices:
        raise ValidationError(f"{name} must be one of: {', '.join(choices)}")


def aggregate(
    campaign_id: str,
    platform: Optional[str] = None,
    locale: Optional[str] = None,
) -> List[AggregatedMetrics]:
    """
    One AggregatedMetrics per variant of the campaign, summed over every batch.

    platform / locale narrow which rows are summed; every variant is still
    listed. Ordered by impressions (desc), then variant creation order.
    """
    _check_filter('platform', platform, PLATFORMS)
    _check_filter('locale', locale, LOCALES)

    session = get_session()
    try:
        if session.get(Campaign, campaign_id) is None:
            raise NotFoundError('Campaign')

        join_on = PerformanceRow.variant_id == ContentVariant.id
        if platform:
            join_on = and_(join_on, PerformanceRow.platform == platform)
        if locale:
            join_on = and_(join_on, PerformanceRow.locale == locale)

        impressions = func.coalesce(func.sum(PerformanceRow.impressions), 0)
        rows = (
            session.query(
                ContentVariant.id,
                ContentVariant.hook,
                ContentVariant.is_winner,
                impressions.label('impressions'),
                func.coalesce(func.sum(PerformanceRow.clicks), 0).label('clicks'),
                func.coalesce(func.sum(PerformanceRow.conversions), 0).label('conversions'),
                func.coalesce(func.sum(PerformanceRow.spend), 0).label('spend'),
                func.coalesce(func.sum(PerformanceRow.revenue), 0).label('revenue'),
            )
            .outerjoin(PerformanceRow, join_on)
            .filter(ContentVariant.campaign_id == campaign_id)
            .group_by(ContentVariant.id, ContentVariant.hook, ContentVariant.is_winner,
                      ContentVariant.created_at)
            .order_by(impressions.desc(), ContentVariant.created_at, ContentVariant.id)
            .all()
        )
    finally:
        session.close()

    results = []
    for r in rows:
        spend = _as_decimal(r.spend)
        revenue = _as_decimal(r.revenue)
        ctr, cpa, roas = derive_ratios(int(r.impressions), int(r.clicks), int(r.conversions), spend, revenue)
        results.append(AggregatedMetrics(
            variant_id=r.id,
            hook=r.hook,
            is_winner=bool(r.is_winner),
            impressions=int(r.impressions),
            clicks=int(r.clicks),
            conversions=int(r.conversions),
            spend=spend,
            revenue=revenue,
            ctr=ctr,
            cpa=cpa,
            roas=roas,
        ))

    logger.debug("Aggregated %d variants", len(results), extra={'campaign_id': campaign_id})
    return results


def has_performance_data(campaign_id: str) -> bool:
    """True if any PerformanceRow exists for a variant of this campaign."""
    session = get_session()
    try:
        row = (
            session.query(PerformanceRow.id)
            .join(ContentVariant, PerformanceRow.variant_id == ContentVariant.id)
            .filter(ContentVariant.campaign_id == campaign_id)
            .first()
        )
        return row is not None
    finally:
        session.close()
