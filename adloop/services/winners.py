"""
Winner Selector — rank variants by one metric and flag the top N.

Steps:
  1. Aggregate the campaign (Metrics Aggregation Engine).
  2. Stable descending sort by the chosen metric; a null ROAS ranks as 0.
  3. Flag the top N as winners and commit. Flags are never revoked here.
  4. Ask the content generator what the winners have in common.

A campaign with no imported rows short-circuits before any flag is set and
before the generator is called.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from adloop.config import WINNER_METRICS, DEFAULT_TOP_N, DEFAULT_WINNER_METRIC, MAX_TOP_N
from adloop.database import get_session
from adloop.errors import AppError, GeneratorError, ValidationError
from adloop.models.variant import ContentVariant
from adloop.services import metrics as metrics_service
from adloop.services.content_generator import ContentGenerator, get_content_generator

logger = logging.getLogger('services.winners')

NO_DATA_RECOMMENDATION = 'No performance data available. Import CSV data first.'


@dataclass
class WinnerAnalysis:
    top_performers: List[Dict[str, Any]] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'top_performers': self.top_performers,
            'patterns': self.patterns,
            'recommendations': self.recommendations,
        }


def check_bound(name: str, value: int, upper: int):
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= upper:
        raise ValidationError(f"{name} must be an integer between 1 and {upper}")


def metric_score(entry: metrics_service.AggregatedMetrics, metric: str) -> float:
    """Ranking value of one aggregate. Missing ratios count as 0."""
    value = getattr(entry, metric)
    return float(value) if value is not None else 0.0


def rank(entries: List[metrics_service.AggregatedMetrics], metric: str) -> List[metrics_service.AggregatedMetrics]:
    """Descending by metric; ties keep aggregation order (sorted() is stable)."""
    return sorted(entries, key=lambda e: metric_score(e, metric), reverse=True)


def mark_winners(variant_ids: List[str]):
    """Set is_winner on the given variants and commit."""
    if not variant_ids:
        return
    session = get_session()
    try:
        (
            session.query(ContentVariant)
            .filter(ContentVariant.id.in_(variant_ids))
            .update({ContentVariant.is_winner: True}, synchronize_session=False)
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _load_contents(variant_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    session = get_session()
    try:
        variants = session.query(ContentVariant).filter(ContentVariant.id.in_(variant_ids)).all()
        return {v.id: v.content() for v in variants}
    finally:
        session.close()


def select_winners(
    campaign_id: str,
    top_n: int = DEFAULT_TOP_N,
    metric: str = DEFAULT_WINNER_METRIC,
    generator: Optional[ContentGenerator] = None,
) -> WinnerAnalysis:
    """
    Identify and flag the campaign's top N variants by `metric`.

    Raises:
        ValidationError: unknown metric or top_n outside 1..MAX_TOP_N.
        NotFoundError:   unknown campaign.
        GeneratorError:  pattern analysis failed (winner flags stay set).
    """
    if metric not in WINNER_METRICS:
        raise ValidationError(f"metric must be one of: {', '.join(WINNER_METRICS)}")
    check_bound('topN', top_n, MAX_TOP_N)

    log_ctx = {'campaign_id': campaign_id, 'metric': metric}
    aggregated = metrics_service.aggregate(campaign_id)

    if not metrics_service.has_performance_data(campaign_id):
        logger.info("No performance data, skipping winner selection", extra=log_ctx)
        return WinnerAnalysis(recommendations=[NO_DATA_RECOMMENDATION])

    top = rank(aggregated, metric)[:top_n]
    winner_ids = [entry.variant_id for entry in top]
    mark_winners(winner_ids)
    logger.info("Flagged %d winner(s) by %s", len(winner_ids), metric, extra=log_ctx)

    contents = _load_contents(winner_ids)
    generator = generator or get_content_generator()
    try:
        analysis = generator.analyze_patterns([
            {'content': contents[entry.variant_id], 'metrics': entry.to_dict()}
            for entry in top
        ])
    except AppError:
        raise
    except Exception as e:
        logger.error("Pattern analysis failed: %s", e, extra=log_ctx)
        raise GeneratorError('Pattern analysis failed', details={'original_error': str(e)})

    return WinnerAnalysis(
        top_performers=[
            {
                'variant_id': entry.variant_id,
                'metrics': entry.to_dict(),
                'score': metric_score(entry, metric),
            }
            for entry in top
        ],
        patterns=list(analysis.patterns),
        recommendations=list(analysis.recommendations),
    )
