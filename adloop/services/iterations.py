"""
Iteration Generator — spawn new draft variants from the campaign's winners.

Each new variant keeps a lineage link (parent_variant_id) to a winner. Parents
are assigned round-robin over the full winner set, most recent winner first,
even when only the first top_n winners seeded the generator.
"""
import logging
from typing import List, Optional

from adloop.config import DEFAULT_TOP_N, DEFAULT_ITERATION_COUNT, MAX_TOP_N, MAX_ITERATION_COUNT
from adloop.database import get_session
from adloop.errors import AppError, GeneratorError, NotFoundError, ValidationError
from adloop.models.campaign import Campaign
from adloop.models.variant import ContentVariant, CONTENT_FIELDS
from adloop.services import metrics as metrics_service
from adloop.services.content_generator import ContentGenerator, VariantDraft, get_content_generator
from adloop.services.winners import check_bound

logger = logging.getLogger('services.iterations')


def _load_winners(campaign_id: str):
    """(campaign, winners most recent first). Raises NotFoundError for unknown campaign."""
    session = get_session()
    try:
        campaign = session.get(Campaign, campaign_id)
        if campaign is None:
            raise NotFoundError('Campaign')
        winners = (
            session.query(ContentVariant)
            .filter(ContentVariant.campaign_id == campaign_id, ContentVariant.is_winner.is_(True))
            .order_by(ContentVariant.created_at.desc(), ContentVariant.id.desc())
            .all()
        )
        return campaign, winners
    finally:
        session.close()


def _is_complete(draft: VariantDraft) -> bool:
    return all(isinstance(getattr(draft, name, None), str) and getattr(draft, name).strip()
               for name in CONTENT_FIELDS)


def _iteration_notes(parent_id: str, draft: VariantDraft) -> str:
    return f"Iteration based on winner {parent_id}. {draft.generation_notes or ''}".rstrip()


def generate_iterations(
    campaign_id: str,
    top_n: int = DEFAULT_TOP_N,
    count: int = DEFAULT_ITERATION_COUNT,
    generator: Optional[ContentGenerator] = None,
) -> List[ContentVariant]:
    """
    Generate and persist up to `count` new draft variants seeded by winners.

    Raises:
        ValidationError: bounds out of range, or the campaign has no winners yet.
        NotFoundError:   unknown campaign.
        GeneratorError:  the content generator failed; nothing is persisted.
    """
    check_bound('topN', top_n, MAX_TOP_N)
    check_bound('count', count, MAX_ITERATION_COUNT)

    log_ctx = {'campaign_id': campaign_id}
    campaign, winners = _load_winners(campaign_id)
    if not winners:
        raise ValidationError('No winners identified. Run winner identification first.')

    seeds = winners[:top_n]
    by_variant = {m.variant_id: m for m in metrics_service.aggregate(campaign_id)}
    seed_payload = [
        {
            'content': w.content(),
            'metrics': by_variant[w.id].to_dict() if w.id in by_variant else {},
        }
        for w in seeds
    ]

    generator = generator or get_content_generator()
    try:
        patterns = generator.analyze_patterns(seed_payload).patterns
        drafts = generator.generate_variants(
            [s['content'] for s in seed_payload],
            patterns,
            campaign.product_context,
            count,
        )
    except AppError:
        raise
    except Exception as e:
        logger.error("Iteration generation failed: %s", e, extra=log_ctx)
        raise GeneratorError('Iteration generation failed', details={'original_error': str(e)})

    session = get_session()
    created = []
    try:
        for i, draft in enumerate(drafts):
            if len(created) >= count:
                break
            if not _is_complete(draft):
                logger.warning("Skipping draft with missing copy fields", extra=log_ctx)
                continue
            parent = winners[i % len(winners)]
            variant = ContentVariant(
                campaign_id=campaign_id,
                hook=draft.hook,
                problem_agitation=draft.problem_agitation,
                solution=draft.solution,
                cta=draft.cta,
                visual_direction=draft.visual_direction,
                audio_notes=draft.audio_notes,
                estimated_duration=draft.estimated_duration,
                generation_notes=_iteration_notes(parent.id, draft),
                status='draft',
                version=1,
                is_winner=False,
                parent_variant_id=parent.id,
            )
            session.add(variant)
            created.append(variant)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info("Created %d iteration(s) from %d winner(s)", len(created), len(winners), extra=log_ctx)
    return created
