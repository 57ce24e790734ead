"""
Performance routes — CSV import, import history, metrics, winners, iterations.

Every response uses the envelope
    {"success": true,  "data": ...}
    {"success": false, "error": {"code", "message", "details"}}
Errors are raised as AppError subclasses and rendered by the app-level handler.
"""
import logging
import uuid

from flask import Blueprint, request, jsonify

from adloop.config import (
    DEFAULT_TOP_N, DEFAULT_WINNER_METRIC, DEFAULT_ITERATION_COUNT,
)
from adloop.errors import ValidationError
from adloop.pipeline.ingestion import import_csv
from adloop.services import ledger
from adloop.services.iterations import generate_iterations
from adloop.services.metrics import aggregate
from adloop.services.winners import select_winners

logger = logging.getLogger('routes.performance')

bp = Blueprint('performance', __name__)


def ok(data, status=200):
    return jsonify({'success': True, 'data': data}), status


def _require_uuid(value, name):
    try:
        return str(uuid.UUID(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{name} must be a valid UUID")


def _int_arg(name, default):
    raw = request.args.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _optional_arg(name):
    value = (request.args.get(name) or '').strip()
    return value or None


def _is_csv_upload(upload):
    filename = (upload.filename or '').lower()
    mimetype = (upload.mimetype or '').lower()
    return filename.endswith('.csv') or mimetype in ('text/csv', 'application/csv')


# ── Import ───────────────────────────────────────────────────────────────────

@bp.route('/api/campaigns/<campaign_id>/performance/import', methods=['POST'])
def import_performance(campaign_id):
    """Upload a CSV of performance rows (multipart field `file`)."""
    campaign_id = _require_uuid(campaign_id, 'campaign_id')

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError('No file uploaded')
    if not _is_csv_upload(upload):
        raise ValidationError('Only CSV files are allowed')

    result = import_csv(campaign_id, upload.filename, upload.stream)
    return ok(result.to_dict(), 201)


@bp.route('/api/campaigns/<campaign_id>/performance/imports')
def list_imports(campaign_id):
    """Import batches for a campaign, newest first."""
    campaign_id = _require_uuid(campaign_id, 'campaign_id')
    batches = ledger.list_batches(campaign_id)
    return ok([b.to_dict() for b in batches])


@bp.route('/api/performance/imports/<batch_id>')
def get_import(batch_id):
    batch_id = _require_uuid(batch_id, 'batch_id')
    return ok(ledger.get_batch(batch_id).to_dict())


# ── Metrics ──────────────────────────────────────────────────────────────────

@bp.route('/api/campaigns/<campaign_id>/performance/metrics')
def get_metrics(campaign_id):
    """Aggregated metrics per variant, optionally narrowed by ?platform= / ?locale=."""
    campaign_id = _require_uuid(campaign_id, 'campaign_id')
    results = aggregate(
        campaign_id,
        platform=_optional_arg('platform'),
        locale=_optional_arg('locale'),
    )
    return ok([m.to_dict() for m in results])


# ── Optimization loop ────────────────────────────────────────────────────────

@bp.route('/api/campaigns/<campaign_id>/performance/winners', methods=['POST'])
def identify_winners(campaign_id):
    """Flag the top N variants by ?metric= (ctr | roas | conversions)."""
    campaign_id = _require_uuid(campaign_id, 'campaign_id')
    top_n = _int_arg('topN', DEFAULT_TOP_N)
    metric = _optional_arg('metric') or DEFAULT_WINNER_METRIC

    analysis = select_winners(campaign_id, top_n=top_n, metric=metric)
    return ok(analysis.to_dict())


@bp.route('/api/campaigns/<campaign_id>/performance/iterate', methods=['POST'])
def iterate(campaign_id):
    """Generate new draft variants from the current winners."""
    campaign_id = _require_uuid(campaign_id, 'campaign_id')
    top_n = _int_arg('topN', DEFAULT_TOP_N)
    count = _int_arg('count', DEFAULT_ITERATION_COUNT)

    variants = generate_iterations(campaign_id, top_n=top_n, count=count)
    return ok([v.to_dict() for v in variants], 201)
