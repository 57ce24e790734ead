"""
Health routes — liveness probe and circuit breaker status.
"""
import logging

from flask import Blueprint, jsonify

from adloop.errors import NotFoundError
from adloop.services.circuit_breaker import get_all_breakers

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """State of every registered circuit breaker."""
    services = {name: breaker.get_health() for name, breaker in get_all_breakers().items()}
    return jsonify({'success': True, 'data': {'services': services}}), 200


@bp.route('/api/health/<name>/reset', methods=['POST'])
def reset_circuit(name):
    breaker = get_all_breakers().get(name)
    if breaker is None:
        raise NotFoundError('Circuit breaker')
    breaker.reset()
    logger.info("Circuit '%s' reset via API", name)
    return jsonify({'success': True, 'data': breaker.get_health()}), 200
