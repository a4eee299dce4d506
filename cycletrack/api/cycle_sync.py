"""
Cycle Sync API endpoints.

Admin endpoints to:
- Run the batch cycle reconciliation for the current shop
- View recent sync runs
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..config import CycleSettings
from ..middleware.shopify_auth import require_shopify_auth
from ..services.cycle_sync_service import CycleSyncService, get_recent_runs
from ..utils.errors import conflict
from ..utils.exceptions import SyncAlreadyRunning

cycle_sync_bp = Blueprint('cycle_sync', __name__)


@cycle_sync_bp.route('/sync', methods=['POST'])
@require_shopify_auth
def run_cycle_sync():
    """
    Recompute cycles and tags for every paid subscription order.

    Returns:
        200 {success, processedOrders, errors, message}
        500 {success: false, error} when the run could not complete
        409 when a sync is already running for this shop
    """
    tenant = g.tenant

    try:
        service = CycleSyncService(tenant, CycleSettings.from_app_config(current_app.config))
        result = service.run(trigger='admin')
    except SyncAlreadyRunning as e:
        return conflict(e.message)
    except Exception as e:
        current_app.logger.error(f'Cycle sync failed for {tenant.shopify_domain}: {e}')
        return jsonify({'success': False, 'error': str(e)}), 500

    if not result.get('success'):
        return jsonify(result), 500

    return jsonify(result)


@cycle_sync_bp.route('/sync', methods=['GET'])
def cycle_sync_method_not_allowed():
    return jsonify({'message': 'Method not allowed'}), 405


@cycle_sync_bp.route('/runs', methods=['GET'])
@require_shopify_auth
def list_sync_runs():
    """Recent sync runs for the current shop, newest first."""
    limit = min(request.args.get('limit', 10, type=int), 100)
    runs = get_recent_runs(g.shop, limit=limit)

    return jsonify({
        'runs': [run.to_dict() for run in runs],
        'count': len(runs)
    })
