import hmac

from flask import Blueprint, jsonify, request, current_app

from turnroom.services.turns.coordinator import get_coordinator


cron = Blueprint('cron', __name__)


def _authorized():
    secret = current_app.config.get('CRON_SECRET') or ''
    if not secret:
        return True
    header = request.headers.get('Authorization', '')
    return hmac.compare_digest(header, f"Bearer {secret}")


@cron.route('/auto-skip', methods=['POST'])
def auto_skip():
    if not _authorized():
        current_app.logger.warning("[cron-auto-skip] rejected: bad or missing token")
        return jsonify({'error': 'Unauthorized'}), 401
    skipped = get_coordinator().stall_sweep()
    return jsonify({'success': True, 'skipped_count': len(skipped), 'skipped': skipped})
