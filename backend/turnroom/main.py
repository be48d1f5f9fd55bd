from flask import Blueprint, jsonify

from turnroom import db

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'service': 'turnroom', 'status': 'ok'})


@main.route('/health')
def health():
    try:
        db.session.execute(db.text('SELECT 1'))
        database = 'ok'
    except Exception:
        db.session.rollback()
        database = 'unavailable'
    status = 200 if database == 'ok' else 503
    return jsonify({'status': 'ok' if status == 200 else 'degraded', 'database': database}), status
