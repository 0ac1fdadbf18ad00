from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db

bp = Blueprint('api', __name__, url_prefix='/api')


@bp.get('/health')
def health():
    """Liveness plus a trivial round trip to the database."""
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except SQLAlchemyError:
        current_app.logger.exception('health check query failed')
        database = 'error'
    status = 'ok' if database == 'ok' else 'degraded'
    return {'status': status, 'database': database, 'app': current_app.config.get('APP_TITLE')}
