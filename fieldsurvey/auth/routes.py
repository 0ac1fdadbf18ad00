from dataclasses import dataclass
from functools import wraps

from flask import Blueprint, abort, current_app, request, session
from flask_login import UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from ..context import ROLE_ADMIN, ROLE_COMPANY, ROLE_RESEARCHER, SessionContext
from ..extensions import db, login_manager
from ..models import Administrador, Empresa, Pesquisador
from ..services.tracking import TrackingFeed

bp = Blueprint('auth', __name__, url_prefix='/auth')

# role -> (model, email column, active column)
ACCOUNT_TABLES = {
    ROLE_ADMIN: (Administrador, 'email', 'esta_ativo'),
    ROLE_COMPANY: (Empresa, 'email_contato', 'esta_ativa'),
    ROLE_RESEARCHER: (Pesquisador, 'email', 'esta_ativo'),
}
TRACKING_SESSION_KEY = 'tracking'


@dataclass
class LoginUser(UserMixin):
    role: str
    profile_id: str
    name: str = ''

    def get_id(self) -> str:
        return f'{self.role}:{self.profile_id}'

    @property
    def context(self) -> SessionContext:
        return SessionContext(role=self.role, profile_id=self.profile_id, name=self.name)


def _load_account(role: str, profile_id: str):
    entry = ACCOUNT_TABLES.get(role)
    if entry is None:
        return None
    model, _, active_col = entry
    row = db.session.get(model, profile_id)
    if row is None or not getattr(row, active_col):
        return None
    return row


@login_manager.user_loader
def load_user(user_id: str):
    role, _, profile_id = str(user_id).partition(':')
    row = _load_account(role, profile_id)
    if row is None:
        return None
    return LoginUser(role=role, profile_id=row.id, name=row.nome)


@login_manager.unauthorized_handler
def unauthorized():
    abort(401)


def current_context() -> SessionContext:
    return current_user.context


def role_required(*roles):
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role not in roles:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def tracking_feed() -> TrackingFeed:
    return TrackingFeed.from_state(current_context(), session.get(TRACKING_SESSION_KEY))


def store_tracking_feed(feed: TrackingFeed) -> None:
    session[TRACKING_SESSION_KEY] = feed.to_state()


def ensure_admin(email: str, password: str, name: str = 'Administrador') -> Administrador:
    admin = Administrador.query.filter_by(email=email).first()
    if admin is None:
        admin = Administrador(nome=name, email=email, esta_ativo=True)
        db.session.add(admin)
    admin.senha_hash = generate_password_hash(password)
    db.session.commit()
    return admin


def authenticate(email: str, password: str, role: str = None):
    roles = [role] if role else list(ACCOUNT_TABLES)
    for r in roles:
        entry = ACCOUNT_TABLES.get(r)
        if entry is None:
            continue
        model, email_col, active_col = entry
        row = model.query.filter(getattr(model, email_col) == email).first()
        if row is None or not getattr(row, active_col) or not row.senha_hash:
            continue
        if check_password_hash(row.senha_hash, password):
            return LoginUser(role=r, profile_id=row.id, name=row.nome)
    return None


@bp.post('/login')
def login_post():
    payload = request.get_json(silent=True) or {}
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''
    role = payload.get('role') or None

    user = authenticate(email, password, role)
    if user is None:
        return {'error': 'invalid_credentials', 'message': 'Credenciais inválidas.'}, 401

    login_user(user)
    body = {'user': {'role': user.role, 'profileId': user.profile_id, 'name': user.name}}
    if user.role == ROLE_RESEARCHER:
        feed = TrackingFeed(user.context)
        body['tracking'] = feed.start()
        store_tracking_feed(feed)
    current_app.logger.info('%s %s logged in', user.role, user.profile_id)
    return body


@bp.post('/logout')
@login_required
def logout():
    if current_user.role == ROLE_RESEARCHER:
        feed = tracking_feed()
        feed.stop()
        store_tracking_feed(feed)
    logout_user()
    return {'ok': True}


@bp.get('/me')
@login_required
def me():
    return {'user': {'role': current_user.role, 'profileId': current_user.profile_id, 'name': current_user.name}}
