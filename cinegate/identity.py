"""Viewer identity: an authenticated user or a signed anonymous visitor."""
from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, request

from .errors import Unauthenticated
from .models import Rental, UserSession, utcnow
from .services.anonymous import anonymous_ids


@dataclass(frozen=True)
class UserIdentity:
    user_id: str

    def payload_fields(self) -> dict:
        return {'userId': self.user_id}

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class AnonymousIdentity:
    anonymous_id: str

    def payload_fields(self) -> dict:
        return {'anonymousId': self.anonymous_id}

    @property
    def key(self) -> str:
        return f"anon:{self.anonymous_id}"


Identity = UserIdentity | AnonymousIdentity


def owner_clause(identity: Identity, model=Rental):
    """Equality predicate selecting rows owned by ``identity``."""
    match identity:
        case UserIdentity(user_id=user_id):
            return model.user_id == user_id
        case AnonymousIdentity(anonymous_id=anonymous_id):
            return model.anonymous_id == anonymous_id
    raise Unauthenticated('A user or anonymous identity is required')


def owner_columns(identity: Identity) -> dict:
    """Column values for inserting a row owned by ``identity``."""
    match identity:
        case UserIdentity(user_id=user_id):
            return {'user_id': user_id, 'anonymous_id': None}
        case AnonymousIdentity(anonymous_id=anonymous_id):
            return {'user_id': None, 'anonymous_id': anonymous_id}
    raise Unauthenticated('A user or anonymous identity is required')


def _session_token():
    # Cookie first (web), then bearer token (mobile)
    token = request.cookies.get('session')
    if token:
        return token
    auth = request.headers.get('Authorization', '')
    if auth.startswith('Bearer '):
        return auth.split(' ', 1)[1]
    return None


def resolve_request_identity():
    token = _session_token()
    if token:
        session = UserSession.query.filter(
            UserSession.token == token,
            UserSession.expires_at > utcnow(),
        ).first()
        if session:
            return UserIdentity(session.user_id)
        current_app.logger.warning('Ignoring invalid or expired session token')

    signed = request.headers.get('X-Anonymous-Id')
    if signed:
        result = anonymous_ids().validate(signed)
        if result and isinstance(result.payload.get('id'), str):
            return AnonymousIdentity(result.payload['id'])
        current_app.logger.warning('Ignoring anonymous id: %s', result.error or 'payload carries no string id')
    return None


def current_identity():
    if 'identity' not in g:
        g.identity = resolve_request_identity()
    return g.identity


def identity_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_identity() is None:
            raise Unauthenticated()
        return view(*args, **kwargs)
    return wrapper
