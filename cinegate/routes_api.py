from flask import Blueprint, request, jsonify, current_app

from .errors import NotFound, RentalRequired, TokenError, Unauthenticated, ValidationFailed
from .identity import UserIdentity, current_identity, identity_required
from .models import db, Movie, ShortPack, Trailer, VideoSource
from .services.anonymous import anonymous_ids
from .services.checkout import rent_movie
from .services.entitlements import (
    check_pack_access, lapsed_movie_rental, list_rentals, migrate_anonymous_rentals,
    rent_pack, resolve_access, update_pack_position,
)
from .services.pricing import resolve_price, validate_promo_code
from .services.rate_limit import check_rate
from .services.tokens import access_tokens, signed_url, trailer_path, video_path

bp = Blueprint('api', __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _required(data: dict, *fields):
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationFailed('missing_fields', f"{', '.join(missing)} required")
    return [data[f] for f in fields]


def _rate_limit(kind: str, limit_key: str):
    identity = current_identity()
    identifier = identity.key if identity else (request.remote_addr or '0.0.0.0')
    check_rate(kind, identifier, current_app.config[limit_key])


@bp.post('/anonymous-id')
def issue_anonymous_id():
    manager = anonymous_ids()
    token = manager.issue()
    payload = manager.verify(token)
    return jsonify({'anonymousId': token, 'expiresAt': payload['expiresAt']}), 201


@bp.post('/video-tokens')
@identity_required
def issue_video_token():
    _rate_limit('video-token', 'VIDEO_TOKEN_RATE_LIMIT')
    movie_id, source_id = _required(_json_body(), 'movieId', 'videoSourceId')

    source = VideoSource.query.filter_by(id=source_id, movie_id=movie_id).first()
    if source is None:
        raise NotFound('Video source')

    identity = current_identity()
    if not resolve_access(movie_id, identity).has_access:
        raise RentalRequired()

    issuer = access_tokens()
    path = video_path(source.url)
    token = issuer.issue_video_token(movie_id, identity, path, resource_id=source.id)
    url = signed_url(current_app.config['VIDEO_SERVER_URL'], path, token, local_prefix='videos')
    return jsonify({'url': url, 'expiresIn': issuer.video_ttl})


@bp.get('/video-tokens/validate')
def validate_video_token():
    token = request.args.get('token')
    if not token:
        return jsonify({'valid': False, 'error': 'Token is required'}), 400
    try:
        payload = access_tokens().verify_video_token(token)
    except TokenError as e:
        return jsonify({'valid': False, 'error': e.code.value}), 401
    return jsonify({'valid': True, 'movieId': payload['movieId'], 'path': payload['path']})


@bp.post('/trailer-tokens')
@identity_required
def issue_trailer_token():
    _rate_limit('trailer-token', 'TRAILER_TOKEN_RATE_LIMIT')
    (trailer_id,) = _required(_json_body(), 'trailerId')

    trailer = db.session.get(Trailer, trailer_id)
    if trailer is None:
        raise NotFound('Trailer')
    if trailer.type != 'video':
        raise ValidationFailed('not_self_hosted', 'Trailer tokens are only for self-hosted videos')
    if not trailer.video_url:
        raise ValidationFailed('no_video_url', 'Trailer has no video URL')

    issuer = access_tokens()
    path = trailer_path(trailer.video_url)
    token = issuer.issue_trailer_token(trailer.id, trailer.movie_id, current_identity(), path)
    url = signed_url(current_app.config['VIDEO_SERVER_URL'], path, token)
    return jsonify({'url': url, 'expiresIn': issuer.trailer_ttl})


@bp.get('/trailer-tokens/validate')
def validate_trailer_token():
    token = request.args.get('token')
    if not token:
        return jsonify({'valid': False, 'error': 'Token is required'}), 400
    try:
        payload = access_tokens().verify_trailer_token(token)
    except TokenError as e:
        return jsonify({'valid': False, 'error': e.code.value}), 401
    return jsonify({'valid': True, 'payload': payload})


@bp.get('/movies/<movie_id>/pricing')
def movie_pricing(movie_id: str):
    if db.session.get(Movie, movie_id) is None:
        raise NotFound('Movie')
    pricing = resolve_price(movie_id, request.args.get('promoCode'))
    return jsonify({'pricing': pricing.to_dict()})


@bp.post('/promo-codes/validate')
def validate_promo():
    code, movie_id = _required(_json_body(), 'code', 'movieId')
    pricing = resolve_price(movie_id)
    if not pricing.available:
        raise ValidationFailed(pricing.unavailable_reason, 'Movie is not available for rent')
    validation = validate_promo_code(code, movie_id, pricing.original_amount)
    return jsonify({'validation': validation.to_dict()})


@bp.get('/rentals')
@identity_required
def rentals_list():
    rentals = list_rentals(
        current_identity(),
        include_expired=request.args.get('includeExpired') == 'true',
        include_recent=request.args.get('includeRecent') == 'true',
    )
    return jsonify({'rentals': [r.to_dict() for r in rentals]})


@bp.post('/rentals/migrate')
@identity_required
def rentals_migrate():
    identity = current_identity()
    if not isinstance(identity, UserIdentity):
        raise Unauthenticated('Authentication required to migrate data')
    (signed,) = _required(_json_body(), 'anonymousId')
    anonymous_id = anonymous_ids().extract_id(signed)
    migrated = migrate_anonymous_rentals(anonymous_id, identity.user_id)
    return jsonify({'success': True, 'migratedRentals': migrated})


@bp.get('/rentals/packs/<pack_id>')
@identity_required
def pack_rental_status(pack_id: str):
    if db.session.get(ShortPack, pack_id) is None:
        raise NotFound('Short pack')
    return jsonify(check_pack_access(pack_id, current_identity()).to_dict())


@bp.post('/rentals/packs/<pack_id>')
@identity_required
def pack_rental_create(pack_id: str):
    data = _json_body()
    (transaction_id,) = _required(data, 'transactionId')
    amount = data.get('amount')
    if amount is not None and (not isinstance(amount, int) or amount < 0):
        raise ValidationFailed('invalid_amount', 'amount must be a non-negative integer')
    rental = rent_pack(
        pack_id, current_identity(), transaction_id,
        amount=amount, payment_method=data.get('paymentMethod'),
    )
    return jsonify({'rental': rental.to_dict()}), 201


@bp.patch('/rentals/<rental_id>/position')
@identity_required
def pack_rental_position(rental_id: str):
    (current_short_id,) = _required(_json_body(), 'currentShortId')
    update_pack_position(rental_id, current_identity(), current_short_id)
    return jsonify({'success': True})


@bp.get('/rentals/<movie_id>')
@identity_required
def rental_status(movie_id: str):
    identity = current_identity()
    access = resolve_access(movie_id, identity)
    data = access.to_dict()
    if not access.has_access:
        expired_at = lapsed_movie_rental(movie_id, identity)
        if expired_at is not None:
            data['expired'] = True
            data['expiredAt'] = expired_at.isoformat()
    return jsonify(data)


@bp.post('/rentals/<movie_id>')
@identity_required
def rental_create(movie_id: str):
    data = _json_body()
    result = rent_movie(
        movie_id, current_identity(),
        transaction_id=data.get('transactionId'),
        payment_method=data.get('paymentMethod'),
        promo_code=data.get('promoCode'),
    )
    return jsonify(result.to_dict()), 201
