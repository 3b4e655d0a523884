from datetime import datetime, timezone
from functools import wraps
import hmac

from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import IntegrityError

from .errors import NotFound, ValidationFailed
from .models import db, Movie, PricingTier, PromoCode
from .services.pricing import DISCOUNT_TYPES, normalize_code

bp = Blueprint('admin', __name__)


def admin_required(view):
    # Simple API-key auth
    @wraps(view)
    def wrapper(*args, **kwargs):
        api_key = request.headers.get('X-Admin-Key') or ''
        expected = current_app.config.get('ADMIN_API_KEY') or ''
        if not expected or not hmac.compare_digest(api_key.encode(), expected.encode()):
            return jsonify({'error': 'unauthorized'}), 401
        return view(*args, **kwargs)
    return wrapper


def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _int_field(data, name, minimum=None, maximum=None):
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed('invalid_field', f"{name} must be an integer")
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise ValidationFailed('invalid_field', f"{name} is out of range")
    return value


def _datetime_field(data, name):
    value = data.get(name)
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        raise ValidationFailed('invalid_field', f"{name} must be an ISO 8601 timestamp")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _check_discount(discount_type, discount_value):
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationFailed('invalid_discount_type', f"discountType must be one of {', '.join(DISCOUNT_TYPES)}")
    if discount_type == 'free':
        return None
    if discount_value is None:
        raise ValidationFailed('missing_discount_value', 'discountValue is required for percentage and fixed discount types')
    if discount_value <= 0 or (discount_type == 'percentage' and discount_value > 100):
        raise ValidationFailed('invalid_discount_value', 'discountValue is out of range')
    return discount_value


def _commit_or_conflict(message):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'conflict', 'message': message}), 409
    return None


# Pricing tiers

@bp.get('/pricing/tiers')
@admin_required
def list_tiers():
    tiers = PricingTier.query.order_by(PricingTier.sort_order, PricingTier.price_lak).all()
    return jsonify({'tiers': [t.to_dict() for t in tiers]})


@bp.post('/pricing/tiers')
@admin_required
def create_tier():
    data = _body()
    price = _int_field(data, 'priceLak', minimum=0)
    if not data.get('name') or not data.get('displayNameEn') or price is None:
        raise ValidationFailed('missing_fields', 'name, displayNameEn, and priceLak are required')
    tier = PricingTier(
        name=data['name'],
        display_name_en=data['displayNameEn'],
        display_name_lo=data.get('displayNameLo'),
        price_lak=price,
        sort_order=_int_field(data, 'sortOrder') or 0,
    )
    db.session.add(tier)
    conflict = _commit_or_conflict('A pricing tier with this name already exists')
    if conflict:
        return conflict
    current_app.logger.info('Pricing tier %s created at %d LAK', tier.name, tier.price_lak)
    return jsonify({'tier': tier.to_dict()}), 201


@bp.patch('/pricing/tiers/<tier_id>')
@admin_required
def update_tier(tier_id):
    tier = db.session.get(PricingTier, tier_id)
    if tier is None:
        raise NotFound('Pricing tier')
    data = _body()
    if 'name' in data:
        tier.name = data['name']
    if 'displayNameEn' in data:
        tier.display_name_en = data['displayNameEn']
    if 'displayNameLo' in data:
        tier.display_name_lo = data['displayNameLo']
    if data.get('priceLak') is not None:
        tier.price_lak = _int_field(data, 'priceLak', minimum=0)
    if 'isActive' in data:
        tier.is_active = bool(data['isActive'])
    if 'sortOrder' in data:
        tier.sort_order = _int_field(data, 'sortOrder') or 0
    conflict = _commit_or_conflict('A pricing tier with this name already exists')
    if conflict:
        return conflict
    return jsonify({'tier': tier.to_dict()})


@bp.delete('/pricing/tiers/<tier_id>')
@admin_required
def delete_tier(tier_id):
    tier = db.session.get(PricingTier, tier_id)
    if tier is None:
        raise NotFound('Pricing tier')
    if Movie.query.filter_by(pricing_tier_id=tier_id).first():
        raise ValidationFailed(
            'tier_in_use',
            'Cannot delete tier that is assigned to movies. Reassign or remove pricing from movies first.',
        )
    db.session.delete(tier)
    db.session.commit()
    return '', 204


@bp.put('/movies/<movie_id>/pricing-tier')
@admin_required
def assign_tier(movie_id):
    movie = db.session.get(Movie, movie_id)
    if movie is None:
        raise NotFound('Movie')
    tier_id = _body().get('pricingTierId')
    if tier_id is not None and db.session.get(PricingTier, tier_id) is None:
        raise NotFound('Pricing tier')
    movie.pricing_tier_id = tier_id
    db.session.commit()
    return jsonify({'movieId': movie.id, 'pricingTierId': movie.pricing_tier_id})


# Promo codes

@bp.get('/promo-codes')
@admin_required
def list_promo_codes():
    codes = PromoCode.query.order_by(PromoCode.created_at.desc()).all()
    return jsonify({'promoCodes': [c.to_dict() for c in codes]})


@bp.post('/promo-codes')
@admin_required
def create_promo_code():
    data = _body()
    if not data.get('code') or not data.get('discountType'):
        raise ValidationFailed('missing_fields', 'code and discountType are required')
    discount_value = _check_discount(data['discountType'], _int_field(data, 'discountValue'))
    movie_id = data.get('movieId')
    if movie_id and db.session.get(Movie, movie_id) is None:
        raise NotFound('Movie')

    promo = PromoCode(
        code=normalize_code(data['code']),
        discount_type=data['discountType'],
        discount_value=discount_value,
        max_uses=_int_field(data, 'maxUses', minimum=1),
        valid_from=_datetime_field(data, 'validFrom'),
        valid_to=_datetime_field(data, 'validTo'),
        movie_id=movie_id or None,
    )
    db.session.add(promo)
    conflict = _commit_or_conflict('A promo code with this code already exists')
    if conflict:
        return conflict
    current_app.logger.info('Promo code %s created (%s)', promo.code, promo.discount_type)
    return jsonify({'promoCode': promo.to_dict()}), 201


@bp.patch('/promo-codes/<code_id>')
@admin_required
def update_promo_code(code_id):
    promo = db.session.get(PromoCode, code_id)
    if promo is None:
        raise NotFound('Promo code')
    data = _body()
    if 'discountType' in data or 'discountValue' in data:
        discount_type = data.get('discountType', promo.discount_type)
        value = _int_field(data, 'discountValue') if 'discountValue' in data else promo.discount_value
        promo.discount_value = _check_discount(discount_type, value)
        promo.discount_type = discount_type
    if 'maxUses' in data:
        promo.max_uses = _int_field(data, 'maxUses', minimum=1)
    if 'validFrom' in data:
        promo.valid_from = _datetime_field(data, 'validFrom')
    if 'validTo' in data:
        promo.valid_to = _datetime_field(data, 'validTo')
    if 'movieId' in data:
        movie_id = data['movieId'] or None
        if movie_id and db.session.get(Movie, movie_id) is None:
            raise NotFound('Movie')
        promo.movie_id = movie_id
    if 'isActive' in data:
        promo.is_active = bool(data['isActive'])
    db.session.commit()
    return jsonify({'promoCode': promo.to_dict()})


@bp.delete('/promo-codes/<code_id>')
@admin_required
def delete_promo_code(code_id):
    promo = db.session.get(PromoCode, code_id)
    if promo is None:
        raise NotFound('Promo code')
    db.session.delete(promo)
    db.session.commit()
    return '', 204
