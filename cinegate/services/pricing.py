"""Price resolution for movie rentals: pricing tiers and promo codes.

All amounts are whole LAK. A promo code that fails validation never blocks a
purchase; it simply does not discount it.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy import or_, update

from ..errors import NotFound, PromoCodeExhausted
from ..models import db, Movie, PricingTier, PromoCode, utcnow

DISCOUNT_TYPES = ('percentage', 'fixed', 'free')


class PromoRejection(Enum):
    NOT_FOUND = ('not_found', 'Invalid code')
    INACTIVE = ('inactive', 'Promo code is no longer active')
    NOT_YET_VALID = ('not_yet_valid', 'Promo code is not yet valid')
    EXPIRED = ('expired', 'Promo code has expired')
    WRONG_MOVIE = ('wrong_movie', 'Promo code is not valid for this movie')
    EXHAUSTED = ('exhausted', 'Promo code usage limit reached')
    MISCONFIGURED = ('misconfigured', 'Invalid promo code configuration')

    @property
    def reason(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class PromoValidation:
    valid: bool
    code: str
    rejection: PromoRejection | None = None
    promo_code_id: str | None = None
    discount_type: str | None = None
    discount_value: int | None = None
    discount_amount: int | None = None
    final_amount: int | None = None

    @property
    def error(self) -> str | None:
        return self.rejection.message if self.rejection else None

    def to_dict(self) -> dict:
        if not self.valid:
            return {'valid': False, 'code': self.code, 'reason': self.rejection.reason, 'error': self.error}
        return {
            'valid': True,
            'code': self.code,
            'discountType': self.discount_type,
            'discountValue': self.discount_value,
            'discountAmountLak': self.discount_amount,
            'finalAmountLak': self.final_amount,
        }


@dataclass(frozen=True)
class PriceResult:
    available: bool
    unavailable_reason: str | None = None  # 'no_pricing' | 'inactive_tier'
    tier: PricingTier | None = None
    original_amount: int | None = None
    final_amount: int | None = None
    promo: PromoValidation | None = None

    @property
    def promo_applied(self) -> bool:
        return self.promo is not None and self.promo.valid

    @property
    def promo_rejection(self) -> PromoRejection | None:
        if self.promo is None or self.promo.valid:
            return None
        return self.promo.rejection

    def to_dict(self) -> dict:
        if not self.available:
            return {'available': False, 'unavailableReason': self.unavailable_reason}
        data = {
            'available': True,
            'tier': self.tier.to_dict(),
            'originalAmountLak': self.original_amount,
            'finalAmountLak': self.final_amount,
        }
        if self.promo_applied:
            data['promoApplied'] = {
                'id': self.promo.promo_code_id,
                'code': self.promo.code,
                'discountType': self.promo.discount_type,
                'discountValue': self.promo.discount_value,
                'discountAmountLak': self.promo.discount_amount,
            }
        elif self.promo is not None:
            data['promoRejected'] = {'code': self.promo.code, 'reason': self.promo.rejection.reason}
        return data


def normalize_code(code: str) -> str:
    return code.strip().upper()


def get_promo_code(code: str) -> PromoCode | None:
    return PromoCode.query.filter_by(code=normalize_code(code)).first()


def compute_discount(discount_type: str, discount_value: int | None, original_amount: int):
    """Return ``(discount_amount, final_amount)`` or None when misconfigured.

    Percentages round down to whole LAK; fixed discounts are capped at the
    original amount so the final amount never goes negative.
    """
    if discount_type == 'free':
        return original_amount, 0
    if discount_type == 'percentage':
        if not discount_value or not 0 < discount_value <= 100:
            return None
        discount = original_amount * discount_value // 100
        return discount, original_amount - discount
    if discount_type == 'fixed':
        if not discount_value or discount_value < 0:
            return None
        discount = min(discount_value, original_amount)
        return discount, original_amount - discount
    return None


def validate_promo_code(code: str, movie_id: str, original_amount: int,
                        now: datetime | None = None) -> PromoValidation:
    """Check a promo code against ``movie_id``; never consumes a use."""
    if now is None:
        now = utcnow()
    # a non-string code from a JSON body can never match a stored code
    promo = get_promo_code(code) if isinstance(code, str) else None

    def reject(rejection):
        return PromoValidation(False, code, rejection, promo_code_id=promo.id if promo else None)

    if promo is None:
        return reject(PromoRejection.NOT_FOUND)
    if not promo.is_active:
        return reject(PromoRejection.INACTIVE)
    if promo.valid_from and now < promo.valid_from:
        return reject(PromoRejection.NOT_YET_VALID)
    if promo.valid_to and now > promo.valid_to:
        return reject(PromoRejection.EXPIRED)
    if promo.movie_id and promo.movie_id != movie_id:
        return reject(PromoRejection.WRONG_MOVIE)
    if promo.max_uses is not None and promo.uses_count >= promo.max_uses:
        return reject(PromoRejection.EXHAUSTED)

    amounts = compute_discount(promo.discount_type, promo.discount_value, original_amount)
    if amounts is None:
        return reject(PromoRejection.MISCONFIGURED)
    discount, final = amounts
    return PromoValidation(
        True, promo.code,
        promo_code_id=promo.id,
        discount_type=promo.discount_type,
        discount_value=promo.discount_value,
        discount_amount=discount,
        final_amount=final,
    )


def resolve_price(movie_id: str, promo_code: str | None = None,
                  now: datetime | None = None) -> PriceResult:
    movie = db.session.get(Movie, movie_id)
    if movie is None or movie.pricing_tier_id is None:
        return PriceResult(False, unavailable_reason='no_pricing')

    tier = db.session.get(PricingTier, movie.pricing_tier_id)
    if tier is None or not tier.is_active:
        return PriceResult(False, unavailable_reason='inactive_tier')

    original = tier.price_lak
    if not promo_code:
        return PriceResult(True, tier=tier, original_amount=original, final_amount=original)

    validation = validate_promo_code(promo_code, movie_id, original, now=now)
    if not validation.valid:
        current_app.logger.info(
            'Promo code %r not applied to movie %s: %s',
            promo_code, movie_id, validation.rejection.reason,
        )
        return PriceResult(True, tier=tier, original_amount=original, final_amount=original, promo=validation)
    return PriceResult(
        True, tier=tier,
        original_amount=original,
        final_amount=validation.final_amount,
        promo=validation,
    )


def increment_promo_code_usage(code_id: str) -> None:
    """Consume one use of a promo code, atomically.

    Call once per completed rental, never at validation time. The guarded
    UPDATE closes the race between two redemptions of a nearly exhausted
    code. Does not commit.
    """
    stmt = (
        update(PromoCode)
        .where(PromoCode.id == code_id)
        .where(or_(PromoCode.max_uses.is_(None), PromoCode.uses_count < PromoCode.max_uses))
        .values(uses_count=PromoCode.uses_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 1:
        return
    if db.session.get(PromoCode, code_id) is None:
        raise NotFound('Promo code')
    raise PromoCodeExhausted(code_id)
