from datetime import datetime, timezone
import uuid

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func


def _gen_id():
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC wall clock; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


db = SQLAlchemy()


class User(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(db.String(32), default='user')
    created_at = db.Column(db.DateTime, server_default=func.now())


class UserSession(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    token = db.Column(db.String(128), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, server_default=func.now())


class PricingTier(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    name = db.Column(db.String(64), unique=True, nullable=False)
    display_name_en = db.Column(db.String(255), nullable=False)
    display_name_lo = db.Column(db.String(255))
    price_lak = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'displayNameEn': self.display_name_en,
            'displayNameLo': self.display_name_lo,
            'priceLak': self.price_lak,
            'isActive': self.is_active,
            'sortOrder': self.sort_order,
        }


class Movie(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True)
    pricing_tier_id = db.Column(db.String(36), db.ForeignKey('pricing_tier.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, server_default=func.now())

    pricing_tier = db.relationship('PricingTier')


class VideoSource(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    movie_id = db.Column(db.String(36), db.ForeignKey('movie.id', ondelete='CASCADE'), nullable=False)
    quality = db.Column(db.String(16))
    format = db.Column(db.String(16), default='hls')
    # slug of the HLS directory on the video server, e.g. 'last-dance'
    url = db.Column(db.Text, nullable=False)


class Trailer(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    movie_id = db.Column(db.String(36), db.ForeignKey('movie.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(16), nullable=False)  # youtube|video
    name = db.Column(db.String(255), nullable=False)
    youtube_key = db.Column(db.String(64))
    video_url = db.Column(db.Text)


class ShortPack(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    slug = db.Column(db.String(255), unique=True)
    title = db.Column(db.String(255), nullable=False)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=func.now())


class ShortPackItem(db.Model):
    pack_id = db.Column(db.String(36), db.ForeignKey('short_pack.id', ondelete='CASCADE'), primary_key=True)
    movie_id = db.Column(db.String(36), db.ForeignKey('movie.id', ondelete='CASCADE'), primary_key=True)
    order = db.Column(db.Integer, nullable=False, default=0)


class PromoCode(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    code = db.Column(db.String(64), unique=True, nullable=False)  # stored uppercase
    discount_type = db.Column(db.String(16), nullable=False)  # percentage|fixed|free
    discount_value = db.Column(db.Integer)
    max_uses = db.Column(db.Integer)
    uses_count = db.Column(db.Integer, nullable=False, default=0)
    valid_from = db.Column(db.DateTime)
    valid_to = db.Column(db.DateTime)
    movie_id = db.Column(db.String(36), db.ForeignKey('movie.id', ondelete='CASCADE'))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'discountType': self.discount_type,
            'discountValue': self.discount_value,
            'maxUses': self.max_uses,
            'usesCount': self.uses_count,
            'validFrom': self.valid_from.isoformat() if self.valid_from else None,
            'validTo': self.valid_to.isoformat() if self.valid_to else None,
            'movieId': self.movie_id,
            'isActive': self.is_active,
        }


class Rental(db.Model):
    __table_args__ = (
        db.CheckConstraint('(movie_id IS NULL) != (short_pack_id IS NULL)', name='rental_single_target'),
        db.CheckConstraint('(user_id IS NULL) != (anonymous_id IS NULL)', name='rental_single_owner'),
        db.Index('ix_rental_user_movie', 'user_id', 'movie_id'),
        db.Index('ix_rental_anonymous_movie', 'anonymous_id', 'movie_id'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'))
    anonymous_id = db.Column(db.String(64))
    movie_id = db.Column(db.String(36), db.ForeignKey('movie.id', ondelete='CASCADE'))
    short_pack_id = db.Column(db.String(36), db.ForeignKey('short_pack.id', ondelete='CASCADE'))
    # pack playback position; the only column updated after insert
    current_short_id = db.Column(db.String(36), db.ForeignKey('movie.id', ondelete='SET NULL'))
    purchased_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    transaction_id = db.Column(db.String(128), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default='LAK')
    payment_method = db.Column(db.String(32))

    def to_dict(self):
        return {
            'id': self.id,
            'movieId': self.movie_id,
            'shortPackId': self.short_pack_id,
            'currentShortId': self.current_short_id,
            'purchasedAt': self.purchased_at.isoformat() if self.purchased_at else None,
            'expiresAt': self.expires_at.isoformat(),
            'transactionId': self.transaction_id,
            'amount': self.amount,
            'currency': self.currency,
            'paymentMethod': self.payment_method,
        }


class PromoCodeUse(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_gen_id)
    promo_code_id = db.Column(db.String(36), db.ForeignKey('promo_code.id', ondelete='CASCADE'), nullable=False)
    rental_id = db.Column(db.String(36), db.ForeignKey('rental.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='SET NULL'))
    anonymous_id = db.Column(db.String(64))
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow)
