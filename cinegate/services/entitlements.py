"""Rental entitlement checks: direct movie rentals and pack rentals.

Expiry is evaluated against wall-clock ``now`` on every call; nothing here is
cached because rentals lapse on a fixed schedule.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..errors import NotFound, RentalConflict, ValidationFailed
from ..identity import owner_clause, owner_columns
from ..models import db, Rental, ShortPack, ShortPackItem, utcnow


@dataclass(frozen=True)
class RentalSummary:
    id: str
    movie_id: str | None
    short_pack_id: str | None
    expires_at: datetime

    @classmethod
    def from_rental(cls, rental: Rental) -> "RentalSummary":
        return cls(rental.id, rental.movie_id, rental.short_pack_id, rental.expires_at)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'movieId': self.movie_id,
            'shortPackId': self.short_pack_id,
            'expiresAt': self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class AccessResult:
    has_access: bool
    access_type: str | None = None  # 'movie' | 'pack'
    rental: RentalSummary | None = None

    def to_dict(self) -> dict:
        return {
            'hasAccess': self.has_access,
            'accessType': self.access_type,
            'rental': self.rental.to_dict() if self.rental else None,
        }


@dataclass(frozen=True)
class PackAccess:
    rental: Rental | None
    expired: bool = False
    expired_at: datetime | None = None

    def to_dict(self) -> dict:
        data = {'rental': self.rental.to_dict() if self.rental else None}
        if self.expired:
            data['expired'] = True
            data['expiredAt'] = self.expired_at.isoformat()
        return data


def _active_rental(identity, now, *criteria):
    return Rental.query.filter(
        owner_clause(identity),
        Rental.expires_at > now,
        *criteria,
    ).order_by(Rental.expires_at.desc()).first()


def resolve_access(movie_id: str, identity, now: datetime | None = None) -> AccessResult:
    """Decide whether ``identity`` may watch ``movie_id`` right now.

    A direct rental wins over a pack rental. Every pack containing the movie
    is considered.
    """
    if now is None:
        now = utcnow()

    direct = _active_rental(identity, now, Rental.movie_id == movie_id)
    if direct:
        return AccessResult(True, 'movie', RentalSummary.from_rental(direct))

    pack_ids = [
        item.pack_id
        for item in ShortPackItem.query.filter_by(movie_id=movie_id).all()
    ]
    if pack_ids:
        packed = _active_rental(identity, now, Rental.short_pack_id.in_(pack_ids))
        if packed:
            return AccessResult(True, 'pack', RentalSummary.from_rental(packed))

    return AccessResult(False)


def check_pack_access(pack_id: str, identity, now: datetime | None = None) -> PackAccess:
    """Active pack rental, or whether a past one has lapsed.

    Callers offer "renew" for an expired rental and "purchase" when there
    never was one, so the two cases stay distinct.
    """
    if now is None:
        now = utcnow()
    latest = Rental.query.filter(
        owner_clause(identity),
        Rental.short_pack_id == pack_id,
    ).order_by(Rental.expires_at.desc()).first()

    if latest is None:
        return PackAccess(None)
    if latest.expires_at <= now:
        return PackAccess(None, expired=True, expired_at=latest.expires_at)
    return PackAccess(latest)


RECENT_WINDOW = timedelta(hours=24)


def lapsed_movie_rental(movie_id: str, identity, now: datetime | None = None) -> datetime | None:
    """Expiry of the latest direct rental of ``movie_id`` when it has lapsed.

    None when the movie was never rented directly or the rental is still
    active. Lets callers offer "renew" rather than "purchase".
    """
    if now is None:
        now = utcnow()
    latest = Rental.query.filter(
        owner_clause(identity),
        Rental.movie_id == movie_id,
    ).order_by(Rental.expires_at.desc()).first()
    if latest is None or latest.expires_at > now:
        return None
    return latest.expires_at


def list_rentals(identity, include_expired: bool = False, include_recent: bool = False,
                 now: datetime | None = None) -> list[Rental]:
    """Active rentals, plus those lapsed in the last day with ``include_recent``."""
    if now is None:
        now = utcnow()
    query = Rental.query.filter(owner_clause(identity))
    if include_recent and not include_expired:
        query = query.filter(Rental.expires_at > now - RECENT_WINDOW)
    elif not include_expired:
        query = query.filter(Rental.expires_at > now)
    return query.order_by(Rental.purchased_at.desc()).all()


def create_rental(identity, transaction_id: str, amount: int, *, movie_id: str | None = None,
                  short_pack_id: str | None = None, payment_method: str | None = None,
                  now: datetime | None = None) -> Rental:
    """Insert a rental after re-checking for an active one.

    The caller must already hold a row lock on the rented movie or pack, so
    two concurrent requests for the same target cannot both pass the check.
    Does not commit.
    """
    if (movie_id is None) == (short_pack_id is None):
        raise ValueError('exactly one of movie_id and short_pack_id is required')
    if now is None:
        now = utcnow()

    target = Rental.movie_id == movie_id if movie_id else Rental.short_pack_id == short_pack_id
    existing = _active_rental(identity, now, target)
    if existing:
        raise RentalConflict(existing.id)

    hours = current_app.config['RENTAL_DURATION_HOURS']
    rental = Rental(
        movie_id=movie_id,
        short_pack_id=short_pack_id,
        purchased_at=now,
        expires_at=now + timedelta(hours=hours),
        transaction_id=transaction_id,
        amount=amount,
        currency='LAK',
        payment_method=payment_method,
        **owner_columns(identity),
    )
    db.session.add(rental)
    db.session.flush()
    return rental


def rent_pack(pack_id: str, identity, transaction_id: str, amount: int | None = None,
              payment_method: str | None = None) -> Rental:
    pack = db.session.query(ShortPack).filter_by(id=pack_id).with_for_update().first()
    if pack is None:
        db.session.rollback()
        raise NotFound('Short pack')
    if amount is None:
        amount = current_app.config['DEFAULT_PACK_PRICE_LAK']
    try:
        rental = create_rental(
            identity, transaction_id, amount,
            short_pack_id=pack.id, payment_method=payment_method,
        )
    except RentalConflict:
        db.session.rollback()
        raise
    db.session.commit()
    current_app.logger.info('Pack rental %s created for pack %s', rental.id, pack.id)
    return rental


def update_pack_position(rental_id: str, identity, current_short_id: str) -> Rental:
    rental = _active_rental(identity, utcnow(), Rental.id == rental_id)
    if rental is None or rental.short_pack_id is None:
        raise NotFound('Pack rental')
    member = ShortPackItem.query.filter_by(
        pack_id=rental.short_pack_id, movie_id=current_short_id,
    ).first()
    if member is None:
        raise ValidationFailed('not_in_pack', 'Short is not part of the rented pack')
    rental.current_short_id = current_short_id
    db.session.commit()
    return rental


def migrate_anonymous_rentals(anonymous_id: str, user_id: str) -> int:
    """Hand every rental held by an anonymous visitor over to a user account."""
    migrated = Rental.query.filter(Rental.anonymous_id == anonymous_id).update(
        {Rental.user_id: user_id, Rental.anonymous_id: None},
        synchronize_session=False,
    )
    db.session.commit()
    current_app.logger.info('Migrated %d rental(s) from anonymous visitor to user %s', migrated, user_id)
    return migrated
