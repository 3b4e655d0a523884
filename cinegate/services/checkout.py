import uuid
from dataclasses import dataclass

from flask import current_app

from .entitlements import create_rental
from .pricing import PriceResult, increment_promo_code_usage, resolve_price
from ..errors import NotFound, RentalConflict, PromoCodeExhausted, RentalUnavailable
from ..identity import owner_columns
from ..models import db, Movie, PromoCodeUse, Rental


@dataclass(frozen=True)
class CheckoutResult:
    rental: Rental
    price: PriceResult

    def to_dict(self) -> dict:
        return {'rental': self.rental.to_dict(), 'pricing': self.price.to_dict()}


def rent_movie(movie_id: str, identity, transaction_id: str | None = None,
               payment_method: str | None = None, promo_code: str | None = None) -> CheckoutResult:
    """Finalize a movie rental at its resolved price.

    The promo code's use is consumed here, together with the rental insert,
    and only when the discount was actually applied.
    """
    # validates the identity before any locking
    owner_columns(identity)

    movie = db.session.query(Movie).filter_by(id=movie_id).with_for_update().first()
    if movie is None:
        db.session.rollback()
        raise NotFound('Movie')

    price = resolve_price(movie.id, promo_code)
    if not price.available:
        db.session.rollback()
        raise RentalUnavailable(price.unavailable_reason)

    transaction_id = transaction_id or uuid.uuid4().hex
    try:
        rental = create_rental(
            identity, transaction_id, price.final_amount,
            movie_id=movie.id, payment_method=payment_method,
        )
        if price.promo_applied:
            increment_promo_code_usage(price.promo.promo_code_id)
            db.session.add(PromoCodeUse(
                promo_code_id=price.promo.promo_code_id,
                rental_id=rental.id,
                **owner_columns(identity),
            ))
    except (RentalConflict, PromoCodeExhausted, NotFound):
        db.session.rollback()
        raise
    db.session.commit()

    current_app.logger.info(
        'Rental %s created for movie %s at %d LAK (promo %s)',
        rental.id, movie_id, price.final_amount,
        price.promo.code if price.promo_applied else '-',
    )
    return CheckoutResult(rental, price)
