"""Pytest configuration and shared fixtures."""

from datetime import timedelta

import pytest
from flask import g

from cinegate import create_app
from cinegate.identity import AnonymousIdentity, UserIdentity
from cinegate.models import (
    db, Movie, PricingTier, PromoCode, ShortPack, ShortPackItem, Trailer, User, UserSession,
    VideoSource, utcnow,
)

ADMIN_KEY = 'test-admin-key'


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'USE_REDIS': False,
        'ADMIN_API_KEY': ADMIN_KEY,
        'ANONYMOUS_ID_SECRET': 'test-anonymous-secret',
        'VIDEO_TOKEN_SECRET': 'test-video-secret',
        'TRAILER_TOKEN_SECRET': 'test-trailer-secret',
        'VIDEO_SERVER_URL': 'https://video.example.com',
        'VIDEO_TOKEN_RATE_LIMIT': 1000,
        'TRAILER_TOKEN_RATE_LIMIT': 1000,
    })

    @app.before_request
    def _fresh_identity():
        # the app context below outlives each test request, and g with it
        g.pop('identity', None)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {'X-Admin-Key': ADMIN_KEY}


@pytest.fixture
def tier(app):
    tier = PricingTier(name='standard', display_name_en='Standard', price_lak=25000)
    db.session.add(tier)
    db.session.commit()
    return tier


@pytest.fixture
def movie(tier):
    movie = Movie(title='The Last Dance', slug='last-dance', pricing_tier_id=tier.id)
    db.session.add(movie)
    db.session.commit()
    return movie


@pytest.fixture
def video_source(movie):
    source = VideoSource(movie_id=movie.id, quality='1080p', url='last-dance')
    db.session.add(source)
    db.session.commit()
    return source


@pytest.fixture
def trailer(movie):
    trailer = Trailer(movie_id=movie.id, type='video', name='Trailer', video_url='last-dance-trailer')
    db.session.add(trailer)
    db.session.commit()
    return trailer


@pytest.fixture
def pack(app):
    """A published pack of two shorts."""
    pack = ShortPack(slug='shorts', title='Shorts', is_published=True)
    db.session.add(pack)
    db.session.flush()
    for i in range(2):
        short = Movie(title=f'Short {i}', slug=f'short-{i}')
        db.session.add(short)
        db.session.flush()
        db.session.add(ShortPackItem(pack_id=pack.id, movie_id=short.id, order=i))
    db.session.commit()
    return pack


@pytest.fixture
def pack_shorts(pack):
    items = ShortPackItem.query.filter_by(pack_id=pack.id).order_by(ShortPackItem.order).all()
    return [item.movie_id for item in items]


@pytest.fixture
def make_promo(app):
    def _make(code='SAVE20', discount_type='percentage', discount_value=20, **kwargs):
        promo = PromoCode(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs)
        db.session.add(promo)
        db.session.commit()
        return promo
    return _make


@pytest.fixture
def user(app):
    user = User(email='viewer@example.com')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user_session(user):
    session = UserSession(user_id=user.id, token='session-token', expires_at=utcnow() + timedelta(days=1))
    db.session.add(session)
    db.session.commit()
    return session


@pytest.fixture
def user_identity(user):
    return UserIdentity(user.id)


@pytest.fixture
def anon_identity():
    return AnonymousIdentity('5b0e3c8a-0c1f-4f4e-9d53-6f2a1b7c9e10')


@pytest.fixture
def anon_headers(client):
    token = client.post('/api/anonymous-id').get_json()['anonymousId']
    return {'X-Anonymous-Id': token}
