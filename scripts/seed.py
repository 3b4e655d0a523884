import os, sys, pathlib, secrets
from datetime import timedelta
# Ensure project root is on PYTHONPATH when running directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cinegate import create_app
from cinegate.models import (
    db, Movie, PricingTier, PromoCode, ShortPack, ShortPackItem, Trailer, User, UserSession,
    VideoSource, utcnow,
)

app = create_app()
with app.app_context():
    standard = PricingTier(name='standard', display_name_en='Standard', display_name_lo='ມາດຕະຖານ', price_lak=25000, sort_order=1)
    premium = PricingTier(name='premium', display_name_en='Premium', display_name_lo='ພຣີມຽມ', price_lak=45000, sort_order=2)
    db.session.add_all([standard, premium])
    db.session.flush()

    movie = Movie(title='The Last Dance', slug='last-dance', pricing_tier_id=standard.id)
    db.session.add(movie)
    db.session.flush()
    db.session.add(VideoSource(movie_id=movie.id, quality='1080p', format='hls', url='last-dance'))
    db.session.add(Trailer(movie_id=movie.id, type='video', name='Official trailer', video_url='last-dance-trailer'))

    pack = ShortPack(slug='shorts-vol-1', title='Shorts Vol. 1', is_published=True)
    db.session.add(pack)
    db.session.flush()
    for i in range(3):
        short = Movie(title=f'Short #{i + 1}', slug=f'short-{i + 1}')
        db.session.add(short)
        db.session.flush()
        db.session.add(ShortPackItem(pack_id=pack.id, movie_id=short.id, order=i))

    db.session.add(PromoCode(code='LAUNCH50', discount_type='percentage', discount_value=50, max_uses=100))

    user = User(email=os.environ.get('SEED_EMAIL', 'demo@example.com'))
    db.session.add(user)
    db.session.flush()
    session_token = secrets.token_urlsafe(32)
    db.session.add(UserSession(user_id=user.id, token=session_token, expires_at=utcnow() + timedelta(days=30)))
    db.session.commit()

    print('Movie:', movie.id)
    print('Pack:', pack.id)
    print('Session token:', session_token)
