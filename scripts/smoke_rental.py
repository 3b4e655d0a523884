import os
import pathlib
import sys

# Ensure project root is on PYTHONPATH
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Minimal env for test (set before importing app so Config reads them)
os.environ.setdefault('ADMIN_API_KEY', 'test-key')
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('USE_REDIS', '0')

from cinegate import create_app
from cinegate.models import db, Movie, VideoSource

app = create_app()
admin = {'X-Admin-Key': 'test-key'}

with app.app_context():
    client = app.test_client()

    # 1) Anonymous identity
    r = client.post('/api/anonymous-id')
    print('anonymous_status', r.status_code)
    viewer = {'X-Anonymous-Id': r.get_json()['anonymousId']}

    # 2) Tier, movie and a promo code
    tier = client.post('/admin/pricing/tiers', headers=admin,
                       json={'name': 'standard', 'displayNameEn': 'Standard', 'priceLak': 25000}).get_json()['tier']
    movie = Movie(title='Smoke', slug='smoke', pricing_tier_id=tier['id'])
    db.session.add(movie)
    db.session.flush()
    source = VideoSource(movie_id=movie.id, url='smoke')
    db.session.add(source)
    db.session.commit()
    r = client.post('/admin/promo-codes', headers=admin, json={'code': 'smoke20', 'discountType': 'percentage', 'discountValue': 20})
    print('promo_status', r.status_code)

    # 3) Pricing, rental, playback token
    r = client.get(f'/api/movies/{movie.id}/pricing?promoCode=SMOKE20')
    print('pricing', r.status_code, r.get_json()['pricing']['finalAmountLak'])
    r = client.post(f'/api/rentals/{movie.id}', headers=viewer, json={'promoCode': 'SMOKE20'})
    print('rental_status', r.status_code)
    r = client.post('/api/video-tokens', headers=viewer, json={'movieId': movie.id, 'videoSourceId': source.id})
    print('video_token_status', r.status_code, r.get_json().get('url'))
