"""Integration tests for the viewer API blueprint."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import logging

import pytest

from cinegate.models import db, Rental, utcnow
from cinegate.services import signing
from cinegate.services.anonymous import anonymous_ids
from cinegate.services.tokens import access_tokens


def _token_from(url: str) -> str:
    return parse_qs(urlparse(url).query)['token'][0]


class TestAnonymousId:
    """Tests for POST /api/anonymous-id"""

    def test_issues_signed_id(self, client):
        r = client.post('/api/anonymous-id')
        assert r.status_code == 201
        data = r.get_json()
        payload = anonymous_ids().verify(data['anonymousId'])
        assert payload['expiresAt'] == data['expiresAt']


class TestIdentity:
    def test_missing_identity(self, client, movie):
        r = client.get(f'/api/rentals/{movie.id}')
        assert r.status_code == 401
        assert r.get_json()['error'] == 'unauthenticated'

    def test_forged_anonymous_id(self, client, movie):
        r = client.get(f'/api/rentals/{movie.id}', headers={'X-Anonymous-Id': 'forged.token'})
        assert r.status_code == 401

    def test_signed_token_without_string_id(self, app, client, movie, caplog):
        token = signing.sign(app.config['ANONYMOUS_ID_SECRET'], {'id': 7})
        with caplog.at_level(logging.WARNING):
            r = client.get(f'/api/rentals/{movie.id}', headers={'X-Anonymous-Id': token})
        assert r.status_code == 401
        assert 'payload carries no string id' in caplog.text

    def test_bearer_session(self, client, movie, user_session):
        r = client.get(f'/api/rentals/{movie.id}', headers={'Authorization': 'Bearer session-token'})
        assert r.status_code == 200
        assert r.get_json()['hasAccess'] is False

    def test_expired_session_falls_back_to_anonymous(self, client, movie, user_session, anon_headers):
        user_session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()
        headers = {'Authorization': 'Bearer session-token', **anon_headers}
        client.post(f'/api/rentals/{movie.id}', headers=headers)
        rental = Rental.query.one()
        assert rental.user_id is None
        assert rental.anonymous_id == anonymous_ids().extract_id(anon_headers['X-Anonymous-Id'])


class TestVideoTokens:
    """Tests for POST /api/video-tokens and its validate endpoint"""

    def test_requires_rental(self, client, anon_headers, video_source):
        r = client.post('/api/video-tokens', headers=anon_headers,
                        json={'movieId': video_source.movie_id, 'videoSourceId': video_source.id})
        assert r.status_code == 403
        assert r.get_json()['error'] == 'rental_required'

    def test_issues_url_after_rental(self, client, anon_headers, video_source):
        client.post(f'/api/rentals/{video_source.movie_id}', headers=anon_headers)
        r = client.post('/api/video-tokens', headers=anon_headers,
                        json={'movieId': video_source.movie_id, 'videoSourceId': video_source.id})
        assert r.status_code == 200
        data = r.get_json()
        assert data['expiresIn'] == 900
        assert data['url'].startswith('https://video.example.com/videos/hls/last-dance/master.m3u8?token=')

        check = client.get('/api/video-tokens/validate', query_string={'token': _token_from(data['url'])})
        assert check.get_json() == {
            'valid': True,
            'movieId': video_source.movie_id,
            'path': 'hls/last-dance/master.m3u8',
        }

    def test_source_must_belong_to_movie(self, client, anon_headers, video_source):
        r = client.post('/api/video-tokens', headers=anon_headers,
                        json={'movieId': 'other', 'videoSourceId': video_source.id})
        assert r.status_code == 404

    def test_missing_fields(self, client, anon_headers):
        r = client.post('/api/video-tokens', headers=anon_headers, json={'movieId': 'm'})
        assert r.status_code == 400
        assert r.get_json()['reason'] == 'missing_fields'

    def test_validate_rejects_trailer_token(self, client, user_identity):
        token = access_tokens().issue_trailer_token('t', 'm', user_identity, 'trailers/x')
        r = client.get('/api/video-tokens/validate', query_string={'token': token})
        assert r.status_code == 401
        assert r.get_json() == {'valid': False, 'error': 'invalid_token_signature'}

    def test_validate_requires_token(self, client):
        assert client.get('/api/video-tokens/validate').status_code == 400

    def test_rate_limited(self, app, client, anon_headers, video_source):
        app.config['VIDEO_TOKEN_RATE_LIMIT'] = 2
        body = {'movieId': video_source.movie_id, 'videoSourceId': video_source.id}
        for _ in range(2):
            client.post('/api/video-tokens', headers=anon_headers, json=body)
        r = client.post('/api/video-tokens', headers=anon_headers, json=body)
        assert r.status_code == 429
        assert int(r.headers['Retry-After']) >= 1


class TestTrailerTokens:
    """Tests for POST /api/trailer-tokens"""

    def test_no_rental_needed(self, client, anon_headers, trailer):
        r = client.post('/api/trailer-tokens', headers=anon_headers, json={'trailerId': trailer.id})
        assert r.status_code == 200
        data = r.get_json()
        assert data['expiresIn'] == 7200
        assert data['url'].startswith('https://video.example.com/trailers/hls/last-dance-trailer/master.m3u8?token=')

        check = client.get('/api/trailer-tokens/validate', query_string={'token': _token_from(data['url'])})
        payload = check.get_json()['payload']
        assert payload['resourceId'] == trailer.id
        assert 'anonymousId' in payload

    def test_youtube_trailer_rejected(self, client, anon_headers, movie):
        from cinegate.models import Trailer
        yt = Trailer(movie_id=movie.id, type='youtube', name='YT', youtube_key='abc')
        db.session.add(yt)
        db.session.commit()
        r = client.post('/api/trailer-tokens', headers=anon_headers, json={'trailerId': yt.id})
        assert r.status_code == 400
        assert r.get_json()['reason'] == 'not_self_hosted'

    def test_unknown_trailer(self, client, anon_headers):
        r = client.post('/api/trailer-tokens', headers=anon_headers, json={'trailerId': 'missing'})
        assert r.status_code == 404


class TestPricing:
    def test_movie_pricing(self, client, movie, make_promo):
        make_promo('SAVE20')
        r = client.get(f'/api/movies/{movie.id}/pricing', query_string={'promoCode': 'SAVE20'})
        pricing = r.get_json()['pricing']
        assert pricing['finalAmountLak'] == 20000
        assert pricing['tier']['name'] == 'standard'

    def test_unknown_movie(self, client):
        assert client.get('/api/movies/missing/pricing').status_code == 404

    def test_validate_promo(self, client, movie, make_promo):
        make_promo('SAVE20')
        r = client.post('/api/promo-codes/validate', json={'code': 'SAVE20', 'movieId': movie.id})
        assert r.get_json()['validation']['finalAmountLak'] == 20000

    def test_validate_non_string_code(self, client, movie):
        r = client.post('/api/promo-codes/validate', json={'code': 123, 'movieId': movie.id})
        assert r.status_code == 200
        assert r.get_json()['validation']['reason'] == 'not_found'

    def test_validate_unknown_promo(self, client, movie):
        r = client.post('/api/promo-codes/validate', json={'code': 'NOPE', 'movieId': movie.id})
        assert r.status_code == 200
        assert r.get_json()['validation']['reason'] == 'not_found'


class TestRentals:
    def test_rent_and_status(self, client, anon_headers, movie):
        r = client.post(f'/api/rentals/{movie.id}', headers=anon_headers, json={'transactionId': 'txn-9'})
        assert r.status_code == 201
        assert r.get_json()['rental']['transactionId'] == 'txn-9'

        status = client.get(f'/api/rentals/{movie.id}', headers=anon_headers).get_json()
        assert status['hasAccess'] is True
        assert status['accessType'] == 'movie'

        listed = client.get('/api/rentals', headers=anon_headers).get_json()['rentals']
        assert [x['movieId'] for x in listed] == [movie.id]

    def test_non_string_promo_rents_at_full_price(self, client, anon_headers, movie):
        r = client.post(f'/api/rentals/{movie.id}', headers=anon_headers, json={'promoCode': 123})
        assert r.status_code == 201
        data = r.get_json()
        assert data['rental']['amount'] == 25000
        assert data['pricing']['promoRejected']['reason'] == 'not_found'

    def test_status_never_rented(self, client, anon_headers, movie):
        data = client.get(f'/api/rentals/{movie.id}', headers=anon_headers).get_json()
        assert data['hasAccess'] is False
        assert 'expired' not in data

    def test_status_reports_lapsed_rental(self, client, anon_headers, movie):
        client.post(f'/api/rentals/{movie.id}', headers=anon_headers)
        rental = Rental.query.one()
        rental.expires_at = utcnow() - timedelta(hours=1)
        db.session.commit()

        data = client.get(f'/api/rentals/{movie.id}', headers=anon_headers).get_json()
        assert data['hasAccess'] is False
        assert data['expired'] is True
        assert data['expiredAt'] == rental.expires_at.isoformat()

    def test_list_recent(self, client, anon_headers, movie):
        client.post(f'/api/rentals/{movie.id}', headers=anon_headers)
        rental = Rental.query.one()
        rental.expires_at = utcnow() - timedelta(hours=1)
        db.session.commit()

        assert client.get('/api/rentals', headers=anon_headers).get_json()['rentals'] == []
        recent = client.get('/api/rentals?includeRecent=true', headers=anon_headers).get_json()['rentals']
        assert [x['id'] for x in recent] == [rental.id]

    def test_duplicate_rental_conflicts(self, client, anon_headers, movie):
        client.post(f'/api/rentals/{movie.id}', headers=anon_headers)
        r = client.post(f'/api/rentals/{movie.id}', headers=anon_headers)
        assert r.status_code == 409
        assert r.get_json()['error'] == 'rental_conflict'

    def test_unpriced_movie(self, client, anon_headers, movie, tier):
        tier.is_active = False
        db.session.commit()
        r = client.post(f'/api/rentals/{movie.id}', headers=anon_headers)
        assert r.status_code == 400
        assert r.get_json()['reason'] == 'inactive_tier'

    def test_pack_flow(self, client, anon_headers, pack, pack_shorts):
        assert client.get(f'/api/rentals/packs/{pack.id}', headers=anon_headers).get_json() == {'rental': None}

        r = client.post(f'/api/rentals/packs/{pack.id}', headers=anon_headers,
                        json={'transactionId': 'txn-pack', 'amount': 50000})
        assert r.status_code == 201
        rental_id = r.get_json()['rental']['id']

        r = client.patch(f'/api/rentals/{rental_id}/position', headers=anon_headers,
                         json={'currentShortId': pack_shorts[1]})
        assert r.get_json() == {'success': True}
        status = client.get(f'/api/rentals/packs/{pack.id}', headers=anon_headers).get_json()
        assert status['rental']['currentShortId'] == pack_shorts[1]

        access = client.get(f'/api/rentals/{pack_shorts[0]}', headers=anon_headers).get_json()
        assert access['accessType'] == 'pack'

    def test_pack_requires_transaction(self, client, anon_headers, pack):
        r = client.post(f'/api/rentals/packs/{pack.id}', headers=anon_headers, json={})
        assert r.status_code == 400

    def test_unknown_pack(self, client, anon_headers):
        assert client.get('/api/rentals/packs/missing', headers=anon_headers).status_code == 404

    def test_migrate(self, client, anon_headers, movie, user_session):
        client.post(f'/api/rentals/{movie.id}', headers=anon_headers)
        r = client.post('/api/rentals/migrate', headers={'Authorization': 'Bearer session-token'},
                        json={'anonymousId': anon_headers['X-Anonymous-Id']})
        assert r.get_json() == {'success': True, 'migratedRentals': 1}

        status = client.get(f'/api/rentals/{movie.id}', headers={'Authorization': 'Bearer session-token'})
        assert status.get_json()['hasAccess'] is True

    def test_migrate_requires_user(self, client, anon_headers):
        r = client.post('/api/rentals/migrate', headers=anon_headers,
                        json={'anonymousId': anon_headers['X-Anonymous-Id']})
        assert r.status_code == 401

    @pytest.mark.parametrize('anonymous_id', ['raw-uuid', 'a.b'])
    def test_migrate_rejects_unsigned_id(self, client, user_session, anonymous_id):
        r = client.post('/api/rentals/migrate', headers={'Authorization': 'Bearer session-token'},
                        json={'anonymousId': anonymous_id})
        assert r.status_code == 401


def test_health(client):
    assert client.get('/health').get_json() == {'ok': True}
