"""Tests for the HMAC signed token codec."""

import base64
import json

import pytest

from cinegate.errors import InvalidTokenFormat, InvalidTokenSignature, TokenExpired
from cinegate.services import signing

SECRET = 'codec-secret'


def _segment(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b'=').decode()


class TestSign:
    def test_token_has_two_unpadded_segments(self):
        token = signing.sign(SECRET, {'id': 'abc', 'n': 1})
        parts = token.split('.')
        assert len(parts) == 2
        assert '=' not in token

    def test_payload_segment_is_compact_json(self):
        token = signing.sign(SECRET, {'b': 2, 'a': 1})
        encoded = token.split('.')[0]
        raw = base64.urlsafe_b64decode(encoded + '=' * (-len(encoded) % 4))
        assert raw == b'{"a":1,"b":2}'

    def test_same_payload_same_token(self):
        assert signing.sign(SECRET, {'x': 1}) == signing.sign(SECRET, {'x': 1})


class TestVerify:
    def test_returns_payload(self):
        payload = {'movieId': 'm1', 'path': 'hls/m1/master.m3u8', 'exp': 2_000}
        token = signing.sign(SECRET, payload)
        assert signing.verify(SECRET, token, now=1_000) == payload

    @pytest.mark.parametrize('token', ['', 'onlyone', 'a.b.c', None, 42])
    def test_malformed_structure(self, token):
        with pytest.raises(InvalidTokenFormat):
            signing.verify(SECRET, token)

    def test_wrong_secret(self):
        token = signing.sign(SECRET, {'x': 1})
        with pytest.raises(InvalidTokenSignature):
            signing.verify('other-secret', token)

    def test_tampered_payload(self):
        token = signing.sign(SECRET, {'movieId': 'm1'})
        _, sig = token.split('.')
        forged = _segment(json.dumps({'movieId': 'm2'}).encode())
        with pytest.raises(InvalidTokenSignature):
            signing.verify(SECRET, f'{forged}.{sig}')

    def test_tampered_signature(self):
        token = signing.sign(SECRET, {'movieId': 'm1'})
        encoded, sig = token.split('.')
        flipped = ('A' if sig[0] != 'A' else 'B') + sig[1:]
        with pytest.raises(InvalidTokenSignature):
            signing.verify(SECRET, f'{encoded}.{flipped}')

    def test_non_ascii_segment_is_signature_error(self):
        with pytest.raises(InvalidTokenSignature):
            signing.verify(SECRET, 'ünïcode.sig')

    def test_valid_signature_over_non_json(self):
        encoded = _segment(b'not json')
        token = f'{encoded}.{signing._signature(SECRET, encoded)}'
        with pytest.raises(InvalidTokenFormat):
            signing.verify(SECRET, token)

    def test_payload_must_be_object(self):
        encoded = _segment(b'[1,2,3]')
        token = f'{encoded}.{signing._signature(SECRET, encoded)}'
        with pytest.raises(InvalidTokenFormat):
            signing.verify(SECRET, token)

    @pytest.mark.parametrize('field', ['exp', 'expiresAt'])
    def test_expiry_at_now_is_expired(self, field):
        token = signing.sign(SECRET, {field: 1_000})
        with pytest.raises(TokenExpired) as exc:
            signing.verify(SECRET, token, now=1_000)
        assert exc.value.expired_at == 1_000

    def test_expiry_in_future_accepted(self):
        token = signing.sign(SECRET, {'exp': 1_001})
        assert signing.verify(SECRET, token, now=1_000)['exp'] == 1_001

    def test_non_numeric_expiry_rejected(self):
        token = signing.sign(SECRET, {'exp': 'tomorrow'})
        with pytest.raises(InvalidTokenFormat):
            signing.verify(SECRET, token, now=1_000)

    def test_payload_without_expiry_never_expires(self):
        token = signing.sign(SECRET, {'id': 'x'})
        assert signing.verify(SECRET, token, now=10**12) == {'id': 'x'}

    def test_bytes_secret_matches_str_secret(self):
        token = signing.sign(SECRET, {'id': 'x'})
        assert signing.verify(SECRET.encode(), token) == {'id': 'x'}
