"""HMAC-SHA256 signed tokens shared by every token class.

Wire format: ``base64url(JSON(payload)) + "." + base64url(HMAC(secret, encoded))``
with padding stripped from both segments. The signature is computed over the
encoded payload string, so verifying never re-serializes JSON.
"""
import time, json, hmac, hashlib, base64

from ..errors import InvalidTokenFormat, InvalidTokenSignature, TokenExpired

EXPIRY_FIELDS = ('exp', 'expiresAt')


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b'=').decode('ascii')


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + '=' * (-len(segment) % 4))


def _key(secret) -> bytes:
    return secret if isinstance(secret, bytes) else secret.encode()


def _signature(secret, encoded_payload: str) -> str:
    digest = hmac.new(_key(secret), encoded_payload.encode('ascii'), hashlib.sha256).digest()
    return _b64encode(digest)


def sign(secret, payload: dict) -> str:
    data = json.dumps(payload, separators=(',', ':'), sort_keys=True)
    encoded = _b64encode(data.encode('utf-8'))
    return f"{encoded}.{_signature(secret, encoded)}"


def verify(secret, token: str, now: int | None = None) -> dict:
    """Return the signed payload, or raise a :class:`TokenError` subclass."""
    if not isinstance(token, str):
        raise InvalidTokenFormat()
    parts = token.split('.')
    if len(parts) != 2:
        raise InvalidTokenFormat()
    encoded, signature = parts

    try:
        expected = _signature(secret, encoded)
    except UnicodeEncodeError:
        raise InvalidTokenSignature()
    if not hmac.compare_digest(signature.encode('utf-8'), expected.encode('ascii')):
        raise InvalidTokenSignature()

    try:
        payload = json.loads(_b64decode(encoded).decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        raise InvalidTokenFormat('Invalid token payload')
    if not isinstance(payload, dict):
        raise InvalidTokenFormat('Invalid token payload')

    if now is None:
        now = int(time.time())
    for field in EXPIRY_FIELDS:
        expires = payload.get(field)
        if expires is None:
            continue
        if isinstance(expires, bool) or not isinstance(expires, (int, float)):
            raise InvalidTokenFormat('Invalid token expiry')
        if expires <= now:
            raise TokenExpired(expires)
    return payload
